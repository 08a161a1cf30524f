"""Selection engine for fastmirror.

Runs the two-phase selection:
  Registry -> preliminary probes (one per origin) -> candidate selection
  -> detailed sampling per candidate -> scoring -> decision

Every reading is recorded in a map keyed by the endpoint's sequence
index and announced to the optional event callback as it arrives.  The
presentation layer reads :meth:`SelectionRun.snapshot`; it never touches
engine state.

Public API:
    SelectionRun    -- one selection over a parsed endpoint list
    select_fastest  -- parse raw entries and run a selection
    redirect_target -- the URL a requester should be sent to
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Iterable, Optional, Sequence

from fastmirror.aggregator import Aggregator
from fastmirror.errors import NoViableEndpoints
from fastmirror.models import (
    AggregateStatus,
    AggregatedResult,
    Endpoint,
    ProbeResult,
    ProbeStatus,
    ReadingEvent,
    SelectionConfig,
    SelectionEvent,
    SelectionFailed,
    SelectionOutcome,
    WinnerSelected,
)
from fastmirror.pool import run_bounded
from fastmirror.prober import Prober
from fastmirror.registry import broadcast, group_by_origin, parse_endpoints, representatives
from fastmirror.scoring import decide, score_all
from fastmirror.selector import select_candidates

logger = logging.getLogger(__name__)

EventCallback = Callable[[SelectionEvent], None]


class SelectionRun:
    """One selection over a fixed endpoint list."""

    def __init__(
        self,
        endpoints: Sequence[Endpoint],
        config: Optional[SelectionConfig] = None,
        prober: Optional[Prober] = None,
        on_event: Optional[EventCallback] = None,
    ) -> None:
        self.endpoints = list(endpoints)
        self.config = config or SelectionConfig()
        self._prober = prober or Prober()
        self._on_event = on_event
        self._readings: dict[int, ReadingEvent] = {}
        self._preliminary: dict[int, ProbeResult] = {}

    def snapshot(self) -> tuple[ReadingEvent, ...]:
        """Latest reading per endpoint, in list order."""
        return tuple(self._readings[index] for index in sorted(self._readings))

    async def run(self) -> SelectionOutcome:
        """Run both phases and return the outcome.

        Raises
        ------
        NoViableEndpoints
            If either phase ends without a usable endpoint.  A
            :class:`SelectionFailed` event is emitted first.
        """
        try:
            return await self._run()
        except NoViableEndpoints as exc:
            logger.warning("Selection failed: %s", exc)
            exc.snapshot = self.snapshot()
            self._emit(SelectionFailed(error=exc))
            raise

    async def _run(self) -> SelectionOutcome:
        if not self.endpoints:
            raise NoViableEndpoints("preliminary", "No endpoints to probe")

        preliminary = await self._run_preliminary()
        candidates = select_candidates(
            preliminary,
            self.config.min_candidates,
            self.config.max_candidates,
        )

        aggregates = await self._run_detailed(candidates)
        winner, ranked = decide(score_all(aggregates))
        logger.info(
            "Selected %s (score %.1f) out of %d candidates",
            winner.endpoint.display_name,
            winner.composite_score,
            len(candidates),
        )
        self._emit(WinnerSelected(winner=winner, ranked=ranked))

        return SelectionOutcome(
            winner=winner,
            ranked=ranked,
            candidates=candidates,
            preliminary=preliminary,
            snapshot=self.snapshot(),
            config=self.config,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    # ── Phase 1 ───────────────────────────────────────────────────────

    async def _run_preliminary(self) -> tuple[ProbeResult, ...]:
        """Probe one endpoint per origin and share its reading with the rest."""
        groups = group_by_origin(self.endpoints)
        reps = representatives(groups)
        timeout_ms = self.config.preliminary_timeout_ms
        logger.info(
            "Preliminary pass: %d endpoints, %d distinct origins",
            len(self.endpoints),
            len(reps),
        )

        def _on_result(index: int, result: Any) -> None:
            rep = reps[index]
            if not isinstance(result, ProbeResult):
                result = ProbeResult(endpoint=rep, status=ProbeStatus.NETWORK_ERROR, error=str(result))
            for reading in broadcast(result, groups[rep.origin]):
                self._preliminary[reading.endpoint.sequence_index] = reading
                self._record(ReadingEvent(endpoint=reading.endpoint, phase="preliminary", result=reading))

        await run_bounded(
            [partial(self._prober.probe, rep, timeout_ms) for rep in reps],
            limit=self.config.pool_limit,
            on_result=_on_result,
        )
        return tuple(self._preliminary[e.sequence_index] for e in self.endpoints)

    # ── Phase 2 ───────────────────────────────────────────────────────

    async def _run_detailed(self, candidates: Sequence[Endpoint]) -> list[AggregatedResult]:
        """Sample every candidate several times."""
        aggregator = Aggregator(self._prober, self.config)
        sample_count = self.config.tests_per_endpoint
        timeout_ms = self.config.final_timeout_ms
        aggregates: dict[int, AggregatedResult] = {}
        logger.info("Detailed pass: %d candidates, %d samples each", len(candidates), sample_count)

        def _on_result(index: int, result: Any) -> None:
            endpoint = candidates[index]
            if not isinstance(result, AggregatedResult):
                result = AggregatedResult(endpoint=endpoint, status=AggregateStatus.FAILED)
            aggregates[index] = result
            self._record(ReadingEvent(endpoint=endpoint, phase="detailed", result=result))

        await run_bounded(
            [partial(aggregator.aggregate, c, sample_count, timeout_ms) for c in candidates],
            limit=self.config.pool_limit,
            on_result=_on_result,
        )
        return [aggregates[i] for i in range(len(candidates))]

    # ── Events ────────────────────────────────────────────────────────

    def _record(self, event: ReadingEvent) -> None:
        self._readings[event.endpoint.sequence_index] = event
        self._emit(event)

    def _emit(self, event: SelectionEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Event callback failed for %s", type(event).__name__)


async def select_fastest(
    entries: Iterable[str],
    config: Optional[SelectionConfig] = None,
    prober: Optional[Prober] = None,
    on_event: Optional[EventCallback] = None,
) -> SelectionOutcome:
    """Parse raw ``url#Name`` entries and run a selection over them."""
    endpoints = parse_endpoints(entries)
    return await SelectionRun(endpoints, config, prober, on_event).run()


def redirect_target(endpoint: Endpoint, path: str = "", query: str = "") -> str:
    """Winner URL with the requester's path and query string appended."""
    url = endpoint.url
    if path:
        url = url.rstrip("/") + "/" + path.lstrip("/")
    if query:
        url += query if query.startswith("?") else f"?{query}"
    return url
