"""Single-endpoint prober.

Races every configured technique against one endpoint.  The first
technique to give a definitive answer (a reading, a transport failure or
its own timeout) decides the probe; the others are cancelled.  Techniques
that cannot run here or whose reading is inconclusive simply drop out of
the race.  One deadline covers the whole probe and always wins.

The prober never retries and never raises: every outcome is a
:class:`ProbeResult`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence
from urllib.parse import urlsplit

import httpx

from fastmirror.errors import (
    InconclusiveReading,
    TechniqueFailed,
    TechniqueTimeout,
    TechniqueUnavailable,
)
from fastmirror.models import Endpoint, ProbeResult, ProbeStatus
from fastmirror.techniques import default_techniques
from fastmirror.techniques.base import ProbeTechnique, Reading

logger = logging.getLogger(__name__)


def is_probe_target(url: str) -> bool:
    """Whether *url* is something a probe can be sent to at all."""
    if not url or not url.strip():
        return False
    try:
        parts = urlsplit(url)
        parts.port
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.hostname)


class Prober:
    """Measures one endpoint by racing independent techniques."""

    def __init__(
        self,
        techniques: Optional[Sequence[ProbeTechnique]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if techniques is None:
            techniques = default_techniques(transport)
        self.techniques: list[ProbeTechnique] = list(techniques)

    async def probe(self, endpoint: Endpoint, timeout_ms: int) -> ProbeResult:
        """Probe *endpoint* once, giving up after *timeout_ms*."""
        if not is_probe_target(endpoint.url):
            return ProbeResult(
                endpoint=endpoint,
                status=ProbeStatus.INVALID_TARGET,
                error=f"Not a probe target: {endpoint.url!r}",
            )
        if not self.techniques:
            return ProbeResult(
                endpoint=endpoint,
                status=ProbeStatus.NETWORK_ERROR,
                error="No measurement techniques configured",
            )

        timeout = timeout_ms / 1000.0
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        racers = {
            asyncio.create_task(t.measure(endpoint, timeout)): (order, t)
            for order, t in enumerate(self.techniques)
        }
        pending: set[asyncio.Task] = set(racers)
        dropped: list[str] = []

        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED,
                )
                for task in sorted(done, key=lambda t: racers[t][0]):
                    technique = racers[task][1]
                    result = self._interpret(endpoint, technique, task, dropped)
                    if result is not None:
                        return result

            if not pending:
                return ProbeResult(
                    endpoint=endpoint,
                    status=ProbeStatus.NETWORK_ERROR,
                    error="No technique produced a reading: " + "; ".join(dropped),
                )
            return ProbeResult(
                endpoint=endpoint,
                status=ProbeStatus.TIMEOUT,
                error=f"No response within {timeout_ms}ms",
            )
        finally:
            # Cancel the losers and collect every outcome so none goes unretrieved.
            for task in racers:
                task.cancel()
            await asyncio.gather(*racers, return_exceptions=True)

    @staticmethod
    def _interpret(
        endpoint: Endpoint,
        technique: ProbeTechnique,
        task: asyncio.Task,
        dropped: list[str],
    ) -> Optional[ProbeResult]:
        """Turn a finished technique into a result, or ``None`` if it dropped out."""
        name = technique.technique
        if task.cancelled():
            dropped.append(f"{name.value}: cancelled")
            return None

        exc = task.exception()
        if exc is None:
            reading: Reading = task.result()
            logger.debug("%s answered %s in %dms", name.value, endpoint.url, reading.latency_ms)
            return ProbeResult(
                endpoint=endpoint,
                status=ProbeStatus.SUCCESS,
                technique=name,
                latency_ms=reading.latency_ms,
                load_time_ms=reading.load_time_ms,
                timing=reading.timing,
            )
        if isinstance(exc, TechniqueTimeout):
            return ProbeResult(endpoint=endpoint, status=ProbeStatus.TIMEOUT, technique=name, error=str(exc))
        if isinstance(exc, TechniqueFailed):
            return ProbeResult(endpoint=endpoint, status=ProbeStatus.NETWORK_ERROR, technique=name, error=str(exc))
        if isinstance(exc, (TechniqueUnavailable, InconclusiveReading)):
            logger.debug("%s dropped out for %s: %s", name.value, endpoint.url, exc)
        else:
            logger.debug("%s raised unexpectedly for %s", name.value, endpoint.url, exc_info=exc)
        dropped.append(f"{name.value}: {exc}")
        return None
