"""Repeated probing of one endpoint, reduced to robust statistics."""

from __future__ import annotations

import logging
from typing import Optional

from fastmirror.config import MAX_SAMPLE_CONCURRENCY
from fastmirror.models import (
    AggregateStatus,
    AggregatedResult,
    Endpoint,
    ProbeResult,
    SelectionConfig,
)
from fastmirror.pool import run_bounded
from fastmirror.prober import Prober
from fastmirror.stats import filter_outliers, median, stability_score

logger = logging.getLogger(__name__)


def reduce_samples(endpoint: Endpoint, results: list[ProbeResult]) -> AggregatedResult:
    """Build an :class:`AggregatedResult` from the probes of one endpoint.

    Only successful probes contribute.  Latency and load time are filtered
    for outliers independently before taking medians and stability.
    """
    successes = [r for r in results if isinstance(r, ProbeResult) and r.ok]
    if not successes:
        return AggregatedResult(
            endpoint=endpoint,
            status=AggregateStatus.FAILED,
            attempts=len(results),
        )

    latencies = filter_outliers([r.latency_ms for r in successes])
    load_times = filter_outliers([r.load_time_ms for r in successes if r.load_time_ms is not None])

    return AggregatedResult(
        endpoint=endpoint,
        status=AggregateStatus.SUCCESS,
        sample_latencies=tuple(latencies),
        sample_load_times=tuple(load_times),
        median_latency=median(latencies),
        median_load_time=median(load_times) if load_times else None,
        latency_stability=stability_score(latencies),
        load_time_stability=stability_score(load_times) if load_times else 0.0,
        attempts=len(results),
    )


class Aggregator:
    """Runs several probes against one endpoint and summarises them."""

    def __init__(self, prober: Prober, config: SelectionConfig) -> None:
        self._prober = prober
        self._config = config

    async def aggregate(
        self,
        endpoint: Endpoint,
        sample_count: int,
        timeout_ms: Optional[int] = None,
    ) -> AggregatedResult:
        """Probe *endpoint* *sample_count* times and reduce the samples.

        At most three probes are in flight at once, and admissions are
        spaced by the configured inter-probe delay.  Without *timeout_ms*
        each probe gets the configured default timeout.
        """
        if sample_count < 1:
            raise ValueError("sample_count must be at least 1")
        if timeout_ms is None:
            timeout_ms = self._config.default_timeout_ms

        tasks = [
            (lambda: self._prober.probe(endpoint, timeout_ms))
            for _ in range(sample_count)
        ]
        results = await run_bounded(
            tasks,
            limit=min(MAX_SAMPLE_CONCURRENCY, sample_count),
            admission_delay=self._config.probe_delay_ms / 1000.0,
        )
        aggregated = reduce_samples(endpoint, results)
        logger.debug(
            "%s: %d/%d samples ok, median %s ms",
            endpoint.display_name,
            len(aggregated.sample_latencies),
            sample_count,
            aggregated.median_latency,
        )
        return aggregated
