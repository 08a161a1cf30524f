"""Composite scoring and the final decision."""

from __future__ import annotations

from typing import Iterable, Sequence

from fastmirror.config import LATENCY_WEIGHT, LOAD_TIME_WEIGHT, MAX_STABILITY_FACTOR
from fastmirror.errors import NoViableEndpoints
from fastmirror.models import AggregatedResult, ScoredResult


def _stability_factor(stability: float) -> float:
    return min(MAX_STABILITY_FACTOR, stability / 100.0)


def score(aggregated: AggregatedResult) -> float:
    """Composite score for one aggregated result; lower is better.

    Each median is inflated by up to 50% for unstable samples.  When load
    times exist they carry 60% of the weight, latency the rest.
    """
    if not aggregated.ok or aggregated.median_latency is None:
        raise ValueError(f"cannot score failed result for {aggregated.endpoint.url}")

    latency_component = aggregated.median_latency * (1 + _stability_factor(aggregated.latency_stability))
    if not aggregated.has_load_time:
        return latency_component

    load_component = aggregated.median_load_time * (1 + _stability_factor(aggregated.load_time_stability))
    return latency_component * LATENCY_WEIGHT + load_component * LOAD_TIME_WEIGHT


def score_all(aggregates: Iterable[AggregatedResult]) -> list[ScoredResult]:
    """Score every successful aggregate, skipping failed ones."""
    return [ScoredResult(aggregated=a, composite_score=score(a)) for a in aggregates if a.ok]


def decide(scored: Sequence[ScoredResult]) -> tuple[ScoredResult, tuple[ScoredResult, ...]]:
    """Rank by score (ties by list position) and return ``(winner, ranked)``."""
    if not scored:
        raise NoViableEndpoints("detailed", "Detailed probing found no reachable candidate")
    ranked = tuple(sorted(scored, key=lambda s: (s.composite_score, s.endpoint.sequence_index)))
    return ranked[0], ranked
