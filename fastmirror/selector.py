"""Candidate selection from preliminary results.

A fixed percentile cut prunes too hard when the best mirror is already
excellent and too little when every mirror is mediocre.  The threshold
here scales with the best latency seen instead.
"""

from __future__ import annotations

import logging
from typing import Sequence

from fastmirror.config import THRESHOLD_BANDS, THRESHOLD_FALLBACK_MULTIPLIER
from fastmirror.errors import NoViableEndpoints
from fastmirror.models import Endpoint, ProbeResult

logger = logging.getLogger(__name__)

CandidateSet = tuple[Endpoint, ...]


def adaptive_threshold(min_latency: float) -> float:
    """Latency cut-off for candidates given the fastest latency seen."""
    for upper, multiplier in THRESHOLD_BANDS:
        if min_latency < upper:
            return min_latency * multiplier
    return min_latency * THRESHOLD_FALLBACK_MULTIPLIER


def _rank_key(result: ProbeResult) -> tuple[int, int]:
    return result.latency_ms, result.endpoint.sequence_index


def select_candidates(
    results: Sequence[ProbeResult],
    min_candidates: int,
    max_candidates: int,
) -> CandidateSet:
    """Narrow preliminary results to the endpoints worth sampling in detail.

    Successes within the adaptive threshold are kept, fastest first.  If
    that leaves fewer than *min_candidates*, the next-fastest successes
    fill up the set; it is then cut to *max_candidates*.

    Raises
    ------
    NoViableEndpoints
        If no result is a success.
    """
    successes = sorted((r for r in results if r.ok), key=_rank_key)
    if not successes:
        raise NoViableEndpoints("preliminary", "Preliminary probing found no reachable endpoint")

    threshold = adaptive_threshold(successes[0].latency_ms)
    within = [r for r in successes if r.latency_ms <= threshold]

    if len(within) < min_candidates:
        within = successes[:min_candidates]

    candidates = tuple(r.endpoint for r in within[:max_candidates])
    logger.info(
        "Threshold %.0fms kept %d of %d reachable endpoints",
        threshold,
        len(candidates),
        len(successes),
    )
    return candidates
