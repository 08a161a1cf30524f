"""Statistical reduction of latency samples."""

from __future__ import annotations

import math
from typing import Sequence

from fastmirror.config import OUTLIER_DEVIATION
from fastmirror.models import LatencyStats


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def median(values: Sequence[int]) -> int:
    """Median of *values*; even counts average the two middle values, rounded half up."""
    if not values:
        raise ValueError("median of an empty sample set")
    sorted_vals = sorted(values)
    n = len(sorted_vals)
    mid = n // 2
    if n % 2:
        return int(sorted_vals[mid])
    return _round_half_up((sorted_vals[mid - 1] + sorted_vals[mid]) / 2)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _within(values: Sequence[int], centre: float, deviation: float) -> list[int]:
    limit = deviation * centre
    return [v for v in values if abs(v - centre) <= limit]


def filter_outliers(values: Sequence[int], deviation: float = OUTLIER_DEVIATION) -> list[int]:
    """Drop samples further than ``deviation * mean`` from the mean.

    Sets of two or fewer samples are returned unchanged.  If a single
    extreme sample drags the mean far enough that nothing is left inside
    the band, the band is re-centred on the median instead; if that still
    leaves nothing the samples are returned unchanged.
    """
    samples = list(values)
    if len(samples) <= 2:
        return samples

    kept = _within(samples, mean(samples), deviation)
    if not kept:
        kept = _within(samples, median(samples), deviation)
    return kept or samples


def stability_score(values: Sequence[float]) -> float:
    """Squared coefficient of variation as a percentage (0 is perfectly stable)."""
    if len(values) < 2:
        return 0.0
    avg = mean(values)
    if avg == 0:
        return 0.0
    variance = sum((v - avg) ** 2 for v in values) / len(values)
    return variance / (avg * avg) * 100.0


def compute_stats(values: Sequence[float]) -> LatencyStats:
    """Compute a display summary from a list of values."""
    if not values:
        return LatencyStats()

    sorted_vals = sorted(values)
    n = len(sorted_vals)

    avg = sum(sorted_vals) / n
    variance = sum((v - avg) ** 2 for v in sorted_vals) / n if n > 1 else 0.0

    return LatencyStats(
        min=sorted_vals[0],
        max=sorted_vals[-1],
        avg=round(avg, 2),
        median=round(_percentile(sorted_vals, 50), 2),
        stdev=round(math.sqrt(variance), 2),
        jitter=round(_compute_jitter(values), 2),
    )


def _percentile(sorted_vals: list[float], pct: float) -> float:
    """Compute the given percentile from pre-sorted values."""
    n = len(sorted_vals)
    if n == 1:
        return sorted_vals[0]
    k = (pct / 100) * (n - 1)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_vals[int(k)]
    return sorted_vals[f] * (c - k) + sorted_vals[c] * (k - f)


def _compute_jitter(values: Sequence[float]) -> float:
    """Average absolute difference between consecutive samples."""
    if len(values) < 2:
        return 0.0
    diffs = [abs(values[i + 1] - values[i]) for i in range(len(values) - 1)]
    return sum(diffs) / len(diffs)
