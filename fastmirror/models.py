"""Data models for fastmirror."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union

from fastmirror.config import (
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_MIN_CANDIDATES,
    DEFAULT_PROBE_DELAY_MS,
    DEFAULT_REDIRECT_DELAY_MS,
    DEFAULT_TESTS_PER_ENDPOINT,
    DEFAULT_TIMEOUT_MS,
    FINAL_TIMEOUT_MS,
    PRELIMINARY_TIMEOUT_MS,
)
from fastmirror.errors import NoViableEndpoints
from fastmirror.pool import default_limit


class Technique(str, enum.Enum):
    """Latency measurement technique raced inside a probe."""

    RESOURCE_TIMING = "resource-timing"
    CONTENT_FETCH = "content-fetch"
    IMAGE_LOAD = "image-load"


class ProbeStatus(str, enum.Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    INVALID_TARGET = "invalid_target"


class AggregateStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Endpoint:
    """A mirror URL with its display name and derived network origin."""

    url: str
    display_name: str
    origin: str
    sequence_index: int


@dataclass(frozen=True)
class TimingBreakdown:
    """Per-phase timing observed by the resource-timing technique."""

    dns_ms: float = 0.0
    tcp_ms: float = 0.0
    tls_ms: float = 0.0
    ttfb_ms: float = 0.0
    transfer_ms: float = 0.0

    @property
    def total_ms(self) -> float:
        return self.dns_ms + self.tcp_ms + self.tls_ms + self.ttfb_ms + self.transfer_ms


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single probe against one endpoint."""

    endpoint: Endpoint
    status: ProbeStatus
    technique: Optional[Technique] = None
    latency_ms: Optional[int] = None
    load_time_ms: Optional[int] = None
    timing: Optional[TimingBreakdown] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ProbeStatus.SUCCESS

    def for_endpoint(self, endpoint: Endpoint) -> ProbeResult:
        """Copy this reading onto another endpoint sharing the same origin."""
        return ProbeResult(
            endpoint=endpoint,
            status=self.status,
            technique=self.technique,
            latency_ms=self.latency_ms,
            load_time_ms=self.load_time_ms,
            timing=self.timing,
            error=self.error,
        )


@dataclass(frozen=True)
class AggregatedResult:
    """Reduction of repeated probes against one endpoint."""

    endpoint: Endpoint
    status: AggregateStatus
    sample_latencies: tuple[int, ...] = ()
    sample_load_times: tuple[int, ...] = ()
    median_latency: Optional[int] = None
    median_load_time: Optional[int] = None
    latency_stability: float = 0.0
    load_time_stability: float = 0.0
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status is AggregateStatus.SUCCESS

    @property
    def has_load_time(self) -> bool:
        return self.median_load_time is not None


@dataclass(frozen=True)
class ScoredResult:
    """An aggregated result with its composite score (lower is better)."""

    aggregated: AggregatedResult
    composite_score: float

    @property
    def endpoint(self) -> Endpoint:
        return self.aggregated.endpoint


@dataclass
class LatencyStats:
    """Summary statistics for display."""

    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    median: float = 0.0
    stdev: float = 0.0
    jitter: float = 0.0


@dataclass(frozen=True)
class SelectionConfig:
    """Configuration for a selection run.

    Passed explicitly into every component.  ``concurrency`` left as
    ``None`` derives the pool limit from the CPU count.
    """

    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    preliminary_timeout_ms: int = PRELIMINARY_TIMEOUT_MS
    final_timeout_ms: int = FINAL_TIMEOUT_MS
    tests_per_endpoint: int = DEFAULT_TESTS_PER_ENDPOINT
    min_candidates: int = DEFAULT_MIN_CANDIDATES
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    probe_delay_ms: int = DEFAULT_PROBE_DELAY_MS
    redirect_delay_ms: int = DEFAULT_REDIRECT_DELAY_MS
    concurrency: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("default_timeout_ms", "preliminary_timeout_ms", "final_timeout_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.tests_per_endpoint < 1:
            raise ValueError("tests_per_endpoint must be at least 1")
        if self.min_candidates < 1:
            raise ValueError("min_candidates must be at least 1")
        if self.min_candidates > self.max_candidates:
            raise ValueError("min_candidates cannot exceed max_candidates")
        if self.probe_delay_ms < 0 or self.redirect_delay_ms < 0:
            raise ValueError("delays cannot be negative")
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    @property
    def pool_limit(self) -> int:
        """Probes in flight: *concurrency* or the CPU count, clamped to [2, 6]."""
        return default_limit(self.concurrency)


# ── Events for the presentation layer ─────────────────────────────────


@dataclass(frozen=True)
class ReadingEvent:
    """A new latency reading for one endpoint."""

    endpoint: Endpoint
    phase: str  # preliminary | detailed
    result: Union[ProbeResult, AggregatedResult]

    @property
    def latency_ms(self) -> Optional[int]:
        if isinstance(self.result, ProbeResult):
            return self.result.latency_ms
        return self.result.median_latency


@dataclass(frozen=True)
class WinnerSelected:
    winner: ScoredResult
    ranked: tuple[ScoredResult, ...]


@dataclass(frozen=True)
class SelectionFailed:
    error: NoViableEndpoints

    @property
    def kind(self) -> str:
        return self.error.kind


SelectionEvent = Union[ReadingEvent, WinnerSelected, SelectionFailed]


@dataclass(frozen=True)
class SelectionOutcome:
    """Everything a successful run produced."""

    winner: ScoredResult
    ranked: tuple[ScoredResult, ...]
    candidates: tuple[Endpoint, ...]
    preliminary: tuple[ProbeResult, ...]
    snapshot: tuple[ReadingEvent, ...] = field(default_factory=tuple)
    config: Optional[SelectionConfig] = None
    timestamp: Optional[str] = None
