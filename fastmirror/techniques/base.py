"""Abstract base class for probe techniques."""

from __future__ import annotations

import abc
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from fastmirror.config import CACHE_BUST_PARAM
from fastmirror.models import Endpoint, Technique, TimingBreakdown


@dataclass(frozen=True)
class Reading:
    """What a technique hands back when it succeeds."""

    latency_ms: int
    load_time_ms: Optional[int] = None
    timing: Optional[TimingBreakdown] = None


class ProbeTechnique(abc.ABC):
    """Base class that each measurement technique must implement.

    ``measure`` returns a :class:`Reading` on success.  It signals
    everything else by raising one of the technique errors in
    :mod:`fastmirror.errors`; the prober decides what each one means for
    the race.
    """

    @property
    @abc.abstractmethod
    def technique(self) -> Technique:
        """Which technique this is."""

    @abc.abstractmethod
    async def measure(self, endpoint: Endpoint, timeout: float) -> Reading:
        """Measure *endpoint*, giving up after *timeout* seconds."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.technique.value}>"


def cache_busted(url: str) -> str:
    """Return *url* with a millisecond timestamp query parameter."""
    stamp = str(int(time.time() * 1000))
    return str(httpx.URL(url).copy_set_param(CACHE_BUST_PARAM, stamp))


def elapsed_ms(start: float, end: float) -> int:
    return round((end - start) * 1000.0)
