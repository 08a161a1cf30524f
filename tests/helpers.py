"""Test doubles shared across the fastmirror test suite."""

from __future__ import annotations

import asyncio
from typing import Callable, Union

from fastmirror.models import Endpoint, Technique
from fastmirror.registry import derive_origin
from fastmirror.techniques.base import ProbeTechnique, Reading

Outcome = Union[Reading, BaseException]
Behaviour = Callable[[Endpoint], "tuple[float, Outcome]"]


def make_endpoint(url: str, index: int = 0, name: str | None = None) -> Endpoint:
    return Endpoint(url=url, display_name=name or url, origin=derive_origin(url), sequence_index=index)


class ScriptedTechnique(ProbeTechnique):
    """Technique whose answer per endpoint comes from a behaviour function.

    The behaviour returns ``(delay_seconds, outcome)``; an exception
    outcome is raised after the delay.
    """

    def __init__(self, behaviour: Behaviour, kind: Technique = Technique.CONTENT_FETCH) -> None:
        self._behaviour = behaviour
        self._kind = kind
        self.calls: list[Endpoint] = []
        self.cancelled = 0

    @property
    def technique(self) -> Technique:
        return self._kind

    async def measure(self, endpoint: Endpoint, timeout: float) -> Reading:
        self.calls.append(endpoint)
        delay, outcome = self._behaviour(endpoint)
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def latency_by_host(table: dict[str, Union[int, str]]) -> Behaviour:
    """Behaviour answering with a fixed latency per host.

    A value of ``"timeout"`` never answers within any test deadline.
    """

    def behaviour(endpoint: Endpoint) -> tuple[float, Outcome]:
        host = endpoint.origin.split("://", 1)[1]
        value = table[host]
        if value == "timeout":
            return 10.0, Reading(latency_ms=0)
        return 0.0, Reading(latency_ms=int(value))

    return behaviour
