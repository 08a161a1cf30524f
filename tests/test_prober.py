"""Tests for the technique race inside a single probe."""

from __future__ import annotations

from fastmirror.errors import (
    InconclusiveReading,
    TechniqueFailed,
    TechniqueTimeout,
    TechniqueUnavailable,
)
from fastmirror.models import ProbeStatus, Technique
from fastmirror.prober import Prober, is_probe_target
from fastmirror.techniques.base import Reading
from tests.helpers import ScriptedTechnique, make_endpoint

ENDPOINT = make_endpoint("https://mirror.example.com/pkg", 0, "Mirror")


def _fixed(delay: float, outcome, kind: Technique = Technique.CONTENT_FETCH) -> ScriptedTechnique:
    return ScriptedTechnique(lambda _: (delay, outcome), kind)


class TestProbeTarget:
    def test_http_urls_accepted(self) -> None:
        assert is_probe_target("https://example.com/a")
        assert is_probe_target("http://127.0.0.1:8080")

    def test_rejects_garbage(self) -> None:
        assert not is_probe_target("")
        assert not is_probe_target("mailto:someone@example.com")
        assert not is_probe_target("https://example.com:notaport/")


async def test_invalid_target_runs_no_technique() -> None:
    technique = _fixed(0, Reading(latency_ms=1))
    result = await Prober([technique]).probe(make_endpoint("ftp://files.example.com"), 200)
    assert result.status is ProbeStatus.INVALID_TARGET
    assert technique.calls == []


async def test_fastest_technique_wins_and_losers_cancelled() -> None:
    fast = _fixed(0.01, Reading(latency_ms=12), Technique.IMAGE_LOAD)
    slow = _fixed(5.0, Reading(latency_ms=999), Technique.CONTENT_FETCH)
    result = await Prober([slow, fast]).probe(ENDPOINT, 1000)
    assert result.ok
    assert result.technique is Technique.IMAGE_LOAD
    assert result.latency_ms == 12
    assert slow.cancelled == 1


async def test_load_time_carried_from_reading() -> None:
    technique = _fixed(0, Reading(latency_ms=30, load_time_ms=80))
    result = await Prober([technique]).probe(ENDPOINT, 200)
    assert result.latency_ms == 30
    assert result.load_time_ms == 80


async def test_inconclusive_reading_drops_out() -> None:
    inconclusive = _fixed(0, InconclusiveReading("HTTP 404"), Technique.CONTENT_FETCH)
    unavailable = _fixed(0, TechniqueUnavailable("proxy"), Technique.RESOURCE_TIMING)
    image = _fixed(0.02, Reading(latency_ms=40), Technique.IMAGE_LOAD)
    result = await Prober([inconclusive, unavailable, image]).probe(ENDPOINT, 500)
    assert result.ok
    assert result.technique is Technique.IMAGE_LOAD


async def test_all_dropped_out_is_network_error() -> None:
    techniques = [
        _fixed(0, InconclusiveReading("HTTP 500")),
        _fixed(0, TechniqueUnavailable("proxy"), Technique.RESOURCE_TIMING),
    ]
    result = await Prober(techniques).probe(ENDPOINT, 500)
    assert result.status is ProbeStatus.NETWORK_ERROR
    assert "HTTP 500" in result.error


async def test_unexpected_exception_drops_out() -> None:
    broken = _fixed(0, KeyError("bug"))
    working = _fixed(0.01, Reading(latency_ms=5), Technique.IMAGE_LOAD)
    result = await Prober([broken, working]).probe(ENDPOINT, 500)
    assert result.ok


async def test_first_definitive_failure_decides() -> None:
    failing = _fixed(0.01, TechniqueFailed("connection refused"))
    slow = _fixed(5.0, Reading(latency_ms=100), Technique.IMAGE_LOAD)
    result = await Prober([failing, slow]).probe(ENDPOINT, 1000)
    assert result.status is ProbeStatus.NETWORK_ERROR
    assert result.technique is Technique.CONTENT_FETCH
    assert slow.cancelled == 1


async def test_technique_timeout_is_timeout() -> None:
    result = await Prober([_fixed(0, TechniqueTimeout("read timed out"))]).probe(ENDPOINT, 500)
    assert result.status is ProbeStatus.TIMEOUT


async def test_deadline_cancels_everything() -> None:
    first = _fixed(10.0, Reading(latency_ms=1))
    second = _fixed(10.0, Reading(latency_ms=1), Technique.IMAGE_LOAD)
    result = await Prober([first, second]).probe(ENDPOINT, 50)
    assert result.status is ProbeStatus.TIMEOUT
    assert result.latency_ms is None
    assert first.cancelled == 1
    assert second.cancelled == 1


async def test_no_techniques_is_network_error() -> None:
    result = await Prober([]).probe(ENDPOINT, 100)
    assert result.status is ProbeStatus.NETWORK_ERROR
