"""Tests for JSON and CSV export."""

from __future__ import annotations

import csv
import io
import json

import pytest

from fastmirror.errors import NoViableEndpoints
from fastmirror.export import export_csv, export_error_csv, export_error_json, export_json, write_to_file
from fastmirror.models import (
    AggregateStatus,
    AggregatedResult,
    ProbeResult,
    ProbeStatus,
    ReadingEvent,
    ScoredResult,
    SelectionConfig,
    SelectionOutcome,
    Technique,
    TimingBreakdown,
)
from tests.helpers import make_endpoint


@pytest.fixture
def outcome() -> SelectionOutcome:
    a = make_endpoint("https://a.example.com/", 0, "Alpha")
    b = make_endpoint("https://b.example.com/", 1, "Beta")
    c = make_endpoint("https://c.example.com/", 2, "Gamma")

    preliminary = (
        ProbeResult(
            endpoint=a,
            status=ProbeStatus.SUCCESS,
            technique=Technique.RESOURCE_TIMING,
            latency_ms=48,
            timing=TimingBreakdown(dns_ms=5.0, tcp_ms=12.0, tls_ms=20.0, ttfb_ms=11.0),
        ),
        ProbeResult(endpoint=b, status=ProbeStatus.SUCCESS, technique=Technique.CONTENT_FETCH, latency_ms=55, load_time_ms=90),
        ProbeResult(endpoint=c, status=ProbeStatus.TIMEOUT, error="No response within 2000ms"),
    )
    agg_a = AggregatedResult(
        endpoint=a, status=AggregateStatus.SUCCESS, sample_latencies=(50, 52, 51),
        median_latency=51, latency_stability=0.26, attempts=3,
    )
    agg_b = AggregatedResult(
        endpoint=b, status=AggregateStatus.SUCCESS, sample_latencies=(60, 58),
        sample_load_times=(95, 99), median_latency=59, median_load_time=97,
        latency_stability=0.29, load_time_stability=0.43, attempts=3,
    )
    ranked = (ScoredResult(agg_a, 51.13), ScoredResult(agg_b, 82.1))
    snapshot = (
        ReadingEvent(endpoint=a, phase="detailed", result=agg_a),
        ReadingEvent(endpoint=b, phase="detailed", result=agg_b),
        ReadingEvent(endpoint=c, phase="preliminary", result=preliminary[2]),
    )
    return SelectionOutcome(
        winner=ranked[0],
        ranked=ranked,
        candidates=(a, b),
        preliminary=preliminary,
        snapshot=snapshot,
        config=SelectionConfig(concurrency=4),
        timestamp="2026-01-01T00:00:00+00:00",
    )


class TestJson:
    def test_structure(self, outcome: SelectionOutcome) -> None:
        data = json.loads(export_json(outcome))
        assert data["timestamp"] == "2026-01-01T00:00:00+00:00"
        assert data["winner"] == {"name": "Alpha", "url": "https://a.example.com/", "score": 51.13}
        assert data["candidates"] == ["https://a.example.com/", "https://b.example.com/"]
        assert data["config"]["concurrency"] == 4
        assert data["config"]["tests_per_endpoint"] == 3

    def test_ranked_entries(self, outcome: SelectionOutcome) -> None:
        ranked = json.loads(export_json(outcome))["ranked"]
        assert [r["name"] for r in ranked] == ["Alpha", "Beta"]
        assert ranked[1]["median_load_time_ms"] == 97
        assert ranked[1]["sample_load_times"] == [95, 99]

    def test_preliminary_includes_timing_and_errors(self, outcome: SelectionOutcome) -> None:
        preliminary = json.loads(export_json(outcome))["preliminary"]
        assert preliminary[0]["technique"] == "resource-timing"
        assert preliminary[0]["timing"]["total_ms"] == 48.0
        assert preliminary[2]["status"] == "timeout"
        assert preliminary[2]["latency_ms"] is None
        assert "timing" not in preliminary[2]


class TestCsv:
    def test_one_row_per_endpoint(self, outcome: SelectionOutcome) -> None:
        rows = list(csv.DictReader(io.StringIO(export_csv(outcome))))
        assert [r["name"] for r in rows] == ["Alpha", "Beta", "Gamma"]

    def test_winner_and_ranks(self, outcome: SelectionOutcome) -> None:
        rows = list(csv.DictReader(io.StringIO(export_csv(outcome))))
        assert [r["winner"] for r in rows] == ["True", "False", "False"]
        assert [r["rank"] for r in rows] == ["1", "2", ""]
        assert [r["candidate"] for r in rows] == ["True", "True", "False"]

    def test_detailed_columns(self, outcome: SelectionOutcome) -> None:
        rows = list(csv.DictReader(io.StringIO(export_csv(outcome))))
        assert rows[1]["median_load_time_ms"] == "97"
        assert rows[1]["samples_ok"] == "2"
        assert rows[1]["samples_total"] == "3"
        assert rows[2]["median_latency_ms"] == ""
        assert rows[2]["preliminary_status"] == "timeout"


def test_write_to_file(tmp_path, outcome: SelectionOutcome) -> None:
    target = tmp_path / "results.json"
    write_to_file(export_json(outcome), str(target))
    assert json.loads(target.read_text())["winner"]["name"] == "Alpha"


class TestErrorExport:
    def test_json(self) -> None:
        data = json.loads(export_error_json(NoViableEndpoints("detailed", "all candidates failed")))
        assert data == {"error": "no_viable_endpoints", "phase": "detailed", "message": "all candidates failed"}

    def test_csv_quotes_message(self) -> None:
        rows = list(csv.DictReader(io.StringIO(export_error_csv(NoViableEndpoints("preliminary", "none, at all")))))
        assert rows == [{"error": "no_viable_endpoints", "phase": "preliminary", "message": "none, at all"}]
