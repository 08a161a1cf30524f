"""JSON and CSV export for selection results."""

from __future__ import annotations

import csv
import io
import json

from fastmirror.errors import NoViableEndpoints
from fastmirror.models import AggregatedResult, ProbeResult, SelectionOutcome


def export_json(outcome: SelectionOutcome, indent: int = 2) -> str:
    """Export the outcome as a JSON string."""
    data = _build_export_dict(outcome)
    return json.dumps(data, indent=indent, default=str)


def export_csv(outcome: SelectionOutcome) -> str:
    """Export one row per endpoint with its preliminary and detailed readings."""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([
        "timestamp",
        "rank",
        "name",
        "url",
        "origin",
        "preliminary_status",
        "preliminary_latency_ms",
        "preliminary_technique",
        "candidate",
        "median_latency_ms",
        "median_load_time_ms",
        "latency_stability",
        "load_time_stability",
        "samples_ok",
        "samples_total",
        "score",
        "winner",
    ])

    ranks = {s.endpoint.sequence_index: (rank, s) for rank, s in enumerate(outcome.ranked, 1)}
    candidates = {c.sequence_index for c in outcome.candidates}
    detailed = {
        e.endpoint.sequence_index: e.result
        for e in outcome.snapshot
        if isinstance(e.result, AggregatedResult)
    }

    for prelim in outcome.preliminary:
        index = prelim.endpoint.sequence_index
        rank, scored = ranks.get(index, ("", None))
        agg = detailed.get(index)
        row = [
            outcome.timestamp or "",
            rank,
            prelim.endpoint.display_name,
            prelim.endpoint.url,
            prelim.endpoint.origin,
            prelim.status.value,
            prelim.latency_ms if prelim.latency_ms is not None else "",
            prelim.technique.value if prelim.technique else "",
            index in candidates,
        ]
        if agg is not None:
            row.extend([
                agg.median_latency if agg.median_latency is not None else "",
                agg.median_load_time if agg.median_load_time is not None else "",
                round(agg.latency_stability, 2),
                round(agg.load_time_stability, 2),
                len(agg.sample_latencies),
                agg.attempts,
            ])
        else:
            row.extend([""] * 6)
        row.append(round(scored.composite_score, 2) if scored else "")
        row.append(index == outcome.winner.endpoint.sequence_index)
        writer.writerow(row)

    return output.getvalue()


def export_error_json(error: NoViableEndpoints, indent: int = 2) -> str:
    """Export a failed selection as a JSON object."""
    return json.dumps(_build_error_dict(error), indent=indent)


def export_error_csv(error: NoViableEndpoints) -> str:
    """Export a failed selection as a one-row CSV."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=["error", "phase", "message"])
    writer.writeheader()
    writer.writerow(_build_error_dict(error))
    return output.getvalue()


def write_to_file(content: str, filepath: str) -> None:
    """Write export content to a file."""
    with open(filepath, "w") as f:
        f.write(content)


def _build_export_dict(outcome: SelectionOutcome) -> dict:
    """Build a serializable dictionary from a SelectionOutcome."""
    data: dict = {}

    if outcome.timestamp:
        data["timestamp"] = outcome.timestamp

    if outcome.config:
        cfg = outcome.config
        data["config"] = {
            "default_timeout_ms": cfg.default_timeout_ms,
            "preliminary_timeout_ms": cfg.preliminary_timeout_ms,
            "final_timeout_ms": cfg.final_timeout_ms,
            "tests_per_endpoint": cfg.tests_per_endpoint,
            "min_candidates": cfg.min_candidates,
            "max_candidates": cfg.max_candidates,
            "probe_delay_ms": cfg.probe_delay_ms,
            "concurrency": cfg.pool_limit,
        }

    winner = outcome.winner
    data["winner"] = {
        "name": winner.endpoint.display_name,
        "url": winner.endpoint.url,
        "score": round(winner.composite_score, 2),
    }
    data["candidates"] = [c.url for c in outcome.candidates]
    data["ranked"] = [
        {**_aggregate_to_dict(s.aggregated), "score": round(s.composite_score, 2)}
        for s in outcome.ranked
    ]
    data["preliminary"] = [_probe_to_dict(r) for r in outcome.preliminary]
    return data


def _build_error_dict(error: NoViableEndpoints) -> dict:
    return {"error": error.kind, "phase": error.phase, "message": error.message}


def _probe_to_dict(result: ProbeResult) -> dict:
    pdata: dict = {
        "name": result.endpoint.display_name,
        "url": result.endpoint.url,
        "origin": result.endpoint.origin,
        "status": result.status.value,
        "technique": result.technique.value if result.technique else None,
        "latency_ms": result.latency_ms,
        "load_time_ms": result.load_time_ms,
        "error": result.error,
    }
    if result.timing is not None:
        t = result.timing
        pdata["timing"] = {
            "dns_ms": t.dns_ms,
            "tcp_ms": t.tcp_ms,
            "tls_ms": t.tls_ms,
            "ttfb_ms": t.ttfb_ms,
            "total_ms": t.total_ms,
        }
    return pdata


def _aggregate_to_dict(agg: AggregatedResult) -> dict:
    return {
        "name": agg.endpoint.display_name,
        "url": agg.endpoint.url,
        "status": agg.status.value,
        "median_latency_ms": agg.median_latency,
        "median_load_time_ms": agg.median_load_time,
        "latency_stability": round(agg.latency_stability, 2),
        "load_time_stability": round(agg.load_time_stability, 2),
        "sample_latencies": list(agg.sample_latencies),
        "sample_load_times": list(agg.sample_load_times),
        "attempts": agg.attempts,
    }
