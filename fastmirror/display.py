"""Rich terminal output for fastmirror."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from fastmirror.config import LATENCY_BANDS, VERY_SLOW_STYLE
from fastmirror.models import (
    AggregatedResult,
    Endpoint,
    ProbeResult,
    ReadingEvent,
    ScoredResult,
    SelectionEvent,
    SelectionFailed,
    SelectionOutcome,
    WinnerSelected,
)
from fastmirror.stats import compute_stats

console = Console()


def latency_band(value: float) -> tuple[str, str]:
    """Return (label, Rich colour) for a latency in milliseconds."""
    for upper, label, color in LATENCY_BANDS:
        if value <= upper:
            return label, color
    return VERY_SLOW_STYLE


def _fmt_ms(value: Optional[float], colorize: bool = True) -> Text:
    """Format a millisecond value with optional color."""
    if value is None:
        return Text("\u2014", style="dim")
    text = f"{value:.0f}ms"
    if colorize:
        return Text(text, style=latency_band(value)[1])
    return Text(text)


def _fmt_probe(result: ProbeResult) -> Text:
    if result.ok:
        return _fmt_ms(result.latency_ms)
    return Text(result.status.value.replace("_", " "), style="red")


def _fmt_aggregate(result: AggregatedResult) -> Text:
    if result.ok:
        return _fmt_ms(result.median_latency)
    return Text("all samples failed", style="red")


# ── Progress tracking ─────────────────────────────────────────────────


class ProgressTracker:
    """Live table of readings, fed by engine events."""

    def __init__(self, endpoints: Sequence[Endpoint]):
        self.endpoints = list(endpoints)
        self.preliminary: dict[int, ProbeResult] = {}
        self.detailed: dict[int, AggregatedResult] = {}
        self.winner: Optional[int] = None
        self.live: Optional[Live] = None

    def _build_table(self) -> Table:
        table = Table(show_header=True, expand=False, border_style="dim")
        table.add_column("Mirror", style="bold")
        table.add_column("Origin", style="dim")
        table.add_column("Preliminary", justify="right")
        table.add_column("Detailed", justify="right")
        table.add_column("")

        for endpoint in self.endpoints:
            index = endpoint.sequence_index
            prelim = self.preliminary.get(index)
            detail = self.detailed.get(index)
            table.add_row(
                endpoint.display_name,
                endpoint.origin,
                _fmt_probe(prelim) if prelim else Text("testing…", style="yellow"),
                _fmt_aggregate(detail) if detail else Text(""),
                Text("fastest", style="bold green") if index == self.winner else Text(""),
            )
        return table

    def handle(self, event: SelectionEvent) -> None:
        if isinstance(event, ReadingEvent):
            index = event.endpoint.sequence_index
            if isinstance(event.result, ProbeResult):
                self.preliminary[index] = event.result
            else:
                self.detailed[index] = event.result
        elif isinstance(event, WinnerSelected):
            self.winner = event.winner.endpoint.sequence_index
        elif isinstance(event, SelectionFailed):
            self.winner = None
        if self.live:
            self.live.update(self._build_table())

    def start(self) -> None:
        self.live = Live(self._build_table(), console=console, refresh_per_second=4)
        self.live.start()

    def finish(self) -> None:
        if self.live:
            self.live.stop()


# ── Result rendering ──────────────────────────────────────────────────


def _build_ranking_table(ranked: Sequence[ScoredResult], verbose: bool = False) -> Table:
    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        pad_edge=True,
        header_style="bold",
        title="[bold]Candidates[/bold] [dim](sorted by composite score, lower is better)[/dim]",
        title_style="",
    )
    table.add_column("#", justify="right", width=3, style="dim")
    table.add_column("Mirror", style="bold", min_width=12)
    table.add_column("Score", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("Stability", justify="right")
    table.add_column("Samples", justify="right")
    if verbose:
        table.add_column("Min", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Jitter", justify="right")

    for rank, scored in enumerate(ranked, 1):
        agg = scored.aggregated
        row = [
            str(rank),
            agg.endpoint.display_name,
            Text(f"{scored.composite_score:.1f}"),
            _fmt_ms(agg.median_latency),
            _fmt_ms(agg.median_load_time),
            Text(f"{agg.latency_stability:.1f}%", style="dim"),
            Text(f"{len(agg.sample_latencies)}/{agg.attempts}", style="dim"),
        ]
        if verbose:
            stats = compute_stats(agg.sample_latencies)
            row.extend([_fmt_ms(stats.min), _fmt_ms(stats.max), _fmt_ms(stats.jitter, colorize=False)])
        table.add_row(*row)
    return table


def render_outcome(outcome: SelectionOutcome, verbose: bool = False) -> None:
    """Render the ranking and the winner."""
    console.print()
    console.print(_build_ranking_table(outcome.ranked, verbose))

    if verbose:
        for result in outcome.preliminary:
            if result.timing is None:
                continue
            t = result.timing
            console.print(
                f"  [dim]{result.endpoint.display_name}: DNS {t.dns_ms:.1f}ms | TCP {t.tcp_ms:.1f}ms"
                f" | TLS {t.tls_ms:.1f}ms | TTFB {t.ttfb_ms:.1f}ms[/dim]"
            )

    winner = outcome.winner
    label, color = latency_band(winner.aggregated.median_latency or 0)
    console.print(
        f"\n[bold]Fastest:[/bold] [{color}]{winner.endpoint.display_name}[/{color}] "
        f"{winner.endpoint.url} [dim]({label}, score {winner.composite_score:.1f})[/dim]"
    )


def render_manual_selection(endpoints: Sequence[Endpoint], snapshot: Sequence[ReadingEvent] = ()) -> None:
    """List every endpoint so the user can pick one by hand."""
    readings = {event.endpoint.sequence_index: event for event in snapshot}
    console.print("\n[bold]Pick a mirror manually:[/bold]")
    for endpoint in endpoints:
        event = readings.get(endpoint.sequence_index)
        reading = ""
        if event is not None and event.latency_ms is not None:
            reading = f" [dim]({event.latency_ms}ms)[/dim]"
        console.print(f"  {endpoint.sequence_index + 1}. {endpoint.display_name} \u2014 {endpoint.url}{reading}")


def render_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def render_warning(message: str) -> None:
    """Display a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")
