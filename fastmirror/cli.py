"""CLI entry point and orchestration for fastmirror."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

import click
from rich.logging import RichHandler

from fastmirror import __version__
from fastmirror.config import (
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_MIN_CANDIDATES,
    DEFAULT_PROBE_DELAY_MS,
    DEFAULT_REDIRECT_DELAY_MS,
    DEFAULT_TESTS_PER_ENDPOINT,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_URLS,
    FINAL_TIMEOUT_MS,
    PRELIMINARY_TIMEOUT_MS,
    URLS_ENV_VAR,
)
from fastmirror.errors import NoViableEndpoints
from fastmirror.models import Endpoint, SelectionConfig, SelectionOutcome
from fastmirror.registry import parse_endpoints, parse_url_list
from fastmirror.techniques import get_technique, list_techniques

logger = logging.getLogger("fastmirror")


@click.command()
@click.argument("urls", nargs=-1)
@click.option("-f", "--file", "url_file", type=click.Path(exists=True, dir_okay=False), help="Read mirror entries from a file")
@click.option("--timeout", default=DEFAULT_TIMEOUT_MS, help="Probe timeout in ms when no phase timeout applies", show_default=True)
@click.option("--preliminary-timeout", default=PRELIMINARY_TIMEOUT_MS, help="Preliminary probe timeout in ms", show_default=True)
@click.option("--final-timeout", default=FINAL_TIMEOUT_MS, help="Detailed probe timeout in ms", show_default=True)
@click.option("-n", "--tests", default=DEFAULT_TESTS_PER_ENDPOINT, help="Detailed samples per candidate", show_default=True)
@click.option("--min-candidates", default=DEFAULT_MIN_CANDIDATES, help="Fewest candidates kept after the preliminary pass", show_default=True)
@click.option("--max-candidates", default=DEFAULT_MAX_CANDIDATES, help="Most candidates kept after the preliminary pass", show_default=True)
@click.option("-d", "--delay", default=DEFAULT_PROBE_DELAY_MS, help="Delay between sample admissions in ms", show_default=True)
@click.option("--redirect-delay", default=DEFAULT_REDIRECT_DELAY_MS, help="Pause before opening the winner in ms", show_default=True)
@click.option("-c", "--concurrency", default=None, type=int, help="Probes in flight, clamped to 2-6 [default: from CPU count]")
@click.option(
    "-T", "--technique", "techniques", multiple=True,
    type=click.Choice(list_techniques()), help="Techniques to race [default: all]",
)
@click.option("--path", default="", help="Path and query to append to the winning URL")
@click.option("--open", "open_browser", is_flag=True, help="Open the winner in a browser")
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout")
@click.option("--csv", "csv_output", is_flag=True, help="Output CSV to stdout")
@click.option("-o", "--output", default=None, help="Write results to file")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress, print only the winning URL")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging and per-sample details")
@click.version_option(version=__version__)
def main(
    urls: tuple[str, ...],
    url_file: Optional[str],
    timeout: int,
    preliminary_timeout: int,
    final_timeout: int,
    tests: int,
    min_candidates: int,
    max_candidates: int,
    delay: int,
    redirect_delay: int,
    concurrency: Optional[int],
    techniques: tuple[str, ...],
    path: str,
    open_browser: bool,
    json_output: bool,
    csv_output: bool,
    output: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """fastmirror — pick the fastest mirror from where you are.

    Probes every mirror once per origin, narrows the field with an
    adaptive threshold, samples the survivors several times and picks the
    best composite score.  Entries look like ``https://host/path#Name``.
    """
    interactive = not quiet and not json_output and not csv_output
    _configure_logging(verbose=verbose, silent=not interactive and not verbose)

    from fastmirror.display import render_error, render_warning

    if interactive:
        for var in ("HTTP_PROXY", "HTTPS_PROXY", "http_proxy", "https_proxy"):
            if os.environ.get(var):
                render_warning(f"Proxy detected ({var}) — timings include the proxy hop")
                break

    try:
        config = SelectionConfig(
            default_timeout_ms=timeout,
            preliminary_timeout_ms=preliminary_timeout,
            final_timeout_ms=final_timeout,
            tests_per_endpoint=tests,
            min_candidates=min_candidates,
            max_candidates=max_candidates,
            probe_delay_ms=delay,
            redirect_delay_ms=redirect_delay,
            concurrency=concurrency,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    endpoints = parse_endpoints(_collect_entries(urls, url_file))
    if not endpoints:
        render_error("No valid mirror URLs to test")
        sys.exit(1)

    try:
        outcome = asyncio.run(_run(endpoints, config, techniques, interactive))
    except KeyboardInterrupt:
        if interactive:
            from fastmirror.display import console
            console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except NoViableEndpoints as exc:
        _handle_failure(exc, endpoints, json_output, csv_output)
        sys.exit(1)

    _handle_output(outcome, config, path, open_browser, json_output, csv_output, output, quiet, verbose)


def _configure_logging(verbose: bool, silent: bool) -> None:
    """Route fastmirror's loggers through Rich."""
    from fastmirror.display import console

    handler = RichHandler(console=console, show_path=False, show_time=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.handlers[:] = [handler]
    logger.propagate = False
    if verbose:
        logger.setLevel(logging.DEBUG)
    elif silent:
        logger.setLevel(logging.ERROR)
    else:
        logger.setLevel(logging.WARNING)


def _collect_entries(urls: tuple[str, ...], url_file: Optional[str]) -> list[str]:
    """Mirror entries from arguments, a file or the environment, in that order."""
    if urls:
        return list(urls)
    if url_file:
        lines = Path(url_file).read_text().splitlines()
        return [line.strip() for line in lines if line.strip() and not line.lstrip().startswith("#")]
    entries = parse_url_list(os.environ.get(URLS_ENV_VAR))
    if entries:
        logger.info("Loaded %d mirrors from %s", len(entries), URLS_ENV_VAR)
        return entries
    logger.warning("No mirrors configured, using the built-in list")
    return list(DEFAULT_URLS)


async def _run(
    endpoints: list[Endpoint],
    config: SelectionConfig,
    techniques: tuple[str, ...],
    interactive: bool,
) -> SelectionOutcome:
    """Main async orchestration."""
    from fastmirror.display import ProgressTracker, console
    from fastmirror.engine import SelectionRun
    from fastmirror.prober import Prober

    prober = Prober([get_technique(name) for name in techniques]) if techniques else Prober()

    progress = None
    if interactive:
        progress = ProgressTracker(endpoints)
        console.print(f"[bold]Testing {len(endpoints)} mirrors...[/bold]\n")
        progress.start()

    run = SelectionRun(endpoints, config, prober, on_event=progress.handle if progress else None)
    try:
        return await run.run()
    finally:
        if progress:
            progress.finish()


def _handle_failure(
    exc: NoViableEndpoints,
    endpoints: list[Endpoint],
    json_output: bool,
    csv_output: bool,
) -> None:
    """Report a failed selection in the requested format, or offer manual selection."""
    if json_output or csv_output:
        from fastmirror.export import export_error_csv, export_error_json

        click.echo(export_error_json(exc) if json_output else export_error_csv(exc))
        return

    from fastmirror.display import render_error, render_manual_selection

    render_error(exc.message)
    render_manual_selection(endpoints, exc.snapshot)


def _handle_output(
    outcome: SelectionOutcome,
    config: SelectionConfig,
    path: str,
    open_browser: bool,
    json_output: bool,
    csv_output: bool,
    output_file: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """Handle output rendering, export and the redirect."""
    from fastmirror.display import console, render_outcome
    from fastmirror.engine import redirect_target
    from fastmirror.export import export_csv, export_json, write_to_file

    target = redirect_target(outcome.winner.endpoint, *_split_path(path))

    if json_output or csv_output:
        content = export_json(outcome) if json_output else export_csv(outcome)
        if output_file:
            write_to_file(content, output_file)
            if not quiet:
                console.print(f"[dim]Results written to {output_file}[/dim]")
        else:
            click.echo(content)
    elif quiet:
        click.echo(target)
    else:
        render_outcome(outcome, verbose=verbose)
        if output_file:
            write_to_file(export_json(outcome), output_file)
            console.print(f"\n[dim]Results written to {output_file}[/dim]")

    if open_browser:
        import webbrowser

        if not quiet and not json_output and not csv_output:
            console.print(f"[dim]Opening {target} in {config.redirect_delay_ms / 1000:.1f}s...[/dim]")
        time.sleep(config.redirect_delay_ms / 1000.0)
        webbrowser.open(target)
    elif not quiet and not json_output and not csv_output:
        console.print(f"[bold]Go to:[/bold] {target}")


def _split_path(path: str) -> tuple[str, str]:
    """Split ``/a/b?x=1`` into its path and query parts."""
    route, sep, query = path.partition("?")
    return route, f"?{query}" if sep else ""


if __name__ == "__main__":
    main()
