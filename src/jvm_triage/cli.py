#!/usr/bin/env python3
"""JVM Triage - primary bottleneck diagnosis from JFR event streams.

Reads a recording exported with ``jfr print --json`` (or JSON Lines events),
aggregates it in a single pass and reports:
- CPU load and the hottest methods by execution samples
- GC pauses, allocation volume and the heaviest allocating classes
- Deadlocks and the most contended monitors
- One prioritized verdict (Concurrency > CPU > GC on ties) with a next action
- Optional heuristic GC log pause summary and Markdown export
"""

from __future__ import annotations

import logging
import sys
from importlib import metadata
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from jvm_triage.aggregator import Aggregator, aggregate
from jvm_triage.models import GcStats, TriageThresholds, Verdict
from jvm_triage.report import console, export_markdown_summary, render_rich_output
from jvm_triage.sources import EventSourceError, read_events, read_gc_log
from jvm_triage.triage import classify

try:
    __version__ = metadata.version("jvm-triage")
except metadata.PackageNotFoundError:
    __version__ = "0+unknown"

logger = logging.getLogger("jvm_triage")


def configure_logging(verbose: bool) -> None:
    """Route package logs through the shared rich console."""
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    logger.propagate = False


def exit_code_for(verdict: Verdict) -> int:
    """0 = no bottleneck, 1 = bottleneck scored 1-2, 2 = bottleneck scored 3."""
    if verdict.score >= 3:
        return 2
    if verdict.score > 0:
        return 1
    return 0


# ============================================================
# TYPER CLI INTERFACE
# ============================================================

app = typer.Typer(
    name="jvm-triage",
    help="Diagnose the dominant JVM bottleneck (CPU, GC or concurrency) from JFR events",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.command()
def analyze(
    events_file: Annotated[
        Path,
        typer.Argument(
            help="JFR events as 'jfr print --json' output or JSON Lines",
        ),
    ],
    gc_log: Annotated[
        Path | None,
        typer.Option(
            "--gc-log",
            help="GC log to summarize heuristically alongside the recording",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Export analysis report to Markdown file (e.g., report.md)",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
    top: Annotated[
        int,
        typer.Option("--top", "-k", help="Number of hotspot rows per ranking", min=1),
    ] = 5,
    cpu_critical: Annotated[
        float,
        typer.Option(
            "--cpu-critical",
            help="Max JVM CPU percentage scored as critical (default: 95.0)",
            min=0.0,
        ),
    ] = 95.0,
    gc_pause_critical: Annotated[
        float,
        typer.Option(
            "--gc-pause-critical",
            help="Max GC pause in milliseconds scored as critical (default: 1000.0)",
            min=0.0,
        ),
    ] = 1000.0,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output with parsing details"),
    ] = False,
) -> None:
    """Analyze a JFR event export and report the primary bottleneck.

    Exit codes: 0 = no bottleneck, 1 = moderate bottleneck or error, 2 = critical.
    """
    configure_logging(verbose)

    try:
        events = read_events(events_file)
        logger.info("Read %d events from %s", len(events), events_file)

        with Progress(
            SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console
        ) as progress:
            task = progress.add_task("[cyan]Aggregating events...", total=None)
            stats = Aggregator().consume_all(events).finalize()
            progress.update(task, completed=100)

        gc_log_stats: GcStats | None = None
        if gc_log is not None:
            pauses = read_gc_log(gc_log)
            logger.info("Found %d pause lines in %s", len(pauses), gc_log)
            gc_log_stats = aggregate(pauses).gc

        thresholds = TriageThresholds(
            cpu_critical_percent=cpu_critical, gc_pause_critical_millis=gc_pause_critical
        )
        verdict = classify(stats, thresholds)

        render_rich_output(
            stats,
            verdict,
            source_name=events_file.name,
            top_n=top,
            gc_log_stats=gc_log_stats,
        )

        if output:
            export_markdown_summary(
                stats,
                verdict,
                output,
                source_name=events_file.name,
                top_n=top,
                gc_log_stats=gc_log_stats,
            )
            console.print(f"\n[success]Summary exported to {escape(str(output))}[/success]")

    except EventSourceError as e:
        console.print(f"[critical]ERROR: {escape(str(e))}[/critical]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[critical]ERROR: {escape(str(e))}[/critical]")
        if verbose:
            console.print_exception()
        sys.exit(1)

    sys.exit(exit_code_for(verdict))


@app.command()
def version() -> None:
    """Display version."""
    console.print(f"jvm-triage {__version__}")


if __name__ == "__main__":
    app()
