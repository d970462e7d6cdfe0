"""Terminal (rich) and Markdown rendering of an analysis run."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from jvm_triage.models import BYTES_PER_MB, AggregateStats, GcStats, Verdict
from jvm_triage.ranking import RankedLabels

NO_DATA = "no data"

# ============================================================
# FORMATTING HELPERS
# ============================================================


def format_bytes_human(size_bytes: int) -> str:
    """Format bytes to human-readable size."""
    if size_bytes >= 1024**3:
        return f"{size_bytes / (1024**3):.1f}G"
    if size_bytes >= 1024**2:
        return f"{size_bytes / (1024**2):.1f}M"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f}K"
    return f"{size_bytes}B"


def format_millis(millis: float | None) -> str:
    if millis is None:
        return NO_DATA
    if millis >= 1000:
        return f"{millis:.2f} ms ({millis / 1000:.2f}s)"
    return f"{millis:.2f} ms"


def format_percent(percent: float | None) -> str:
    return NO_DATA if percent is None else f"{percent:.1f}%"


# ============================================================
# ROW BUILDERS (shared by rich and Markdown output)
# ============================================================


def build_overview_rows(stats: AggregateStats) -> list[tuple[str, str]]:
    return [
        ("Total events", f"{stats.total_events}"),
        ("Events skipped for a metric", f"{stats.degraded_events}"),
    ]


def build_gc_rows(gc: GcStats) -> list[tuple[str, str]]:
    """Build GC pause rows; a run without pauses reports no data."""
    if gc.count == 0:
        return [("GC pauses", NO_DATA)]
    return [
        ("GC pauses", f"{gc.count}"),
        ("Total pause time", format_millis(gc.total_pause_millis)),
        ("Average pause", format_millis(gc.avg_pause_millis)),
        ("Max pause", format_millis(gc.max_pause_millis)),
    ]


def build_allocation_rows(stats: AggregateStats) -> list[tuple[str, str]]:
    allocation = stats.allocation
    if allocation.total_bytes == 0 and allocation.by_class.is_empty:
        return [("Total allocated", NO_DATA)]
    return [
        (
            "Total allocated",
            f"{allocation.total_mb:.2f} MB ({allocation.total_bytes} bytes)",
        ),
    ]


def build_cpu_rows(stats: AggregateStats) -> list[tuple[str, str]]:
    cpu = stats.cpu
    rows = [
        ("CPU load samples", f"{cpu.sample_count}" if cpu.sample_count else NO_DATA),
        ("Max JVM CPU", format_percent(cpu.max_percent if cpu.sample_count else None)),
        ("Average JVM CPU", format_percent(cpu.avg_percent)),
        (
            "Execution samples",
            f"{cpu.execution_sample_count}" if cpu.execution_sample_count else NO_DATA,
        ),
    ]
    return rows


def build_concurrency_rows(stats: AggregateStats) -> list[tuple[str, str]]:
    contention = stats.contention
    return [
        ("Deadlocks detected", f"{stats.deadlock_count}"),
        (
            "Contention events",
            f"{contention.event_count}" if contention.event_count else NO_DATA,
        ),
        (
            "Peak events on one monitor",
            f"{contention.max_monitor_count}" if contention.event_count else NO_DATA,
        ),
    ]


def build_heap_rows(stats: AggregateStats) -> list[tuple[str, str]]:
    heap = stats.heap
    if heap.sample_count == 0:
        return [("Heap snapshots", NO_DATA)]
    return [
        ("Heap snapshots", f"{heap.sample_count}"),
        ("Average heap used", f"{heap.avg_used_mb:.1f} MB"),
        ("Max heap used", f"{heap.max_used_mb:.1f} MB"),
    ]


def build_hotspot_rows(
    ranking: RankedLabels, top_n: int, describe: Callable[[int], str]
) -> list[tuple[str, str, str]]:
    """Build ``(rank, label, value)`` rows for the top entries of a ranking."""
    return [
        (f"{index}", entry.label, describe(entry.weight))
        for index, entry in enumerate(ranking.top_n(top_n), start=1)
    ]


def build_method_hotspot_rows(stats: AggregateStats, top_n: int) -> list[tuple[str, str, str]]:
    total = stats.cpu.execution_sample_count

    def describe(samples: int) -> str:
        share = samples / total * 100 if total else 0.0
        return f"{samples} samples ({share:.1f}% of total)"

    return build_hotspot_rows(stats.cpu.by_method, top_n, describe)


def build_class_hotspot_rows(stats: AggregateStats, top_n: int) -> list[tuple[str, str, str]]:
    return build_hotspot_rows(
        stats.allocation.by_class,
        top_n,
        lambda size: f"{size / BYTES_PER_MB:.2f} MB ({format_bytes_human(size)})",
    )


def build_monitor_hotspot_rows(stats: AggregateStats, top_n: int) -> list[tuple[str, str, str]]:
    return build_hotspot_rows(
        stats.contention.by_monitor, top_n, lambda count: f"{count} contention events"
    )


def build_verdict_rows(verdict: Verdict) -> list[tuple[str, str]]:
    return [
        ("Primary bottleneck", verdict.category),
        ("Score", f"{verdict.score}/3"),
        (
            "Category scores",
            f"Concurrency {verdict.scores.concurrency}, "
            f"CPU {verdict.scores.cpu}, GC {verdict.scores.gc}",
        ),
        ("Next action", verdict.recommendation),
    ]


def build_next_steps(stats: AggregateStats, top_n: int) -> list[str]:
    """Expert checklist that follows the verdict."""
    return [
        "Primary focus: carry out the next action from the verdict above.",
        f"CPU: observed max JVM CPU {stats.cpu.max_percent:.1f}%. If above 80%, profile the "
        f"top {top_n} methods for inefficient loops or data structures.",
        f"Memory: total allocation volume {stats.allocation.total_mb:.2f} MB. If high, examine "
        f"the top {top_n} allocating classes to reduce object churn.",
        f"Concurrency: deadlock count {stats.deadlock_count}. Any deadlock is a bug; heavy "
        "contention on the top monitors calls for java.util.concurrent primitives.",
        "Once the primary issue is resolved, record again and rerun to find the next bottleneck.",
    ]


def determine_overall_status(verdict: Verdict) -> tuple[str, str]:
    """Determine overall status text and style token."""
    if verdict.score >= 3:
        return f"CRITICAL - {verdict.category} bottleneck", "critical"
    if verdict.score > 0:
        return f"DEGRADED - {verdict.category} bottleneck", "warning"
    return "STABLE - no bottleneck identified", "success"


# ============================================================
# RICH OUTPUT
# ============================================================

JVM_TRIAGE_THEME = Theme(
    {
        "critical": "bold red",
        "warning": "bold yellow",
        "success": "bold green",
        "info": "cyan",
        "metric": "white",
        "label": "dim white",
        "header": "bold magenta",
    }
)

console = Console(theme=JVM_TRIAGE_THEME)


def create_key_value_table(title: str, rows: list[tuple[str, str]]) -> Table:
    """Create a simple two-column key/value table."""
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="label")
    table.add_column("Value", style="metric")
    for label, value in rows:
        table.add_row(escape(label), escape(value))
    return table


def create_hotspot_table(title: str, rows: list[tuple[str, str, str]], empty_note: str) -> Table:
    table = Table(title=title, header_style="header")
    table.add_column("#", justify="right", style="label")
    table.add_column("Label", style="metric")
    table.add_column("Weight", style="info")
    if not rows:
        table.add_row("", f"[label]{empty_note}[/label]", "")
    for rank, label, value in rows:
        table.add_row(rank, escape(label), value)
    return table


def render_rich_output(
    stats: AggregateStats,
    verdict: Verdict,
    *,
    source_name: str,
    top_n: int = 5,
    gc_log_stats: GcStats | None = None,
    out: Console | None = None,
) -> None:
    """Render the full report using Rich components."""
    out = out or console

    out.print()
    out.print(Panel(f"JVM Triage: {escape(source_name)}", style="header", expand=True))
    out.print()

    out.print(create_key_value_table("Event Collection", build_overview_rows(stats)))
    out.print()

    out.print(create_key_value_table("A. CPU Performance", build_cpu_rows(stats)))
    out.print(
        create_hotspot_table(
            f"Top {top_n} Methods by Execution Samples",
            build_method_hotspot_rows(stats, top_n),
            "No execution samples; CPU hotspots unavailable",
        )
    )
    out.print()

    out.print(
        create_key_value_table(
            "B. Memory & GC",
            build_gc_rows(stats.gc) + build_allocation_rows(stats) + build_heap_rows(stats),
        )
    )
    out.print(
        create_hotspot_table(
            f"Top {top_n} Classes by Allocated Bytes",
            build_class_hotspot_rows(stats, top_n),
            "No allocation samples; allocation hotspots unavailable",
        )
    )
    if gc_log_stats is not None:
        out.print(create_key_value_table("GC Log (heuristic)", build_gc_rows(gc_log_stats)))
    out.print()

    out.print(create_key_value_table("C. Concurrency", build_concurrency_rows(stats)))
    out.print(
        create_hotspot_table(
            f"Top {top_n} Contended Monitors",
            build_monitor_hotspot_rows(stats, top_n),
            "No contention events recorded",
        )
    )
    out.print()

    status, status_style = determine_overall_status(verdict)
    out.print(
        Panel(
            create_key_value_table("", build_verdict_rows(verdict)),
            title="D. Primary Bottleneck",
            border_style=status_style,
        )
    )
    steps = "\n".join(
        f"{index}) {step}" for index, step in enumerate(build_next_steps(stats, top_n), start=1)
    )
    out.print(Panel(steps, title="Suggested Next Steps", border_style="info"))
    out.print(Panel(status, title="Overall Status", border_style=status_style))


# ============================================================
# MARKDOWN EXPORT
# ============================================================


def _markdown_code_cell(label: str) -> str:
    """Wrap ``label`` in a code span that survives a GFM table cell."""
    cell = label.replace("|", "\\|")
    longest_run = max((len(run) for run in re.findall(r"`+", cell)), default=0)
    fence = "`" * (longest_run + 1)
    if cell.startswith("`") or cell.endswith("`"):
        cell = f" {cell} "
    return f"{fence}{cell}{fence}"


def _markdown_hotspots(md_content: list[str], title: str, rows: list[tuple[str, str, str]]) -> None:
    md_content.append(f"### {title}\n\n")
    if not rows:
        md_content.append(f"_{NO_DATA}_\n\n")
        return
    md_content.append("| # | Label | Weight |\n|---|-------|--------|\n")
    for rank, label, value in rows:
        md_content.append(f"| {rank} | {_markdown_code_cell(label)} | {value} |\n")
    md_content.append("\n")


def render_markdown(
    stats: AggregateStats,
    verdict: Verdict,
    *,
    source_name: str,
    top_n: int = 5,
    gc_log_stats: GcStats | None = None,
) -> str:
    """Render the report as a Markdown document."""
    md_content: list[str] = []

    md_content.append("# JVM Triage Report\n\n")
    md_content.append(f"**Generated:** {datetime.now().isoformat()}\n\n")
    md_content.append(f"**Source:** {source_name}\n\n")

    md_content.append("## Primary Bottleneck\n\n")
    for label, value in build_verdict_rows(verdict):
        md_content.append(f"- **{label}:** {value}\n")
    md_content.append("\n")

    sections = [
        ("Event Collection", build_overview_rows(stats)),
        ("CPU Performance", build_cpu_rows(stats)),
        (
            "Memory & GC",
            build_gc_rows(stats.gc) + build_allocation_rows(stats) + build_heap_rows(stats),
        ),
        ("Concurrency", build_concurrency_rows(stats)),
    ]
    if gc_log_stats is not None:
        sections.append(("GC Log (heuristic)", build_gc_rows(gc_log_stats)))
    for title, rows in sections:
        md_content.append(f"## {title}\n\n")
        for label, value in rows:
            md_content.append(f"- **{label}:** {value}\n")
        md_content.append("\n")

    md_content.append("## Hotspots\n\n")
    _markdown_hotspots(
        md_content, f"Top {top_n} CPU Methods", build_method_hotspot_rows(stats, top_n)
    )
    _markdown_hotspots(
        md_content, f"Top {top_n} Allocating Classes", build_class_hotspot_rows(stats, top_n)
    )
    _markdown_hotspots(
        md_content, f"Top {top_n} Contended Monitors", build_monitor_hotspot_rows(stats, top_n)
    )

    md_content.append("## Suggested Next Steps\n\n")
    for index, step in enumerate(build_next_steps(stats, top_n), start=1):
        md_content.append(f"{index}. {step}\n")

    return "".join(md_content)


def export_markdown_summary(
    stats: AggregateStats,
    verdict: Verdict,
    output_path: Path,
    *,
    source_name: str,
    top_n: int = 5,
    gc_log_stats: GcStats | None = None,
) -> None:
    """Write the Markdown report to ``output_path``."""
    output_path.write_text(
        render_markdown(
            stats, verdict, source_name=source_name, top_n=top_n, gc_log_stats=gc_log_stats
        ),
        encoding="utf-8",
    )
