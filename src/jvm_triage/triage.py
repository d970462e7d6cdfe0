"""Rule-based classification of aggregate statistics into one verdict.

Each category gets an integer score from 0 to 3. The highest score wins;
ties are resolved Concurrency first, then CPU, then GC, so a deadlock or
lock storm is never hidden behind an equally severe performance finding.
"""

from __future__ import annotations

from jvm_triage.models import (
    AggregateStats,
    BottleneckCategory,
    CategoryScores,
    TriageScore,
    TriageThresholds,
    Verdict,
)
from jvm_triage.ranking import RankedLabels

# Highest priority first.
CATEGORY_PRECEDENCE: tuple[BottleneckCategory, ...] = ("Concurrency", "CPU", "GC")

HOTSPOTS_IN_RECOMMENDATION = 3


def score_cpu(stats: AggregateStats, thresholds: TriageThresholds) -> TriageScore:
    peak = stats.cpu.max_percent
    if peak > thresholds.cpu_critical_percent:
        return 3
    if peak > thresholds.cpu_high_percent:
        return 2
    if peak > thresholds.cpu_elevated_percent:
        return 1
    return 0


def score_gc(stats: AggregateStats, thresholds: TriageThresholds) -> TriageScore:
    max_pause = stats.gc.max_pause_millis
    if max_pause > thresholds.gc_pause_critical_millis:
        return 3
    if max_pause > thresholds.gc_pause_high_millis:
        return 2
    if stats.allocation.total_mb > thresholds.allocation_pressure_mb:
        return 1
    return 0


def score_concurrency(stats: AggregateStats, thresholds: TriageThresholds) -> TriageScore:
    if stats.deadlock_count > 0:
        return 3
    if stats.contention.max_monitor_count > thresholds.contention_high_events:
        return 2
    if stats.contention.event_count > 0:
        return 1
    return 0


def _leading_labels(ranking: RankedLabels) -> str:
    leaders = [entry.label for entry in ranking.top_n(HOTSPOTS_IN_RECOMMENDATION)]
    return ", ".join(leaders) if leaders else "none recorded"


def build_recommendation(category: BottleneckCategory, stats: AggregateStats) -> str:
    """Fixed next-action template for ``category``, filled with observed numbers."""
    if category == "Concurrency":
        return (
            f"Review thread dumps for the {stats.deadlock_count} deadlock(s) and the "
            f"top contended monitors ({_leading_labels(stats.contention.by_monitor)}; "
            f"peak {stats.contention.max_monitor_count} events on one monitor). "
            "Treat this as a synchronization fault before tuning performance."
        )
    if category == "CPU":
        return (
            f"JVM CPU peaked at {stats.cpu.max_percent:.1f}%. Reduce the computational "
            f"cost of the top CPU hotspot methods ({_leading_labels(stats.cpu.by_method)}) "
            "or right-size the container."
        )
    if category == "GC":
        return (
            f"GC pauses peaked at {stats.gc.max_pause_millis:.1f} ms with "
            f"{stats.allocation.total_mb:.2f} MB allocated. Reduce object churn in the top "
            f"allocating classes ({_leading_labels(stats.allocation.by_class)}) "
            "or tune collector pause goals."
        )
    return "No critical issues found. Keep the current recording setup and rerun during peak load."


def classify(stats: AggregateStats, thresholds: TriageThresholds | None = None) -> Verdict:
    """Pick the primary bottleneck for ``stats``. Never raises on valid stats."""
    thresholds = thresholds or TriageThresholds()
    scores = CategoryScores(
        cpu=score_cpu(stats, thresholds),
        gc=score_gc(stats, thresholds),
        concurrency=score_concurrency(stats, thresholds),
    )
    by_category: dict[BottleneckCategory, TriageScore] = {
        "Concurrency": scores.concurrency,
        "CPU": scores.cpu,
        "GC": scores.gc,
    }
    top_score = max(by_category.values())

    category: BottleneckCategory = "None"
    if top_score > 0:
        category = next(c for c in CATEGORY_PRECEDENCE if by_category[c] == top_score)

    return Verdict(
        category=category,
        score=top_score,
        recommendation=build_recommendation(category, stats),
        scores=scores,
    )
