"""Tests for the triage classifier."""

import math

import pytest

from jvm_triage.aggregator import aggregate
from jvm_triage.events import Allocation, CpuLoad, Deadlock, ExecutionSample, GcPause, MonitorEvent
from jvm_triage.models import (
    AggregateStats,
    ContentionStats,
    CpuStats,
    GcStats,
    TriageThresholds,
)
from jvm_triage.triage import classify, score_concurrency, score_cpu, score_gc

DEFAULTS = TriageThresholds()


def cpu_stats(max_percent):
    return AggregateStats(
        cpu=CpuStats(sample_count=1, sum_percent=max_percent, max_percent=max_percent)
    )


def gc_stats(max_pause):
    return AggregateStats(
        gc=GcStats(count=1, total_pause_millis=max_pause, max_pause_millis=max_pause)
    )


class TestScores:
    @pytest.mark.parametrize(
        "max_percent, expected",
        [(0.0, 0), (60.0, 0), (60.1, 1), (80.0, 1), (80.5, 2), (95.0, 2), (95.1, 3), (180.0, 3)],
    )
    def test_cpu_score(self, max_percent, expected):
        assert score_cpu(cpu_stats(max_percent), DEFAULTS) == expected

    @pytest.mark.parametrize(
        "max_pause, expected",
        [(0.0, 0), (500.0, 0), (500.1, 2), (1000.0, 2), (1000.1, 3)],
    )
    def test_gc_score_from_pauses(self, max_pause, expected):
        assert score_gc(gc_stats(max_pause), DEFAULTS) == expected

    def test_gc_score_from_allocation_pressure(self):
        stats = aggregate([Allocation(size_bytes=5001 * 1024 * 1024, class_name="byte[]")])
        assert score_gc(stats, DEFAULTS) == 1

    def test_allocation_at_threshold_is_not_pressure(self):
        stats = aggregate([Allocation(size_bytes=5000 * 1024 * 1024, class_name="byte[]")])
        assert score_gc(stats, DEFAULTS) == 0

    def test_concurrency_scores(self):
        assert score_concurrency(AggregateStats(), DEFAULTS) == 0
        some = aggregate([MonitorEvent(monitor_class_name="java.lang.Object")])
        assert score_concurrency(some, DEFAULTS) == 1
        heavy = AggregateStats(contention=ContentionStats(event_count=1001, max_monitor_count=1001))
        assert score_concurrency(heavy, DEFAULTS) == 2
        assert score_concurrency(AggregateStats(deadlock_count=1), DEFAULTS) == 3

    def test_custom_thresholds(self):
        thresholds = TriageThresholds(cpu_critical_percent=70.0)
        assert score_cpu(cpu_stats(75.0), thresholds) == 3


class TestVerdict:
    def test_empty_stream_is_none(self):
        verdict = classify(aggregate([]))
        assert verdict.category == "None"
        assert verdict.score == 0
        assert "No critical issues" in verdict.recommendation

    def test_long_gc_pause_selects_gc(self):
        durations = [100.0, 200.0, 1500.0, 50.0, 300.0]
        verdict = classify(aggregate(GcPause(duration_millis=d) for d in durations))
        assert verdict.category == "GC"
        assert verdict.score == 3
        assert verdict.scores.gc == 3
        assert "1500.0 ms" in verdict.recommendation

    def test_deadlock_outranks_saturated_cpu(self):
        events = [Deadlock()] + [
            CpuLoad(user_fraction=0.9, system_fraction=0.09) for _ in range(4)
        ]
        stats = aggregate(events)
        assert stats.cpu.avg_percent == pytest.approx(99.0)
        verdict = classify(stats)
        assert verdict.scores.cpu == 3
        assert verdict.scores.concurrency == 3
        assert verdict.category == "Concurrency"

    def test_cpu_outranks_gc_on_tie(self):
        stats = aggregate(
            [CpuLoad(user_fraction=0.97, system_fraction=0.0), GcPause(duration_millis=2000.0)]
        )
        verdict = classify(stats)
        assert verdict.scores.cpu == verdict.scores.gc == 3
        assert verdict.category == "CPU"

    def test_highest_score_wins_over_precedence(self):
        stats = aggregate(
            [MonitorEvent(monitor_class_name="java.lang.Object"), GcPause(duration_millis=700.0)]
        )
        verdict = classify(stats)
        assert verdict.category == "GC"
        assert verdict.score == 2

    def test_cpu_recommendation_names_hotspots(self):
        stats = aggregate(
            [CpuLoad(user_fraction=0.85, system_fraction=0.0)]
            + [ExecutionSample(top_frame_label="com.example.Checkout.priceCart")] * 3
        )
        verdict = classify(stats)
        assert verdict.category == "CPU"
        assert "com.example.Checkout.priceCart" in verdict.recommendation

    def test_deterministic(self):
        stats = aggregate([Deadlock(), GcPause(duration_millis=900.0)])
        assert classify(stats) == classify(stats)

    @pytest.mark.parametrize(
        "stats",
        [
            AggregateStats(),
            AggregateStats(cpu=CpuStats(max_percent=math.nan)),
            AggregateStats(
                gc=GcStats(count=1, total_pause_millis=math.inf, max_pause_millis=math.inf)
            ),
            AggregateStats(deadlock_count=10**12),
        ],
    )
    def test_total_over_odd_inputs(self, stats):
        verdict = classify(stats)
        assert verdict.category in ("CPU", "GC", "Concurrency", "None")
        assert 0 <= verdict.score <= 3
