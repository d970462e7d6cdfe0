"""Tests for the single-pass event aggregator."""

import math

import pytest

from jvm_triage.aggregator import Aggregator, aggregate
from jvm_triage.events import (
    Allocation,
    CpuLoad,
    Deadlock,
    ExecutionSample,
    GcPause,
    HeapSummary,
    MonitorEvent,
    UnrecognizedEvent,
)
from jvm_triage.models import TriageThresholds
from jvm_triage.triage import score_concurrency


class TestEventCounting:
    def test_empty_stream(self):
        stats = aggregate([])
        assert stats.total_events == 0
        assert stats.degraded_events == 0
        assert stats.gc.count == 0
        assert stats.gc.avg_pause_millis is None
        assert stats.cpu.avg_percent is None
        assert stats.allocation.by_class.is_empty

    def test_total_includes_malformed_and_unrecognized(self):
        events = [
            GcPause(duration_millis=10.0),
            GcPause(),
            Allocation(class_name="A"),
            CpuLoad(user_fraction=0.5),
            ExecutionSample(),
            MonitorEvent(),
            HeapSummary(),
            UnrecognizedEvent(name="jdk.ThreadStart"),
        ]
        stats = aggregate(events)
        assert stats.total_events == 8
        assert stats.degraded_events == 7
        assert stats.gc.count == 1

    def test_accepts_generators(self):
        stats = aggregate(GcPause(duration_millis=float(i)) for i in range(1, 4))
        assert stats.total_events == 3
        assert stats.gc.total_pause_millis == 6.0


class TestGcPauses:
    def test_pause_arithmetic(self):
        durations = [100.0, 200.0, 1500.0, 50.0, 300.0]
        stats = aggregate(GcPause(duration_millis=d) for d in durations)
        assert stats.gc.count == 5
        assert stats.gc.total_pause_millis == 2150.0
        assert stats.gc.avg_pause_millis == 430.0
        assert stats.gc.max_pause_millis == 1500.0
        assert stats.gc.total_pause_millis >= stats.gc.max_pause_millis

    @pytest.mark.parametrize("bad", [None, -1.0, math.nan, math.inf])
    def test_unusable_durations_skipped(self, bad):
        stats = aggregate([GcPause(duration_millis=bad), GcPause(duration_millis=5.0)])
        assert stats.gc.count == 1
        assert stats.gc.max_pause_millis == 5.0
        assert stats.degraded_events == 1


class TestAllocations:
    def test_bytes_ranked_by_class(self):
        events = [
            Allocation(size_bytes=100, class_name="A"),
            Allocation(size_bytes=200, class_name="A"),
            Allocation(size_bytes=50, class_name="B"),
        ]
        stats = aggregate(events)
        assert stats.allocation.total_bytes == 350
        assert stats.allocation.by_class.top_n(2) == [("A", 300), ("B", 50)]

    def test_size_without_class_counts_toward_total_only(self):
        stats = aggregate([Allocation(size_bytes=64), Allocation(size_bytes=32, class_name="")])
        assert stats.allocation.total_bytes == 96
        assert stats.allocation.by_class.is_empty
        assert stats.degraded_events == 2

    def test_class_without_size_is_skipped(self):
        stats = aggregate([Allocation(class_name="A")])
        assert stats.allocation.total_bytes == 0
        assert stats.allocation.by_class.is_empty

    def test_total_mb(self):
        stats = aggregate([Allocation(size_bytes=3 * 1024 * 1024, class_name="A")])
        assert stats.allocation.total_mb == 3.0


class TestCpu:
    def test_load_sum_max_and_average(self):
        stats = aggregate(
            [
                CpuLoad(user_fraction=0.5, system_fraction=0.1),
                CpuLoad(user_fraction=0.3, system_fraction=0.2),
            ]
        )
        assert stats.cpu.sample_count == 2
        assert stats.cpu.max_percent == pytest.approx(60.0)
        assert stats.cpu.sum_percent == pytest.approx(110.0)
        assert stats.cpu.avg_percent == pytest.approx(55.0)

    def test_missing_fraction_skips_sample(self):
        stats = aggregate([CpuLoad(user_fraction=0.9), CpuLoad(system_fraction=0.9)])
        assert stats.cpu.sample_count == 0
        assert stats.cpu.max_percent == 0.0

    @pytest.mark.parametrize(
        "user, system",
        [(-0.5, 0.1), (0.4, -0.1), (1.5, 0.1), (0.2, 1.01), (math.nan, 0.1), (0.1, math.inf)],
    )
    def test_out_of_range_fraction_skips_sample(self, user, system):
        stats = aggregate(
            [
                CpuLoad(user_fraction=0.5, system_fraction=0.1),
                CpuLoad(user_fraction=user, system_fraction=system),
            ]
        )
        assert stats.cpu.sample_count == 1
        assert stats.cpu.sum_percent == pytest.approx(60.0)
        assert stats.cpu.max_percent == pytest.approx(60.0)
        assert stats.degraded_events == 1

    def test_fraction_bounds_are_inclusive(self):
        stats = aggregate([CpuLoad(user_fraction=1.0, system_fraction=0.0)])
        assert stats.cpu.sample_count == 1
        assert stats.cpu.max_percent == pytest.approx(100.0)

    def test_execution_samples_are_independent_signal(self):
        events = [
            ExecutionSample(top_frame_label="com.example.Checkout.priceCart"),
            ExecutionSample(top_frame_label="com.example.Checkout.priceCart"),
            ExecutionSample(top_frame_label="java.util.HashMap.resize"),
            ExecutionSample(),
        ]
        stats = aggregate(events)
        assert stats.cpu.sample_count == 0
        assert stats.cpu.execution_sample_count == 3
        assert stats.cpu.by_method.top_n(5) == [
            ("com.example.Checkout.priceCart", 2),
            ("java.util.HashMap.resize", 1),
        ]


class TestConcurrency:
    def test_monitors_and_deadlocks(self):
        events = [MonitorEvent(monitor_class_name="com.example.Inventory")] * 3 + [
            MonitorEvent(monitor_class_name="java.lang.Object"),
            MonitorEvent(),
            Deadlock(),
            Deadlock(),
        ]
        stats = aggregate(events)
        assert stats.deadlock_count == 2
        assert stats.contention.event_count == 4
        assert stats.contention.max_monitor_count == 3
        assert stats.contention.by_monitor.top_n(1) == [("com.example.Inventory", 3)]

    def test_many_distinct_monitors_are_not_merged(self):
        events = [MonitorEvent(monitor_class_name=f"m{index}") for index in range(1002)]
        stats = aggregate(events)
        assert stats.contention.event_count == 1002
        assert stats.contention.max_monitor_count == 1
        assert stats.contention.by_monitor.distinct_labels == 1002
        assert score_concurrency(stats, TriageThresholds()) == 1


class TestHeap:
    def test_heap_average_and_max_in_mib(self):
        stats = aggregate(
            [HeapSummary(used_bytes=100 * 1024 * 1024), HeapSummary(used_bytes=300 * 1024 * 1024)]
        )
        assert stats.heap.sample_count == 2
        assert stats.heap.avg_used_mb == 200.0
        assert stats.heap.max_used_mb == 300.0

    def test_negative_heap_skipped(self):
        stats = aggregate([HeapSummary(used_bytes=-1)])
        assert stats.heap.sample_count == 0
        assert stats.heap.avg_used_mb == 0.0


class TestLifecycle:
    def test_partial_stream_yields_valid_stats(self):
        aggregator = Aggregator()
        aggregator.consume(GcPause(duration_millis=7.0))
        stats = aggregator.finalize()
        assert stats.total_events == 1
        assert stats.gc.count == 1

    def test_consume_after_finalize_raises(self):
        aggregator = Aggregator()
        aggregator.finalize()
        with pytest.raises(RuntimeError, match="finalized"):
            aggregator.consume(Deadlock())

    def test_independent_aggregators_share_nothing(self):
        first = aggregate([Deadlock()])
        second = aggregate([])
        assert first.deadlock_count == 1
        assert second.deadlock_count == 0

    def test_stats_are_immutable(self):
        stats = aggregate([])
        with pytest.raises(Exception):
            stats.total_events = 5
