"""Single-pass reduction of a profiling event stream into ``AggregateStats``."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from jvm_triage.events import (
    Allocation,
    CpuLoad,
    Deadlock,
    Event,
    ExecutionSample,
    GcPause,
    HeapSummary,
    MonitorEvent,
    UnrecognizedEvent,
)
from jvm_triage.models import (
    BYTES_PER_MB,
    AggregateStats,
    AllocationStats,
    ContentionStats,
    CpuStats,
    GcStats,
    HeapStats,
)
from jvm_triage.ranking import TopKRanking

logger = logging.getLogger(__name__)


def _usable_float(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def _usable_magnitude(value: float | None) -> bool:
    return _usable_float(value) and value >= 0  # type: ignore[operator]


def _usable_fraction(value: float | None) -> bool:
    return _usable_magnitude(value) and value <= 1.0  # type: ignore[operator]


def _usable_label(value: str | None) -> bool:
    return bool(value and value.strip())


class Aggregator:
    """Accumulates statistics for exactly one analysis run.

    Feed events with :meth:`consume` (or :meth:`consume_all`) in arrival
    order, then call :meth:`finalize` once. Finalizing early is allowed and
    yields statistics for the prefix seen so far.
    """

    def __init__(self) -> None:
        self.total_events = 0
        self.degraded_events = 0

        self.gc_count = 0
        self.gc_total_pause_millis = 0.0
        self.gc_max_pause_millis = 0.0

        self.allocated_bytes = 0
        self.allocation_by_class = TopKRanking()

        self.cpu_sample_count = 0
        self.cpu_sum_percent = 0.0
        self.cpu_max_percent = 0.0
        self.execution_sample_count = 0
        self.cpu_by_method = TopKRanking()

        self.contention_event_count = 0
        self.contention_by_monitor = TopKRanking()

        self.deadlock_count = 0

        self.heap_sample_count = 0
        self.heap_sum_used_mb = 0.0
        self.heap_max_used_mb = 0.0

        self._result: AggregateStats | None = None

    def consume(self, event: Event) -> None:
        """Fold one event into the running statistics."""
        if self._result is not None:
            raise RuntimeError("aggregator already finalized")

        self.total_events += 1

        match event:
            case GcPause():
                complete = self._on_gc_pause(event)
            case Allocation():
                complete = self._on_allocation(event)
            case CpuLoad():
                complete = self._on_cpu_load(event)
            case ExecutionSample():
                complete = self._on_execution_sample(event)
            case MonitorEvent():
                complete = self._on_monitor(event)
            case Deadlock():
                self.deadlock_count += 1
                complete = True
            case HeapSummary():
                complete = self._on_heap_summary(event)
            case UnrecognizedEvent():
                complete = False
            case _:
                complete = False

        if not complete:
            self.degraded_events += 1
            logger.debug("Event #%d skipped for its metric: %r", self.total_events, event)

    def consume_all(self, events: Iterable[Event]) -> Aggregator:
        for event in events:
            self.consume(event)
        return self

    # ------------------------------------------------------------
    # Per-kind handlers: return False when the event fed no metric
    # or only part of what it normally feeds.
    # ------------------------------------------------------------

    def _on_gc_pause(self, event: GcPause) -> bool:
        millis = event.duration_millis
        if not _usable_magnitude(millis):
            return False
        self.gc_count += 1
        self.gc_total_pause_millis += millis
        self.gc_max_pause_millis = max(self.gc_max_pause_millis, millis)
        return True

    def _on_allocation(self, event: Allocation) -> bool:
        size = event.size_bytes
        if size is None or size < 0:
            return False
        self.allocated_bytes += size
        if not _usable_label(event.class_name):
            return False
        self.allocation_by_class.record(event.class_name, size)
        return True

    def _on_cpu_load(self, event: CpuLoad) -> bool:
        user, system = event.user_fraction, event.system_fraction
        if not (_usable_fraction(user) and _usable_fraction(system)):
            return False
        percent = (user + system) * 100.0
        self.cpu_sample_count += 1
        self.cpu_sum_percent += percent
        self.cpu_max_percent = max(self.cpu_max_percent, percent)
        return True

    def _on_execution_sample(self, event: ExecutionSample) -> bool:
        if not _usable_label(event.top_frame_label):
            return False
        self.execution_sample_count += 1
        self.cpu_by_method.record(event.top_frame_label, 1)
        return True

    def _on_monitor(self, event: MonitorEvent) -> bool:
        if not _usable_label(event.monitor_class_name):
            return False
        self.contention_event_count += 1
        self.contention_by_monitor.record(event.monitor_class_name, 1)
        return True

    def _on_heap_summary(self, event: HeapSummary) -> bool:
        used = event.used_bytes
        if used is None or used < 0:
            return False
        used_mb = used / BYTES_PER_MB
        self.heap_sample_count += 1
        self.heap_sum_used_mb += used_mb
        self.heap_max_used_mb = max(self.heap_max_used_mb, used_mb)
        return True

    # ------------------------------------------------------------

    def finalize(self) -> AggregateStats:
        """Freeze all rankings and return the immutable snapshot."""
        if self._result is not None:
            return self._result

        by_monitor = self.contention_by_monitor.finalize()
        heap_avg = self.heap_sum_used_mb / self.heap_sample_count if self.heap_sample_count else 0.0

        self._result = AggregateStats(
            total_events=self.total_events,
            degraded_events=self.degraded_events,
            gc=GcStats(
                count=self.gc_count,
                total_pause_millis=self.gc_total_pause_millis,
                max_pause_millis=self.gc_max_pause_millis,
            ),
            allocation=AllocationStats(
                total_bytes=self.allocated_bytes,
                by_class=self.allocation_by_class.finalize(),
            ),
            cpu=CpuStats(
                sample_count=self.cpu_sample_count,
                sum_percent=self.cpu_sum_percent,
                max_percent=self.cpu_max_percent,
                execution_sample_count=self.execution_sample_count,
                by_method=self.cpu_by_method.finalize(),
            ),
            contention=ContentionStats(
                event_count=self.contention_event_count,
                max_monitor_count=by_monitor.max_weight,
                by_monitor=by_monitor,
            ),
            deadlock_count=self.deadlock_count,
            heap=HeapStats(
                sample_count=self.heap_sample_count,
                avg_used_mb=heap_avg,
                max_used_mb=self.heap_max_used_mb,
            ),
        )
        logger.info(
            "Aggregated %d events (%d degraded): %d GC pauses, %d CPU loads, "
            "%d execution samples, %d contention events, %d deadlocks",
            self.total_events,
            self.degraded_events,
            self.gc_count,
            self.cpu_sample_count,
            self.execution_sample_count,
            self.contention_event_count,
            self.deadlock_count,
        )
        return self._result


def aggregate(events: Iterable[Event]) -> AggregateStats:
    """Run one complete aggregation pass over ``events``."""
    return Aggregator().consume_all(events).finalize()
