"""Aggregate statistics, triage thresholds and verdict models."""

from __future__ import annotations

from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from jvm_triage.ranking import RankedLabels

# ============================================================
# TYPE ALIASES
# ============================================================

BottleneckCategory: TypeAlias = Literal["CPU", "GC", "Concurrency", "None"]
TriageScore: TypeAlias = Literal[0, 1, 2, 3]

BYTES_PER_MB = 1024 * 1024

# ============================================================
# AGGREGATE STATISTICS
# ============================================================


class GcStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = 0
    total_pause_millis: float = 0.0
    max_pause_millis: float = 0.0

    @property
    def avg_pause_millis(self) -> float | None:
        return self.total_pause_millis / self.count if self.count else None


class AllocationStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_bytes: int = 0
    by_class: RankedLabels = Field(default_factory=RankedLabels)

    @property
    def total_mb(self) -> float:
        return self.total_bytes / BYTES_PER_MB


class CpuStats(BaseModel):
    """CPU load samples plus the independent execution-sample hotspot ranking."""

    model_config = ConfigDict(frozen=True)

    sample_count: int = 0
    sum_percent: float = 0.0
    max_percent: float = 0.0
    execution_sample_count: int = 0
    by_method: RankedLabels = Field(default_factory=RankedLabels)

    @property
    def avg_percent(self) -> float | None:
        return self.sum_percent / self.sample_count if self.sample_count else None


class ContentionStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_count: int = 0
    max_monitor_count: int = 0
    by_monitor: RankedLabels = Field(default_factory=RankedLabels)


class HeapStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    sample_count: int = 0
    avg_used_mb: float = 0.0
    max_used_mb: float = 0.0


class AggregateStats(BaseModel):
    """Immutable result of one pass over a profiling event stream."""

    model_config = ConfigDict(frozen=True)

    total_events: int = 0
    degraded_events: int = 0
    gc: GcStats = Field(default_factory=GcStats)
    allocation: AllocationStats = Field(default_factory=AllocationStats)
    cpu: CpuStats = Field(default_factory=CpuStats)
    contention: ContentionStats = Field(default_factory=ContentionStats)
    deadlock_count: int = 0
    heap: HeapStats = Field(default_factory=HeapStats)


# ============================================================
# TRIAGE
# ============================================================


class TriageThresholds(BaseModel):
    """Configurable cut-offs for the per-category triage scores."""

    cpu_critical_percent: float = 95.0
    cpu_high_percent: float = 80.0
    cpu_elevated_percent: float = 60.0

    gc_pause_critical_millis: float = 1000.0
    gc_pause_high_millis: float = 500.0
    allocation_pressure_mb: float = 5000.0

    contention_high_events: int = 1000


class CategoryScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    cpu: TriageScore = 0
    gc: TriageScore = 0
    concurrency: TriageScore = 0


class Verdict(BaseModel):
    """Primary bottleneck for one analysis run."""

    model_config = ConfigDict(frozen=True)

    category: BottleneckCategory
    score: TriageScore
    recommendation: str
    scores: CategoryScores = Field(default_factory=CategoryScores)
