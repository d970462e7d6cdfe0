"""Typed profiling events consumed by the aggregator.

Every observation the runtime can hand us is one member of the closed
``Event`` union below. Fields that a recording may omit are optional; the
aggregator decides per metric whether a value is usable.
"""

from __future__ import annotations

from typing import Annotated, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

# ============================================================
# EVENT VARIANTS
# ============================================================


class _FrozenEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class GcPause(_FrozenEvent):
    """A stop-the-world collector pause."""

    kind: Literal["gc_pause"] = "gc_pause"
    duration_millis: float | None = None


class Allocation(_FrozenEvent):
    """An allocation sample (TLAB or outside-TLAB)."""

    kind: Literal["allocation"] = "allocation"
    size_bytes: int | None = None
    class_name: str | None = None


class CpuLoad(_FrozenEvent):
    """Periodic JVM CPU load, as fractions of total machine capacity."""

    kind: Literal["cpu_load"] = "cpu_load"
    user_fraction: float | None = None
    system_fraction: float | None = None


class ExecutionSample(_FrozenEvent):
    """A sampled stack, reduced to its top frame (``Type.method``)."""

    kind: Literal["execution_sample"] = "execution_sample"
    top_frame_label: str | None = None


class MonitorEvent(_FrozenEvent):
    """A park, sleep, wait or contended monitor enter."""

    kind: Literal["monitor"] = "monitor"
    monitor_class_name: str | None = None


class Deadlock(_FrozenEvent):
    kind: Literal["deadlock"] = "deadlock"


class HeapSummary(_FrozenEvent):
    """Heap occupancy snapshot taken around a collection."""

    kind: Literal["heap_summary"] = "heap_summary"
    used_bytes: int | None = None


class UnrecognizedEvent(_FrozenEvent):
    """A record the input adapter could not map; counted, never measured."""

    kind: Literal["unrecognized"] = "unrecognized"
    name: str = "<unknown>"


Event: TypeAlias = Annotated[
    GcPause
    | Allocation
    | CpuLoad
    | ExecutionSample
    | MonitorEvent
    | Deadlock
    | HeapSummary
    | UnrecognizedEvent,
    Field(discriminator="kind"),
]
