"""Input adapters that turn recordings and GC logs into typed events.

Two event encodings are accepted, either as one JSON document (``jfr print
--json`` output, or a bare array of records) or as JSON Lines:

* JFR-shaped records: ``{"type": "jdk.CPULoad", "values": {...}}``
* native records: ``{"kind": "cpu_load", "user_fraction": 0.4, ...}``

Adapters fail fast: an unreadable or undecodable source raises
``EventSourceError`` before any event is handed out.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

from pydantic import TypeAdapter, ValidationError

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

logger = logging.getLogger(__name__)

MALFORMED_RECORD = "<malformed>"

JFR_GC_PAUSE = "jdk.GCPhasePause"
JFR_ALLOCATION_TYPES = frozenset(
    {"jdk.ObjectAllocationInNewTLAB", "jdk.ObjectAllocationOutsideTLAB"}
)
JFR_ALLOCATION_SAMPLE = "jdk.ObjectAllocationSample"
JFR_CPU_LOAD = "jdk.CPULoad"
JFR_EXECUTION_SAMPLE = "jdk.ExecutionSample"
JFR_MONITOR_TYPES = frozenset(
    {"jdk.ThreadPark", "jdk.ThreadSleep", "jdk.JavaMonitorWait", "jdk.JavaMonitorEnter"}
)
JFR_DEADLOCK = "jdk.ThreadDeadlock"
JFR_HEAP_SUMMARY = "jdk.GCHeapSummary"

ISO_DURATION_PATTERN: re.Pattern[str] = re.compile(
    r"PT(?:(?P<hours>[\d.]+)H)?(?:(?P<minutes>[\d.]+)M)?(?:(?P<seconds>[\d.]+)S)?"
)

# Heuristic GC log matching: any line mentioning a pause with a millisecond value.
GC_LOG_PAUSE_PATTERN: re.Pattern[str] = re.compile(r"([0-9.]+)ms")

_native_event_adapter: TypeAdapter[Event] = TypeAdapter(Event)


class EventSourceError(ValueError):
    """Raised when an event source cannot be opened or decoded at all."""


# ============================================================
# FIELD COERCION
# ============================================================


def parse_duration_millis(value: Any) -> float | None:
    """Parse an ISO-8601 duration (``PT0.012S``) or nanosecond count into ms."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value / 1_000_000.0
    if not isinstance(value, str):
        return None

    match = ISO_DURATION_PATTERN.fullmatch(value.strip())
    if not match or not any(match.groupdict().values()):
        return None
    try:
        hours = float(match.group("hours") or 0)
        minutes = float(match.group("minutes") or 0)
        seconds = float(match.group("seconds") or 0)
    except ValueError:
        return None
    return ((hours * 60 + minutes) * 60 + seconds) * 1000.0


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _class_name(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("name")
    return value if isinstance(value, str) and value else None


def _top_frame_label(stack_trace: Any) -> str | None:
    if not isinstance(stack_trace, dict):
        return None
    frames = stack_trace.get("frames")
    if not isinstance(frames, list) or not frames or not isinstance(frames[0], dict):
        return None
    method = frames[0].get("method")
    if not isinstance(method, dict):
        return None
    type_name = _class_name(method.get("type"))
    method_name = method.get("name")
    if not type_name or not isinstance(method_name, str) or not method_name:
        return None
    return f"{type_name}.{method_name}"


# ============================================================
# RECORD DECODING
# ============================================================


def decode_jfr_record(type_name: str, values: dict[str, Any]) -> Event:
    """Map one JFR event (type name plus field values) onto the event union."""
    if type_name == JFR_GC_PAUSE:
        return GcPause(duration_millis=parse_duration_millis(values.get("duration")))
    if type_name in JFR_ALLOCATION_TYPES:
        return Allocation(
            size_bytes=_as_int(values.get("allocationSize")),
            class_name=_class_name(values.get("objectClass")),
        )
    if type_name == JFR_ALLOCATION_SAMPLE:
        return Allocation(
            size_bytes=_as_int(values.get("weight")),
            class_name=_class_name(values.get("objectClass")),
        )
    if type_name == JFR_CPU_LOAD:
        return CpuLoad(
            user_fraction=_as_float(values.get("jvmUser")),
            system_fraction=_as_float(values.get("jvmSystem")),
        )
    if type_name == JFR_EXECUTION_SAMPLE:
        return ExecutionSample(top_frame_label=_top_frame_label(values.get("stackTrace")))
    if type_name in JFR_MONITOR_TYPES:
        return MonitorEvent(monitor_class_name=_class_name(values.get("monitorClass")))
    if type_name == JFR_DEADLOCK:
        return Deadlock()
    if type_name == JFR_HEAP_SUMMARY:
        return HeapSummary(used_bytes=_as_int(values.get("heapUsed")))
    return UnrecognizedEvent(name=type_name)


def decode_record(record: Any) -> Event:
    """Decode a JFR-shaped or native record; anything else is unrecognized."""
    if not isinstance(record, dict):
        return UnrecognizedEvent(name=MALFORMED_RECORD)

    type_name = record.get("type")
    if isinstance(type_name, str):
        values = record.get("values")
        return decode_jfr_record(type_name, values if isinstance(values, dict) else {})

    kind = record.get("kind")
    if isinstance(kind, str):
        try:
            return _native_event_adapter.validate_python(record)
        except ValidationError as e:
            logger.debug("Invalid %s record: %s", kind, e)
            return UnrecognizedEvent(name=kind)

    return UnrecognizedEvent(name=MALFORMED_RECORD)


def _container_records(document: Any) -> list[Any] | None:
    """Return the event records held by a whole JSON document, if it is a container."""
    if isinstance(document, list):
        return document
    if not isinstance(document, dict):
        return None
    recording = document.get("recording")
    if isinstance(recording, dict) and isinstance(recording.get("events"), list):
        return recording["events"]
    if isinstance(document.get("events"), list):
        return document["events"]
    return None


def detect_format(text: str) -> Literal["json", "jsonl"]:
    """Guess whether ``text`` is one JSON document or JSON Lines."""
    stripped = text.lstrip()
    if stripped.startswith("["):
        return "json"
    if stripped.startswith("{"):
        first_line = stripped.split("\n", 1)[0]
        try:
            record = json.loads(first_line)
        except json.JSONDecodeError:
            return "json"
        return "json" if _container_records(record) is not None else "jsonl"
    return "jsonl"


def decode_events(text: str) -> list[Event]:
    """Decode the contents of an event file."""
    if not text.strip():
        return []

    if detect_format(text) == "json":
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise EventSourceError(f"could not parse JSON event document: {e}") from e
        records = _container_records(document)
        if records is None:
            raise EventSourceError(
                "JSON document holds no event list "
                "(expected 'jfr print --json' output or an array of events)"
            )
        logger.info("Decoding %d records from JSON document", len(records))
        return [decode_record(record) for record in records]

    events: list[Event] = []
    decoded_lines = 0
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Line %d is not valid JSON", line_number)
            events.append(UnrecognizedEvent(name=MALFORMED_RECORD))
            continue
        decoded_lines += 1
        events.append(decode_record(record))

    if events and decoded_lines == 0:
        raise EventSourceError("no line of the event file is valid JSON")
    logger.info(
        "Decoded %d JSON Lines records (%d malformed)", len(events), len(events) - decoded_lines
    )
    return events


def read_events(path: Path) -> list[Event]:
    """Read an event file; raises ``EventSourceError`` if it is unusable."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise EventSourceError(f"cannot read event file {path}: {e}") from e
    return decode_events(text)


# ============================================================
# HEURISTIC GC LOG PARSER
# ============================================================


def parse_gc_log_pauses(lines: Iterable[str]) -> list[GcPause]:
    """Extract pause durations from any GC log line that mentions ``Pause`` and ``ms``."""
    pauses: list[GcPause] = []
    for line in lines:
        if "Pause" not in line or "ms" not in line:
            continue
        match = GC_LOG_PAUSE_PATTERN.search(line)
        if not match:
            continue
        try:
            pauses.append(GcPause(duration_millis=float(match.group(1))))
        except ValueError:
            continue
    return pauses


def read_gc_log(path: Path) -> list[GcPause]:
    try:
        with path.open(encoding="utf-8", errors="replace") as f:
            return parse_gc_log_pauses(f)
    except OSError as e:
        raise EventSourceError(f"cannot read GC log {path}: {e}") from e
