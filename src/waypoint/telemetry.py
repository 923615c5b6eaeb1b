"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Telemetry plumbing shared by breakers, the resilience wrapper, the permission
gate, agents and workflows.

Components accept any object satisfying `TelemetrySink` and fall back to
`NullTelemetrySink`. `InMemoryTelemetrySink` records everything so tests can
assert on what a run emitted.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal, Protocol, TypeAlias

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
Attributes: TypeAlias = dict[str, JSONValue]

MeasurementKind = Literal["counter", "histogram"]


def now_ms() -> int:
    """Unix epoch time in milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """
    Something that happened, such as `circuit.transition` or `workflow.step`.

    `attributes` must stay JSON-serialisable so sinks can ship them as-is.
    """

    name: str
    timestamp_ms: int
    attributes: Attributes = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Measurement:
    kind: MeasurementKind
    name: str
    value: float
    timestamp_ms: int
    attributes: Attributes = field(default_factory=dict)


class TelemetrySink(Protocol):
    def record_event(self, event: TelemetryEvent) -> None: ...

    def increment_counter(
        self, name: str, value: int = 1, *, attributes: Attributes | None = None
    ) -> None: ...

    def record_histogram(
        self, name: str, value: float, *, attributes: Attributes | None = None
    ) -> None: ...


class NullTelemetrySink:
    """Discards everything."""

    def record_event(self, event: TelemetryEvent) -> None:
        return None

    def increment_counter(
        self, name: str, value: int = 1, *, attributes: Attributes | None = None
    ) -> None:
        return None

    def record_histogram(
        self, name: str, value: float, *, attributes: Attributes | None = None
    ) -> None:
        return None


@dataclass(slots=True)
class InMemoryTelemetrySink:
    """Keeps every event and measurement in emission order."""

    _events: list[TelemetryEvent] = field(default_factory=list)
    _measurements: list[Measurement] = field(default_factory=list)

    def record_event(self, event: TelemetryEvent) -> None:
        self._events.append(event)

    def increment_counter(
        self, name: str, value: int = 1, *, attributes: Attributes | None = None
    ) -> None:
        self._measure("counter", name, int(value), attributes)

    def record_histogram(
        self, name: str, value: float, *, attributes: Attributes | None = None
    ) -> None:
        self._measure("histogram", name, float(value), attributes)

    def _measure(
        self, kind: MeasurementKind, name: str, value: float, attributes: Attributes | None
    ) -> None:
        self._measurements.append(
            Measurement(
                kind=kind,
                name=name,
                value=value,
                timestamp_ms=now_ms(),
                attributes=dict(attributes or {}),
            )
        )

    def events(self, name: str | None = None) -> list[TelemetryEvent]:
        return [e for e in self._events if name is None or e.name == name]

    def counters(self, name: str | None = None) -> list[Measurement]:
        return self._select("counter", name)

    def histograms(self, name: str | None = None) -> list[Measurement]:
        return self._select("histogram", name)

    def _select(self, kind: MeasurementKind, name: str | None) -> list[Measurement]:
        return [
            m for m in self._measurements if m.kind == kind and (name is None or m.name == name)
        ]

    def clear(self) -> None:
        self._events.clear()
        self._measurements.clear()
