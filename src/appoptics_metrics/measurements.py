"""Measurement entries and normalization of raw ``add`` arguments."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Integral, Real
from typing import Any, Union

from .errors import InvalidMeasureTime, NormalizationFailure


# Measure times older than a year are rejected by the service
MIN_MEASURE_TIME = int(time.time()) - 3600 * 24 * 365

RECOGNIZED_KEYS = frozenset({"value", "source", "tags", "measure_time", "period"})


def to_epoch(value: Any) -> Any:
    """Convert datetime values to integer epoch seconds, pass anything else through."""
    if isinstance(value, datetime):
        return int(value.timestamp())
    return value


@dataclass(frozen=True)
class MeasurementEntry:
    """A single normalized metric data point."""
    name: str
    value: int | float
    source: str | None = None
    measure_time: int | None = None
    tags: dict[str, str] = field(default_factory=dict)
    period: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire representation for a measurements payload."""
        d: dict[str, Any] = {"name": self.name, "value": self.value}
        if self.source is not None:
            d["source"] = self.source
        if self.tags:
            d["tags"] = dict(self.tags)
        if self.measure_time is not None:
            d["time"] = self.measure_time
        if self.period is not None:
            d["period"] = self.period
        return d


@dataclass(frozen=True)
class NumericValue:
    """Shortcut shape: a bare number."""
    value: int | float


@dataclass(frozen=True)
class DetailedEntry:
    """Mapping shape carrying a value plus optional attributes."""
    value: int | float
    source: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    measure_time: int | None = None
    period: int | None = None


RawMeasurement = Union[NumericValue, DetailedEntry]


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _to_builtin(value: Real) -> int | float:
    # json only serializes the builtin numeric types
    if isinstance(value, Integral):
        return int(value)
    return float(value)


def check_measure_time(measure_time: Any, name: str | None = None) -> int:
    """Validate a measure time and return it as epoch seconds."""
    measure_time = to_epoch(measure_time)
    if not _is_number(measure_time):
        raise NormalizationFailure(f"measure_time must be numeric, got {measure_time!r}", name)
    measure_time = int(measure_time)
    if measure_time < MIN_MEASURE_TIME:
        raise InvalidMeasureTime(
            f"Measure time {measure_time} is before the minimum allowed {MIN_MEASURE_TIME}",
            name,
        )
    return measure_time


def resolve_shape(name: str, raw: Any) -> RawMeasurement:
    """Resolve one raw value into its tagged shape."""
    if _is_number(raw):
        return NumericValue(_to_builtin(raw))

    if not isinstance(raw, Mapping):
        raise NormalizationFailure(
            f"Unsupported measurement shape for {name!r}: {type(raw).__name__}", name
        )

    unknown = set(raw) - RECOGNIZED_KEYS
    if unknown:
        raise NormalizationFailure(
            f"Unsupported keys for {name!r}: {', '.join(sorted(map(str, unknown)))}", name
        )

    if "value" not in raw:
        raise NormalizationFailure(f"Measurement {name!r} is missing a value", name)
    value = raw["value"]
    if not _is_number(value):
        raise NormalizationFailure(f"Measurement {name!r} has non-numeric value {value!r}", name)

    tags = raw.get("tags") or {}
    if not isinstance(tags, Mapping):
        raise NormalizationFailure(f"Tags for {name!r} must be a mapping", name)

    measure_time = raw.get("measure_time")
    if measure_time is not None:
        measure_time = check_measure_time(measure_time, name)

    period = raw.get("period")
    if period is not None:
        if not _is_number(period):
            raise NormalizationFailure(f"Period for {name!r} must be an integer", name)
        period = int(period)

    source = raw.get("source")
    return DetailedEntry(
        value=_to_builtin(value),
        source=str(source) if source is not None else None,
        tags={str(k): str(v) for k, v in tags.items()},
        measure_time=measure_time,
        period=period,
    )


def to_entry(name: str, shape: RawMeasurement) -> MeasurementEntry:
    if isinstance(shape, NumericValue):
        return MeasurementEntry(name=name, value=shape.value)
    return MeasurementEntry(
        name=name,
        value=shape.value,
        source=shape.source,
        measure_time=shape.measure_time,
        tags=shape.tags,
        period=shape.period,
    )


def normalize(
    measurements: Mapping[Any, Any],
    *,
    prefix: str | None = None,
) -> list[MeasurementEntry]:
    """
    Normalize the argument of one ``add`` call.

    Args:
        measurements: Mapping of metric name to a bare number or a mapping
            with ``value`` and optional ``source``, ``tags``,
            ``measure_time`` and ``period``
        prefix: Prepended to every name as ``prefix.name``

    Returns:
        Entries in the mapping's order

    Raises:
        NormalizationFailure: If any entry is invalid. Nothing is returned
            for the other entries in that case.
    """
    entries = []
    for key, raw in measurements.items():
        name = str(key)
        if not name:
            raise NormalizationFailure("Metric name must not be empty")
        if prefix:
            name = f"{prefix}.{name}"
        entries.append(to_entry(name, resolve_shape(name, raw)))
    return entries
