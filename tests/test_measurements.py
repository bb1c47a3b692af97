"""Tests for measurement normalization."""

import time
from datetime import datetime, timezone
from fractions import Fraction

import pytest

from appoptics_metrics import InvalidMeasureTime, MeasurementEntry, NormalizationFailure
from appoptics_metrics.measurements import (
    DetailedEntry,
    NumericValue,
    normalize,
    resolve_shape,
)


class TestResolveShape:
    def test_bare_number(self):
        assert resolve_shape("cpu", 54) == NumericValue(54)

    def test_float(self):
        assert resolve_shape("cpu", 0.5) == NumericValue(0.5)

    def test_mapping(self):
        shape = resolve_shape("cpu", {"value": 75, "source": "myapp"})
        assert isinstance(shape, DetailedEntry)
        assert shape.value == 75
        assert shape.source == "myapp"

    def test_bool_is_not_numeric(self):
        with pytest.raises(NormalizationFailure):
            resolve_shape("up", True)

    def test_string_rejected(self):
        with pytest.raises(NormalizationFailure):
            resolve_shape("cpu", "54")

    def test_fraction_becomes_float(self):
        shape = resolve_shape("ratio", Fraction(1, 2))
        assert shape == NumericValue(0.5)
        assert type(shape.value) is float

    def test_mapping_value_coerced(self):
        shape = resolve_shape("ratio", {"value": Fraction(3, 4), "period": Fraction(60)})
        assert type(shape.value) is float
        assert type(shape.period) is int


class TestNormalize:
    def test_bare_number(self):
        assert normalize({"cpu": 54}) == [MeasurementEntry(name="cpu", value=54)]

    def test_with_source(self):
        assert normalize({"cpu": {"source": "myapp", "value": 75}}) == [
            MeasurementEntry(name="cpu", value=75, source="myapp")
        ]

    def test_multiple_keys_keep_order(self):
        entries = normalize({"cpu": 63, "memory": 213, "disk.free": 1223121})
        assert [e.name for e in entries] == ["cpu", "memory", "disk.free"]

    def test_name_coerced_to_string(self):
        assert normalize({42: 1})[0].name == "42"

    def test_empty_name(self):
        with pytest.raises(NormalizationFailure):
            normalize({"": 1})

    def test_all_fields(self):
        now = int(time.time())
        entry = normalize({
            "requests": {
                "value": 3,
                "tags": {"host": "web-1", "port": 80},
                "measure_time": now,
                "period": 60,
            }
        })[0]
        assert entry.tags == {"host": "web-1", "port": "80"}
        assert entry.measure_time == now
        assert entry.period == 60

    def test_missing_value(self):
        with pytest.raises(NormalizationFailure) as exc:
            normalize({"cpu": {"source": "myapp"}})
        assert exc.value.name == "cpu"

    def test_non_numeric_value(self):
        with pytest.raises(NormalizationFailure):
            normalize({"cpu": {"value": "high"}})

    def test_unknown_key(self):
        with pytest.raises(NormalizationFailure):
            normalize({"cpu": {"value": 1, "colour": "red"}})

    def test_tags_must_be_mapping(self):
        with pytest.raises(NormalizationFailure):
            normalize({"cpu": {"value": 1, "tags": ["a"]}})

    def test_old_measure_time_rejected(self):
        with pytest.raises(InvalidMeasureTime):
            normalize({"cpu": {"value": 1, "measure_time": 100}})

    def test_datetime_measure_time(self):
        when = datetime.now(timezone.utc).replace(microsecond=0)
        entry = normalize({"cpu": {"value": 1, "measure_time": when}})[0]
        assert entry.measure_time == int(when.timestamp())

    def test_prefix(self):
        assert normalize({"cpu": 1}, prefix="app")[0].name == "app.cpu"


class TestMeasurementEntry:
    def test_minimal_dict(self):
        assert MeasurementEntry(name="cpu", value=54).to_dict() == {"name": "cpu", "value": 54}

    def test_time_key(self):
        entry = MeasurementEntry(name="cpu", value=1, measure_time=1700000000, tags={"a": "b"}, period=60)
        assert entry.to_dict() == {
            "name": "cpu",
            "value": 1,
            "tags": {"a": "b"},
            "time": 1700000000,
            "period": 60,
        }
