"""Tests for ColumnType coercion."""

from __future__ import annotations

import ipaddress
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, timezone
from enum import Enum

import pytest

from syncspine.core.errors import ResourceValueError
from syncspine.schema import Column, ColumnType


class _Color(Enum):
    RED = "red"


class TestScalars:
    @pytest.mark.parametrize("value,expected", [(True, True), (0, False), ("TRUE", True), ("false", False)])
    def test_bool(self, value, expected):
        assert ColumnType.BOOL.coerce(value) is expected

    def test_bool_rejects_other_ints(self):
        with pytest.raises(ResourceValueError):
            ColumnType.BOOL.coerce(2)

    def test_int_from_numeric_string(self):
        assert ColumnType.INT.coerce(" 42 ") == 42

    def test_int_from_integral_float(self):
        assert ColumnType.BIGINT.coerce(3.0) == 3

    def test_int_rejects_fraction_and_bool(self):
        with pytest.raises(ResourceValueError):
            ColumnType.INT.coerce(3.5)
        with pytest.raises(ResourceValueError):
            ColumnType.INT.coerce(True)

    def test_smallint_range(self):
        assert ColumnType.SMALLINT.coerce(32767) == 32767
        with pytest.raises(ResourceValueError, match="out of range"):
            ColumnType.SMALLINT.coerce(32768)

    def test_float(self):
        assert ColumnType.FLOAT.coerce("1.5") == 1.5

    def test_none_passes_through_every_type(self):
        assert all(t.coerce(None) is None for t in ColumnType)

    def test_string_accepts_str_enum(self):
        assert ColumnType.STRING.coerce(_Color.RED) == "red"

    def test_string_rejects_numbers(self):
        with pytest.raises(ResourceValueError) as exc_info:
            ColumnType.STRING.coerce(5)
        assert exc_info.value.value == 5

    def test_unparseable_value_chains_cause(self):
        with pytest.raises(ResourceValueError) as exc_info:
            ColumnType.INT.coerce("twelve")
        assert isinstance(exc_info.value.cause, ValueError)


class TestStructured:
    def test_uuid_normalised(self):
        value = uuid.uuid4()
        assert ColumnType.UUID.coerce(value) == str(value)
        assert ColumnType.UUID.coerce(str(value).upper()) == str(value)

    def test_bytes(self):
        assert ColumnType.BYTE_ARRAY.coerce("abc") == b"abc"
        assert ColumnType.BYTE_ARRAY.coerce(bytearray(b"\x00")) == b"\x00"

    def test_string_array(self):
        assert ColumnType.STRING_ARRAY.coerce(("a", "b")) == ["a", "b"]
        with pytest.raises(ResourceValueError):
            ColumnType.STRING_ARRAY.coerce("ab")

    def test_int_array(self):
        assert ColumnType.INT_ARRAY.coerce(["1", 2]) == [1, 2]

    def test_json_normalises_nested_values(self):
        when = datetime(2024, 1, 1, tzinfo=UTC)
        assert ColumnType.JSON.coerce({"at": when, "n": 1}) == {"at": str(when), "n": 1}

    def test_json_parses_strings(self):
        assert ColumnType.JSON.coerce('{"a": [1, 2]}') == {"a": [1, 2]}

    def test_json_from_dataclass(self):
        @dataclass
        class Point:
            x: int
            y: int

        assert ColumnType.JSON.coerce(Point(1, 2)) == {"x": 1, "y": 2}


class TestTimestamps:
    def test_iso_string_converted_to_utc(self):
        value = ColumnType.TIMESTAMP.coerce("2024-01-02T05:04:05+02:00")
        assert value == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        assert value.tzinfo is UTC

    def test_naive_datetime_assumed_utc(self):
        assert ColumnType.TIMESTAMP.coerce(datetime(2024, 1, 1)).tzinfo is UTC

    def test_aware_datetime_converted(self):
        tz = timezone(timedelta(hours=-5))
        assert ColumnType.TIMESTAMP.coerce(datetime(2024, 1, 1, 19, tzinfo=tz)) == datetime(
            2024, 1, 2, tzinfo=UTC
        )

    def test_date_and_epoch(self):
        assert ColumnType.TIMESTAMP.coerce(date(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=UTC)
        assert ColumnType.TIMESTAMP.coerce(0) == datetime(1970, 1, 1, tzinfo=UTC)

    def test_garbage_rejected(self):
        with pytest.raises(ResourceValueError):
            ColumnType.TIMESTAMP.coerce("yesterday")


class TestNetwork:
    def test_inet(self):
        assert ColumnType.INET.coerce("10.0.0.1") == "10.0.0.1"
        assert ColumnType.INET.coerce("10.0.0.1/24") == "10.0.0.1/24"
        assert ColumnType.INET.coerce(ipaddress.ip_address("::1")) == "::1"

    def test_cidr_normalised(self):
        assert ColumnType.CIDR.coerce("10.0.0.7/24") == "10.0.0.0/24"

    def test_mac(self):
        assert ColumnType.MAC_ADDR.coerce("AA-BB-CC-DD-EE-FF") == "aa:bb:cc:dd:ee:ff"
        with pytest.raises(ResourceValueError):
            ColumnType.MAC_ADDR.coerce("not-a-mac")

    def test_inet_rejects_garbage(self):
        with pytest.raises(ResourceValueError):
            ColumnType.INET.coerce("300.1.1.1")


class TestColumn:
    def test_source_path_defaults_to_name(self):
        assert Column("zone", ColumnType.STRING).source_path == "zone"
        assert Column("zone", ColumnType.STRING, path="placement.zone").source_path == "placement.zone"

    def test_repr(self):
        assert repr(Column("id", ColumnType.INT)) == "Column('id', int)"
