#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta

import pytest
import pytz

from snowflake.sqlapi.converter import (
    SnowflakeConverter,
    to_boolean,
    to_number,
    unwrap_value,
)


@pytest.fixture
def converter() -> SnowflakeConverter:
    return SnowflakeConverter()


def convert(converter, type_name, value, **column):
    return converter.to_python(type_name, column, value)


def test_none_stays_none(converter):
    for type_name in ("TEXT", "BOOLEAN", "DATE", "FIXED", "TIMESTAMP_TZ", None):
        assert convert(converter, type_name, None) is None


def test_envelope_is_unwrapped(converter):
    assert unwrap_value({"Item": "5"}) == "5"
    assert unwrap_value({"a": 1, "b": 2}) == {"a": 1, "b": 2}
    assert convert(converter, "FIXED", {"Item": "5"}) == 5
    assert convert(converter, "TEXT", {"Item": None}) is None


@pytest.mark.parametrize(
    "type_name,value,expected",
    [
        ("BOOLEAN", "TRUE", True),
        ("BOOLEAN", "false", False),
        ("BOOLEAN", "1", True),
        ("BOOLEAN", "0", False),
        ("BOOLEAN", "yes", True),
        ("BOOLEAN", "On", True),
        ("BOOLEAN", "no", False),
        ("TEXT", "True", True),
        ("FIXED", "false", False),
        (None, "TRUE", True),
    ],
)
def test_booleans(converter, type_name, value, expected):
    assert convert(converter, type_name, value) is expected


def test_to_boolean():
    assert to_boolean(True) is True
    assert to_boolean(" YES ") is True
    assert to_boolean(2) is False


@pytest.mark.parametrize(
    "value,expected",
    [
        ("0", 0),
        ("-17", -17),
        ("1.25", 1.25),
        ("1e3", 1000.0),
        (".5", 0.5),
        ("abc", "abc"),
        ("12abc", "12abc"),
        ("", ""),
    ],
)
def test_untyped_values(converter, value, expected):
    result = convert(converter, "TEXT", value)
    assert result == expected
    assert type(result) is type(expected)


def test_to_number_leaves_non_strings_alone():
    assert to_number(5) == 5
    assert to_number([1]) == [1]
    assert to_number(True) is True


@pytest.mark.parametrize("type_name", ["INTEGER", "BIGINT", "SMALLINT", "TINYINT"])
def test_integer_types(converter, type_name):
    assert convert(converter, type_name, "42") == 42
    assert convert(converter, type_name.lower(), " -3 ") == -3


def test_integer_falls_back_to_float(converter):
    result = convert(converter, "INTEGER", "4.5")
    assert result == 4.5
    assert isinstance(result, float)


@pytest.mark.parametrize(
    "type_name,value",
    [
        ("INTEGER", "1_000"),
        ("INTEGER", "1_0.5"),
        ("INTEGER", "٣"),
        ("FIXED", "１２"),
        ("TEXT", "٣"),
        ("TEXT", "1_000"),
        ("FLOAT", "1_0.5"),
        ("FLOAT", "٣.5"),
        ("DATE", "٢٠٢٤-01-01"),
        ("TIMESTAMP_NTZ", "١٧٠٠"),
    ],
)
def test_only_ascii_digits_are_numbers(converter, type_name, value):
    assert convert(converter, type_name, value) == value


@pytest.mark.parametrize("type_name", ["FLOAT", "DOUBLE", "DECIMAL", "NUMERIC", "REAL"])
def test_float_types(converter, type_name):
    result = convert(converter, type_name, "3")
    assert result == 3.0
    assert isinstance(result, float)


def test_float_special_values(converter):
    assert math.isnan(convert(converter, "FLOAT", "NaN"))
    assert convert(converter, "DOUBLE", "inf") == math.inf
    assert convert(converter, "DOUBLE", "-inf") == -math.inf
    assert convert(converter, "FLOAT", "1.5e3") == 1500.0


@pytest.mark.parametrize(
    "scale,value,expected",
    [
        (0, "123", 123),
        (None, "123", 123),
        (2, "1.50", 1.5),
        (2, "7", 7.0),
    ],
)
def test_fixed(converter, scale, value, expected):
    result = convert(converter, "FIXED", value, scale=scale)
    assert result == expected
    assert type(result) is type(expected)
    assert convert(converter, "NUMBER", value, scale=scale) == expected


class TestDateTime:
    def test_date(self, converter):
        assert convert(converter, "DATE", "2024-02-29") == date(2024, 2, 29)

    def test_date_from_epoch_days(self, converter):
        assert convert(converter, "DATE", "19782") == date(2024, 2, 29)
        assert convert(converter, "DATE", "-1") == date(1969, 12, 31)

    def test_time(self, converter):
        assert convert(converter, "TIME", "13:45:01") == time(13, 45, 1)
        assert convert(converter, "TIME", "13:45:01.123456789") == time(
            13, 45, 1, 123456
        )
        assert convert(converter, "TIME", "00:00:00.5") == time(0, 0, 0, 500000)

    def test_time_from_seconds(self, converter):
        assert convert(converter, "TIME", "3661.25") == time(1, 1, 1, 250000)

    @pytest.mark.parametrize("type_name", ["TIMESTAMP", "TIMESTAMP_NTZ"])
    def test_timestamp_without_offset(self, converter, type_name):
        result = convert(converter, type_name, "2024-01-02 03:04:05.678900000")
        assert result == datetime(2024, 1, 2, 3, 4, 5, 678900)
        assert result.tzinfo is None

    @pytest.mark.parametrize(
        "text,minutes",
        [
            ("2024-01-02 03:04:05.000 +05:30", 330),
            ("2024-01-02 03:04:05.000 -0800", -480),
            ("2024-01-02T03:04:05+00:00", 0),
        ],
    )
    def test_timestamp_with_offset(self, converter, text, minutes):
        result = convert(converter, "TIMESTAMP_TZ", text)
        assert (result.year, result.month, result.day) == (2024, 1, 2)
        assert (result.hour, result.minute, result.second) == (3, 4, 5)
        assert result.utcoffset() == timedelta(minutes=minutes)

    def test_timestamp_zulu(self, converter):
        result = convert(converter, "TIMESTAMP_LTZ", "2024-01-02 03:04:05Z")
        assert result == pytz.utc.localize(datetime(2024, 1, 2, 3, 4, 5))

    def test_ntz_from_epoch(self, converter):
        result = convert(converter, "TIMESTAMP_NTZ", "1700000000.5")
        assert result == datetime(2023, 11, 14, 22, 13, 20, 500000)
        assert result.tzinfo is None

    @pytest.mark.parametrize("type_name", ["TIMESTAMP_LTZ", "TIMESTAMP_TZ"])
    def test_aware_from_epoch(self, converter, type_name):
        result = convert(converter, type_name, "1700000000")
        assert result == pytz.utc.localize(datetime(2023, 11, 14, 22, 13, 20))
        assert result.utcoffset() == timedelta(0)

    def test_tz_from_epoch_with_offset(self, converter):
        # 1440 + 60 is one hour east of UTC
        result = convert(converter, "TIMESTAMP_TZ", "1700000000.000000000 1500")
        assert result.utcoffset() == timedelta(minutes=60)
        assert result == pytz.utc.localize(datetime(2023, 11, 14, 22, 13, 20))
        assert result.hour == 23


@pytest.mark.parametrize(
    "type_name,value",
    [
        ("DATE", "not a date"),
        ("DATE", "2024-13-45"),
        ("TIME", "25:99"),
        ("TIMESTAMP_TZ", "yesterday"),
        ("FLOAT", "NaN-ish"),
        ("INTEGER", "twelve"),
        ("FIXED", "x"),
    ],
)
def test_unparsable_values_are_returned_as_is(converter, type_name, value):
    assert convert(converter, type_name, value) == value


def test_unknown_types_are_returned_as_is(converter):
    assert convert(converter, "VARIANT", '{"a": 1}') == '{"a": 1}'
    assert convert(converter, "ARRAY", [1, 2]) == [1, 2]


def test_to_python_method_is_reusable(converter):
    conv = converter.to_python_method("fixed", {"scale": 0})
    assert [conv(v) for v in ("1", "2", None)] == [1, 2, None]
