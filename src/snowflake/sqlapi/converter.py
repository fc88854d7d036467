#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, tzinfo
from logging import getLogger
from typing import Any, Callable, Mapping

import pytz

from .constants import (
    BOOLEAN_TYPE_NAMES,
    FIXED_TYPE_NAMES,
    is_date_time_type_name,
    is_float_type_name,
    is_integer_type_name,
)

ZERO_EPOCH_DATE = date(1970, 1, 1)
ZERO_EPOCH = datetime(1970, 1, 1)

TRUTHY_VALUES = frozenset(["1", "true", "on", "yes"])
BOOLEAN_LITERALS = frozenset(["true", "false"])
FLOAT_SPECIAL_VALUES = frozenset(["nan", "inf", "-inf", "infinity", "-infinity"])

DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$", re.ASCII)
TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?$", re.ASCII)
TIMESTAMP_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[ T](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:\s*(Z|[+-]\d{2}:?\d{2}))?$",
    re.ASCII,
)
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$", re.ASCII)
NUMERIC_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$", re.ASCII)
EPOCH_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$", re.ASCII)
EPOCH_TZ_PATTERN = re.compile(r"^(-?\d+(?:\.\d+)?) (\d+)$", re.ASCII)

logger = getLogger(__name__)

Converter = Callable[[Any], Any]


def _fraction_to_microseconds(fraction: str | None) -> int:
    """Pads or truncates a fractional second to microsecond precision."""
    if not fraction:
        return 0
    return int(fraction[:6].ljust(6, "0"))


def _generate_tzinfo_from_tzoffset(tzoffset_minutes: int) -> tzinfo:
    """
    Generates tzinfo object from tzoffset.
    """
    return pytz.FixedOffset(tzoffset_minutes)


def _parse_offset(offset: str | None) -> tzinfo | None:
    if not offset:
        return None
    if offset == "Z":
        return pytz.utc
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    minutes = int(digits[:2]) * 60 + int(digits[2:])
    return _generate_tzinfo_from_tzoffset(sign * minutes)


def unwrap_value(value: Any) -> Any:
    """Unwraps a single key mapping envelope such as ``{"Item": 1}``."""
    if isinstance(value, Mapping) and len(value) == 1:
        return next(iter(value.values()))
    return value


def to_number(value: Any) -> int | float | Any:
    """Turns numeric looking text into an int or a float, else returns it as is."""
    if isinstance(value, bool) or not isinstance(value, str):
        return value
    text = value.strip()
    if INTEGER_PATTERN.match(text):
        return int(text)
    if NUMERIC_PATTERN.match(text):
        return float(text)
    return value


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY_VALUES


class SnowflakeConverter:
    """Coerces SQL API wire values into Python values.

    Values arrive as text in the formats negotiated at submission time.
    Conversion is total: whatever fails to parse is logged and returned
    unchanged.
    """

    #
    # FROM Snowflake to Python Objects
    #
    def to_python_method(self, type_name: str | None, column: Mapping[str, Any]) -> Converter:
        """Returns the converter for one column.

        The returned callable applies the rules shared by every column (null,
        envelope, boolean literals) before the type specific conversion.
        """
        ctx = dict(column)
        type_name = (type_name or "").upper()
        ctx["type_name"] = type_name
        conv = self._type_converter(type_name, ctx)

        def convert(value: Any) -> Any:
            value = unwrap_value(value)
            if value is None:
                return None
            if isinstance(value, str) and value.strip().lower() in BOOLEAN_LITERALS:
                return to_boolean(value)
            try:
                return conv(value)
            except Exception as e:
                logger.debug(
                    "Failed to convert %r as %s, returning it as is: %s",
                    value,
                    type_name,
                    e,
                )
                return value

        return convert

    def to_python(self, type_name: str | None, column: Mapping[str, Any], value: Any) -> Any:
        return self.to_python_method(type_name, column)(value)

    def _type_converter(self, type_name: str, ctx: dict[str, Any]) -> Converter:
        if type_name in BOOLEAN_TYPE_NAMES:
            return self._BOOLEAN_to_python(ctx)
        if (
            is_date_time_type_name(type_name)
            or is_integer_type_name(type_name)
            or is_float_type_name(type_name)
            or type_name in FIXED_TYPE_NAMES
        ):
            return getattr(self, f"_{type_name}_to_python")(ctx)
        return self._default_to_python(ctx)

    def _BOOLEAN_to_python(self, _) -> Converter:
        return to_boolean

    def _default_to_python(self, _) -> Converter:
        return to_number

    def _INTEGER_to_python(self, _) -> Converter:
        def conv(value):
            if isinstance(value, (int, float)):
                return int(value)
            text = str(value).strip()
            if INTEGER_PATTERN.match(text):
                return int(text)
            if NUMERIC_PATTERN.match(text):
                logger.debug("Integer column holds a non integer value %r", value)
                return float(text)
            raise ValueError(f"unrecognized INTEGER value {text!r}")

        return conv

    _BIGINT_to_python = _INTEGER_to_python
    _SMALLINT_to_python = _INTEGER_to_python
    _TINYINT_to_python = _INTEGER_to_python

    def _FLOAT_to_python(self, _) -> Converter:
        def conv(value):
            if not isinstance(value, str):
                return float(value)
            text = value.strip()
            if NUMERIC_PATTERN.match(text) or text.lower() in FLOAT_SPECIAL_VALUES:
                return float(text)
            raise ValueError(f"unrecognized FLOAT value {text!r}")

        return conv

    _DOUBLE_to_python = _FLOAT_to_python
    _DECIMAL_to_python = _FLOAT_to_python
    _NUMERIC_to_python = _FLOAT_to_python
    _REAL_to_python = _FLOAT_to_python

    def _FIXED_to_python(self, ctx) -> Converter:
        if not ctx.get("scale"):
            return self._INTEGER_to_python(ctx)
        return self._FLOAT_to_python(ctx)

    _NUMBER_to_python = _FIXED_to_python

    def _DATE_to_python(self, _) -> Converter:
        """
        DATE to datetime.date

        Epoch days are accepted as well.
        """

        def conv(value):
            text = str(value).strip()
            m = DATE_PATTERN.match(text)
            if m:
                return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            if EPOCH_PATTERN.match(text):
                return ZERO_EPOCH_DATE + timedelta(days=int(float(text)))
            raise ValueError(f"unrecognized DATE value {text!r}")

        return conv

    def _TIME_to_python(self, _) -> Converter:
        """
        TIME to datetime.time

        No timezone is attached. Seconds since midnight are accepted as well.
        """

        def conv(value):
            text = str(value).strip()
            m = TIME_PATTERN.match(text)
            if m:
                return time(
                    int(m.group(1)),
                    int(m.group(2)),
                    int(m.group(3)),
                    _fraction_to_microseconds(m.group(4)),
                )
            if EPOCH_PATTERN.match(text):
                return (ZERO_EPOCH + timedelta(seconds=float(text))).time()
            raise ValueError(f"unrecognized TIME value {text!r}")

        return conv

    def _timestamp_converter(self, epoch_tzinfo: tzinfo | None) -> Converter:
        def conv(value):
            text = str(value).strip()
            m = TIMESTAMP_PATTERN.match(text)
            if m:
                return datetime(
                    int(m.group(1)),
                    int(m.group(2)),
                    int(m.group(3)),
                    int(m.group(4)),
                    int(m.group(5)),
                    int(m.group(6)),
                    _fraction_to_microseconds(m.group(7)),
                    tzinfo=_parse_offset(m.group(8)),
                )
            m = EPOCH_TZ_PATTERN.match(text)
            if m:
                # the offset is piggybacked, shifted by 1440 minutes
                tz = _generate_tzinfo_from_tzoffset(int(m.group(2)) - 1440)
                utc = ZERO_EPOCH + timedelta(seconds=float(m.group(1)))
                return pytz.utc.localize(utc).astimezone(tz)
            if EPOCH_PATTERN.match(text):
                t = ZERO_EPOCH + timedelta(seconds=float(text))
                if epoch_tzinfo is None:
                    return t
                return pytz.utc.localize(t).astimezone(epoch_tzinfo)
            raise ValueError(f"unrecognized TIMESTAMP value {text!r}")

        return conv

    def _TIMESTAMP_NTZ_to_python(self, _) -> Converter:
        """
        TIMESTAMP NTZ to datetime

        No timezone info is attached.
        """
        return self._timestamp_converter(None)

    _TIMESTAMP_to_python = _TIMESTAMP_NTZ_to_python

    def _TIMESTAMP_LTZ_to_python(self, _) -> Converter:
        return self._timestamp_converter(pytz.utc)

    def _TIMESTAMP_TZ_to_python(self, _) -> Converter:
        """
        TIMESTAMP TZ to datetime

        The offset on the wire is kept on the returned value.
        """
        return self._timestamp_converter(pytz.utc)
