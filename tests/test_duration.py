"""Duration parsing and rendering tests."""
from __future__ import annotations

from datetime import timedelta

import pytest

from typedconf.duration import (
    HOUR,
    MICROSECOND,
    MILLISECOND,
    MINUTE,
    SECOND,
    Duration,
    format_duration,
    parse_duration,
)
from typedconf.errors import ConfigFormatError, ConfigStructureError


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("0", 0),
        ("-0", 0),
        ("5s", 5 * SECOND),
        ("+5s", 5 * SECOND),
        ("-5s", -5 * SECOND),
        ("100ms", 100 * MILLISECOND),
        ("1us", MICROSECOND),
        ("1µs", MICROSECOND),
        ("1μs", MICROSECOND),
        ("7ns", 7),
        (".5s", 500 * MILLISECOND),
        ("1.s", SECOND),
        ("1.5h", HOUR + 30 * MINUTE),
        ("-1.5h", -(HOUR + 30 * MINUTE)),
        ("3h30m", 3 * HOUR + 30 * MINUTE),
        ("1h15m30.918273645s", HOUR + 15 * MINUTE + 30 * SECOND + 918_273_645),
        ("9223372036854775807ns", (1 << 63) - 1),
        ("-9223372036854775808ns", -(1 << 63)),
    ],
)
def test_parse_duration_accepts_compound_syntax(text: str, expected: int) -> None:
    """Each unit and sign combination parses to the expected nanoseconds."""
    assert parse_duration(text) == expected


@pytest.mark.parametrize(
    "text",
    ["", "3", "-", "s", ".", "-.", ".s", "+.s", "1.5", "1d", "3000000h", "9223372036854775808ns"],
)
def test_parse_duration_rejects_malformed_text(text: str) -> None:
    """Malformed or out-of-range text is a format error."""
    with pytest.raises(ConfigFormatError):
        parse_duration(text)


def test_parse_duration_names_the_unknown_unit() -> None:
    """Unknown units are reported by name alongside the input."""
    with pytest.raises(ConfigFormatError, match="Unknown unit 'd' in duration '1d'"):
        parse_duration("1d")


@pytest.mark.parametrize(
    ("nanoseconds", "expected"),
    [
        (0, "0s"),
        (1, "1ns"),
        (1100, "1.1µs"),
        (2200 * MICROSECOND, "2.2ms"),
        (3300 * MILLISECOND, "3.3s"),
        (4 * MINUTE + 5 * SECOND, "4m5s"),
        (4 * MINUTE + 5001 * MILLISECOND, "4m5.001s"),
        (5 * HOUR + 6 * MINUTE + 7001 * MILLISECOND, "5h6m7.001s"),
        (8 * MINUTE + 1, "8m0.000000001s"),
        (HOUR, "1h0m0s"),
        (-90 * SECOND, "-1m30s"),
        ((1 << 63) - 1, "2562047h47m16.854775807s"),
        (-(1 << 63), "-2562047h47m16.854775808s"),
    ],
)
def test_format_duration_is_canonical(nanoseconds: int, expected: str) -> None:
    """Rendering uses the largest units first and trims trailing zeros."""
    assert format_duration(nanoseconds) == expected


def test_duration_set_and_round_trip() -> None:
    """A duration renders to text that parses back to the same value."""
    value = Duration()
    value.set("90s")

    assert value.nanoseconds == 90 * SECOND
    assert value.to_text() == "1m30s"
    assert str(value) == "1m30s"
    assert Duration.parse(value.to_text()) == value


def test_failed_set_leaves_value_unchanged() -> None:
    """A parse failure keeps the previous duration."""
    value = Duration.parse("10s")

    with pytest.raises(ConfigFormatError):
        value.set("10 seconds")

    assert value == Duration(10 * SECOND)


def test_duration_rejects_out_of_range_counts() -> None:
    """Constructing a duration beyond 64 bits fails."""
    with pytest.raises(ConfigFormatError, match="out of range"):
        Duration(1 << 63)


def test_duration_timedelta_conversions() -> None:
    """Durations convert to and from ``timedelta``."""
    value = Duration.parse("1m30.5s")

    assert value.timedelta == timedelta(seconds=90, milliseconds=500)
    assert value.total_seconds() == pytest.approx(90.5)
    assert Duration.from_timedelta(timedelta(minutes=2)) == Duration.parse("2m")
    assert Duration.parse("-1500ns").timedelta == timedelta(microseconds=-1)
    assert int(Duration.parse("2ms")) == 2 * MILLISECOND


def test_duration_json_and_yaml_use_string_scalars() -> None:
    """Documents carry the canonical text; non-string nodes are rejected."""
    value = Duration()
    value.from_json('"1h"')
    assert value.to_json() == '"1h0m0s"'

    value.from_yaml("250ms\n")
    assert value.to_yaml() == "250ms"

    with pytest.raises(ConfigStructureError, match="Expected a string"):
        value.from_yaml("30")
    assert value.to_text() == "250ms"

    with pytest.raises(ConfigStructureError, match="Invalid JSON"):
        value.from_json("{not json")
