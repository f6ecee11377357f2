"""Durations expressed in compound unit syntax such as ``"1m30s"`` or ``"100ms"``.

Durations are stored as a signed 64-bit count of nanoseconds. Parsing accepts
``[-+]?([0-9]*(\\.[0-9]*)?[a-z]+)+`` (or a bare ``"0"``) with the units
``ns``, ``us``, ``µs``, ``μs``, ``ms``, ``s``, ``m`` and ``h``. Rendering
produces the canonical form: the largest units first, trailing zeros dropped,
and sub-second values shown in ``ms``, ``µs`` or ``ns``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .errors import ConfigFormatError
from .values import SettableValue

NANOSECOND = 1
MICROSECOND = 1000 * NANOSECOND
MILLISECOND = 1000 * MICROSECOND
SECOND = 1000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

MAX_NANOSECONDS = (1 << 63) - 1
MIN_NANOSECONDS = -(1 << 63)

UNITS: dict[str, int] = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "µs": MICROSECOND,  # MICRO SIGN
    "μs": MICROSECOND,  # GREEK SMALL LETTER MU
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
}

_DIGITS = "0123456789"


def parse_duration(text: str) -> int:
    """Return the number of nanoseconds described by *text*."""
    original = text
    negative = False
    if text and text[0] in "+-":
        negative = text[0] == "-"
        text = text[1:]
    if text == "0":
        return 0
    if not text:
        raise ConfigFormatError(f"Invalid duration {original!r}.")

    total = 0
    while text:
        if text[0] != "." and text[0] not in _DIGITS:
            raise ConfigFormatError(f"Invalid duration {original!r}.")

        before = len(text)
        whole, text = _leading_int(text, original)
        has_whole = before != len(text)

        fraction, scale, has_fraction = 0, 1.0, False
        if text.startswith("."):
            text = text[1:]
            before = len(text)
            fraction, scale, text = _leading_fraction(text)
            has_fraction = before != len(text)
        if not has_whole and not has_fraction:
            raise ConfigFormatError(f"Invalid duration {original!r}.")

        index = 0
        while index < len(text) and text[index] != "." and text[index] not in _DIGITS:
            index += 1
        if index == 0:
            raise ConfigFormatError(f"Missing unit in duration {original!r}.")
        unit_name, text = text[:index], text[index:]
        unit = UNITS.get(unit_name)
        if unit is None:
            raise ConfigFormatError(
                f"Unknown unit {unit_name!r} in duration {original!r}."
            )

        if whole > (1 << 63) // unit:
            raise ConfigFormatError(f"Duration {original!r} is out of range.")
        value = whole * unit
        if fraction > 0:
            value += int(float(fraction) * (float(unit) / scale))
            if value > 1 << 63:
                raise ConfigFormatError(f"Duration {original!r} is out of range.")
        total += value
        if total > 1 << 63:
            raise ConfigFormatError(f"Duration {original!r} is out of range.")

    if negative:
        return -total
    if total > MAX_NANOSECONDS:
        raise ConfigFormatError(f"Duration {original!r} is out of range.")
    return total


def _leading_int(text: str, original: str) -> tuple[int, str]:
    index = 0
    value = 0
    while index < len(text) and text[index] in _DIGITS:
        value = value * 10 + int(text[index])
        if value > 1 << 63:
            raise ConfigFormatError(f"Invalid duration {original!r}.")
        index += 1
    return value, text[index:]


def _leading_fraction(text: str) -> tuple[int, float, str]:
    # Digits past 63 bits of precision are consumed but ignored.
    index = 0
    value = 0
    scale = 1.0
    overflow = False
    while index < len(text) and text[index] in _DIGITS:
        digit = int(text[index])
        index += 1
        if overflow:
            continue
        if value > MAX_NANOSECONDS // 10:
            overflow = True
            continue
        candidate = value * 10 + digit
        if candidate > 1 << 63:
            overflow = True
            continue
        value = candidate
        scale *= 10
    return value, scale, text[index:]


def format_duration(nanoseconds: int) -> str:
    """Return the canonical compound rendering of *nanoseconds*."""
    if nanoseconds == 0:
        return "0s"
    negative = nanoseconds < 0
    remaining = abs(nanoseconds)

    if remaining < SECOND:
        if remaining < MICROSECOND:
            precision, unit = 0, "ns"
        elif remaining < MILLISECOND:
            precision, unit = 3, "µs"
        else:
            precision, unit = 6, "ms"
        fraction, remaining = _format_fraction(remaining, precision)
        text = f"{remaining}{fraction}{unit}"
    else:
        fraction, remaining = _format_fraction(remaining, 9)
        text = f"{remaining % 60}{fraction}s"
        remaining //= 60
        if remaining > 0:
            text = f"{remaining % 60}m{text}"
            remaining //= 60
            if remaining > 0:
                text = f"{remaining}h{text}"

    return f"-{text}" if negative else text


def _format_fraction(value: int, precision: int) -> tuple[str, int]:
    digits: list[str] = []
    printing = False
    for _ in range(precision):
        digit = value % 10
        printing = printing or digit != 0
        if printing:
            digits.append(str(digit))
        value //= 10
    if not printing:
        return "", value
    return "." + "".join(reversed(digits)), value


@dataclass(eq=True)
class Duration(SettableValue):
    """A signed nanosecond duration configured as ``"1m30s"``-style text."""

    nanoseconds: int = 0

    def __post_init__(self) -> None:
        """Reject counts outside the signed 64-bit range."""
        if not MIN_NANOSECONDS <= self.nanoseconds <= MAX_NANOSECONDS:
            raise ConfigFormatError(f"Duration of {self.nanoseconds}ns is out of range.")

    @classmethod
    def parse(cls, text: str) -> Duration:
        """Return a new duration parsed from *text*."""
        return cls(parse_duration(text))

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> Duration:
        """Return the duration equivalent to *delta*."""
        micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
        return cls(micros * MICROSECOND)

    def set(self, text: str) -> None:
        """Parse *text* such as ``"1m30s"``."""
        self.nanoseconds = parse_duration(text)

    def to_text(self) -> str:
        """Return the canonical rendering, e.g. ``"1m30s"``."""
        return format_duration(self.nanoseconds)

    def total_seconds(self) -> float:
        """Return the duration in (fractional) seconds."""
        return self.nanoseconds / SECOND

    @property
    def timedelta(self) -> timedelta:
        """Return the duration as a ``timedelta`` (microsecond precision)."""
        micros = abs(self.nanoseconds) // MICROSECOND
        return timedelta(microseconds=-micros if self.nanoseconds < 0 else micros)

    def __int__(self) -> int:
        return self.nanoseconds


__all__ = [
    "HOUR",
    "MICROSECOND",
    "MILLISECOND",
    "MINUTE",
    "NANOSECOND",
    "SECOND",
    "Duration",
    "format_duration",
    "parse_duration",
]
