"""Overlay environment variables on top of configuration defaults.

Bindings mirror the command-line flag style: each call names a destination
and a variable. A variable that is unset or empty leaves the destination
alone, so defaults stand. To get the usual precedence of

1. built-in defaults,
2. environment variables,
3. configuration file values,
4. command line flags,

set defaults first, apply the environment with this module, load the
configuration file, and parse the command line last::

    env = Environment(error_handling=ErrorHandling.CONTINUE_ON_ERROR)
    env.string_var(conf, "title", "EXAMPLE_TITLE")
    env.int_var(conf, "version", "EXAMPLE_VERSION")
    env.var(conf.url, "EXAMPLE_URL")
    env.check()

Nested dataclasses can be bound in one go with :func:`bind`, which maps
``PREFIX_SECTION__FIELD`` variables onto ``conf.section.field``.
"""
from __future__ import annotations

import logging
import math
import os
import re
import types
import typing
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import timedelta
from enum import Enum
from pathlib import PurePath
from typing import Any, TypeVar, Union

from .duration import Duration, parse_duration
from .errors import ConfigError, ConfigFormatError
from .loader import field_key, resolve_type_hints
from .values import SettableValue

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_SIGNED = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"[0-9]+")
_HEX_FLOAT = re.compile(r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)[pP][+-]?[0-9]+")
_INFINITY = {"inf", "+inf", "-inf", "infinity", "+infinity", "-infinity"}
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class ErrorHandling(Enum):
    """What to do when an environment variable fails to parse."""

    CONTINUE_ON_ERROR = "continue"
    STOP_ON_ERROR = "stop"


# ----------------------------------------------------------------------
# Parsers for primitive destinations
# ----------------------------------------------------------------------
def parse_int(text: str, *, bits: int = 64) -> int:
    """Parse a signed decimal integer that fits in *bits* bits."""
    if not _SIGNED.fullmatch(text):
        raise ConfigFormatError(f"Invalid integer {text!r}.")
    value = int(text, 10)
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        raise ConfigFormatError(f"Integer {text!r} is out of range for {bits} bits.")
    return value


def parse_uint(text: str, *, bits: int = 64) -> int:
    """Parse an unsigned decimal integer that fits in *bits* bits."""
    if not _UNSIGNED.fullmatch(text):
        raise ConfigFormatError(f"Invalid unsigned integer {text!r}.")
    value = int(text, 10)
    if value >= 1 << bits:
        raise ConfigFormatError(f"Unsigned integer {text!r} is out of range for {bits} bits.")
    return value


def parse_float(text: str) -> float:
    """Parse a decimal, exponent, hexadecimal, infinite or NaN float."""
    if not text or not text.isascii() or text != text.strip() or "_" in text:
        raise ConfigFormatError(f"Invalid float {text!r}.")
    try:
        value = float(text)
    except ValueError as exc:
        if not _HEX_FLOAT.fullmatch(text):
            raise ConfigFormatError(f"Invalid float {text!r}.") from exc
        try:
            value = float.fromhex(text)
        except OverflowError as overflow:
            raise ConfigFormatError(f"Float {text!r} is out of range.") from overflow
    if math.isinf(value) and text.lower() not in _INFINITY:
        raise ConfigFormatError(f"Float {text!r} is out of range.")
    return value


def parse_bool(text: str) -> bool:
    """Parse ``1 t T TRUE true True`` or ``0 f F FALSE false False``."""
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigFormatError(f"Invalid boolean {text!r}.")


def parse_timedelta(text: str) -> timedelta:
    """Parse compound duration text (``"1m30s"``) into a ``timedelta``."""
    return Duration(parse_duration(text)).timedelta


# ----------------------------------------------------------------------
# Batching object
# ----------------------------------------------------------------------
@dataclass
class Environment:
    """Apply environment variables with a shared error-handling policy.

    With ``STOP_ON_ERROR`` (the default) the first parse failure is raised
    immediately. With ``CONTINUE_ON_ERROR`` failures are recorded and later
    bindings still run; :meth:`check` raises the first recorded error.
    """

    environ: Mapping[str, str] | None = None
    error_handling: ErrorHandling = ErrorHandling.STOP_ON_ERROR
    errors: list[ConfigError] = field(default_factory=list)

    def lookup(self, key: str) -> str | None:
        """Return the value of *key*, or ``None`` when unset or empty."""
        source = os.environ if self.environ is None else self.environ
        value = source.get(key, "")
        return value or None

    @property
    def first_error(self) -> ConfigError | None:
        """Return the first recorded error, if any."""
        return self.errors[0] if self.errors else None

    def check(self) -> None:
        """Raise the first error recorded under ``CONTINUE_ON_ERROR``."""
        if self.errors:
            raise self.errors[0]

    # ------------------------------------------------------------------
    def var(self, value: SettableValue, key: str) -> bool:
        """Set *value* from variable *key*; return whether it was applied."""
        text = self.lookup(key)
        if text is None:
            return False
        try:
            value.set(text)
        except ConfigError as exc:
            exc.add_note(f"while loading environment variable {key}={text!r}")
            return self._failed(exc)
        LOGGER.debug("Applied environment variable %s.", key)
        return True

    def int_var(self, target: object, name: str, key: str) -> bool:
        """Assign a signed integer (platform word size) to ``target.name``."""
        return self._typed_var(target, name, key, parse_int, "integer")

    def int64_var(self, target: object, name: str, key: str) -> bool:
        """Assign a signed 64-bit integer to ``target.name``."""
        return self._typed_var(target, name, key, parse_int, "64-bit integer")

    def uint_var(self, target: object, name: str, key: str) -> bool:
        """Assign an unsigned integer (platform word size) to ``target.name``."""
        return self._typed_var(target, name, key, parse_uint, "unsigned integer")

    def uint64_var(self, target: object, name: str, key: str) -> bool:
        """Assign an unsigned 64-bit integer to ``target.name``."""
        return self._typed_var(target, name, key, parse_uint, "unsigned 64-bit integer")

    def float64_var(self, target: object, name: str, key: str) -> bool:
        """Assign a float to ``target.name``."""
        return self._typed_var(target, name, key, parse_float, "float")

    def bool_var(self, target: object, name: str, key: str) -> bool:
        """Assign a boolean to ``target.name``."""
        return self._typed_var(target, name, key, parse_bool, "boolean")

    def duration_var(self, target: object, name: str, key: str) -> bool:
        """Assign a ``timedelta`` parsed from ``"1m30s"``-style text to ``target.name``."""
        return self._typed_var(target, name, key, parse_timedelta, "duration")

    def string_var(self, target: object, name: str, key: str) -> bool:
        """Assign the raw variable text to ``target.name``."""
        return self._typed_var(target, name, key, str, "string")

    # ------------------------------------------------------------------
    def bind(self, target: object, prefix: str) -> int:
        """Apply ``PREFIX_FIELD`` and ``PREFIX_SECTION__FIELD`` variables to a dataclass.

        Returns the number of variables applied.
        """
        if not is_dataclass(target) or isinstance(target, type):
            raise TypeError(f"bind() expects a dataclass instance, got {type(target).__name__}.")
        return self._bind(target, prefix.rstrip("_"), "_")

    def _bind(self, target: object, base: str, separator: str) -> int:
        applied = 0
        hints = resolve_type_hints(type(target))
        for item in fields(target):  # type: ignore[arg-type]
            name = field_key(item).upper()
            key = f"{base}{separator}{name}" if base else name
            current = getattr(target, item.name)
            if isinstance(current, SettableValue):
                applied += self.var(current, key)
                continue
            if is_dataclass(current) and not isinstance(current, type):
                applied += self._bind(current, key, "__")
                continue
            parser = _parser_for(hints.get(item.name, Any))
            if parser is not None:
                applied += self._typed_var(target, item.name, key, parser, "value")
        return applied

    # ------------------------------------------------------------------
    def _typed_var(
        self,
        target: object,
        name: str,
        key: str,
        parser: Callable[[str], T],
        kind: str,
    ) -> bool:
        text = self.lookup(key)
        if text is None:
            return False
        try:
            parsed = parser(text)
        except ConfigError as exc:
            exc.add_note(f"while loading {kind} environment variable {key}")
            return self._failed(exc)
        _assign(target, name, parsed)
        LOGGER.debug("Applied environment variable %s.", key)
        return True

    def _failed(self, exc: ConfigError) -> bool:
        if self.error_handling is ErrorHandling.STOP_ON_ERROR:
            raise exc
        LOGGER.warning("Ignoring invalid environment value: %s", exc)
        self.errors.append(exc)
        return False


def _assign(target: object, name: str, value: object) -> None:
    if isinstance(target, MutableMapping):
        target[name] = value
    else:
        setattr(target, name, value)


def _parser_for(hint: Any) -> Callable[[str], Any] | None:
    origin = typing.get_origin(hint)
    if origin in (Union, types.UnionType):
        options = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        if len(options) != 1:
            return None
        hint = options[0]
    if hint is bool:
        return parse_bool
    if hint is int:
        return parse_int
    if hint is float:
        return parse_float
    if hint is str:
        return str
    if hint is timedelta:
        return parse_timedelta
    if isinstance(hint, type) and issubclass(hint, PurePath):
        return hint
    return None


# ----------------------------------------------------------------------
# Module-level shortcuts (stop on the first error)
# ----------------------------------------------------------------------
def var(value: SettableValue, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Set *value* from variable *key* if it is set and non-empty."""
    return Environment(environ).var(value, key)


def int_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load a signed integer from *key* into ``target.name``."""
    return Environment(environ).int_var(target, name, key)


def int64_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load a signed 64-bit integer from *key* into ``target.name``."""
    return Environment(environ).int64_var(target, name, key)


def uint_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load an unsigned integer from *key* into ``target.name``."""
    return Environment(environ).uint_var(target, name, key)


def uint64_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load an unsigned 64-bit integer from *key* into ``target.name``."""
    return Environment(environ).uint64_var(target, name, key)


def float64_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load a float from *key* into ``target.name``."""
    return Environment(environ).float64_var(target, name, key)


def bool_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load a boolean from *key* into ``target.name``."""
    return Environment(environ).bool_var(target, name, key)


def duration_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load a ``timedelta`` from *key* into ``target.name``."""
    return Environment(environ).duration_var(target, name, key)


def string_var(target: object, name: str, key: str, *, environ: Mapping[str, str] | None = None) -> bool:
    """Load the text of *key* into ``target.name``."""
    return Environment(environ).string_var(target, name, key)


def bind(target: object, prefix: str, *, environ: Mapping[str, str] | None = None) -> int:
    """Apply prefixed variables to a dataclass tree."""
    return Environment(environ).bind(target, prefix)


__all__ = [
    "Environment",
    "ErrorHandling",
    "bind",
    "bool_var",
    "duration_var",
    "float64_var",
    "int64_var",
    "int_var",
    "parse_bool",
    "parse_float",
    "parse_int",
    "parse_timedelta",
    "parse_uint",
    "string_var",
    "uint64_var",
    "uint_var",
    "var",
]
