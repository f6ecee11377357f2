"""String values that may be read from an environment variable or a file."""
from __future__ import annotations

import os
from pathlib import Path

from .errors import ConfigFormatError, file_error
from .values import SettableValue

FILE_PREFIXES = ("/", "./", "../")


class IndirectString(SettableValue):
    """A string given literally, as ``$VARIABLE``, or as a file path.

    ``"$NAME"`` resolves to the environment variable ``NAME`` (empty when the
    variable is unset). Text starting with ``/``, ``./`` or ``../`` resolves to
    the whitespace-trimmed contents of that file. Anything else is used as is.

    Serialization always emits the original text, never the resolved value, so
    secrets kept in files or the environment stay there.
    """

    def __init__(self, text: str | None = None) -> None:
        """Create an empty string, or resolve *text* immediately."""
        self._source = ""
        self._value = ""
        if text is not None:
            self.set(text)

    @property
    def source(self) -> str:
        """Return the text as configured (before resolution)."""
        return self._source

    @property
    def value(self) -> str:
        """Return the resolved string."""
        return self._value

    def set(self, text: str) -> None:
        """Resolve *text*; a failed file read keeps the previous state."""
        if text.startswith("$"):
            value = os.environ.get(text[1:], "")
        elif text.startswith(FILE_PREFIXES):
            try:
                value = Path(text).read_text(encoding="utf-8").strip()
            except OSError as exc:
                raise file_error(text, exc) from exc
            except UnicodeDecodeError as exc:
                raise ConfigFormatError(f"File {text} is not valid UTF-8 text.") from exc
        else:
            value = text
        self._source, self._value = text, value

    def to_text(self) -> str:
        """Return the unresolved source text."""
        return self._source

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"IndirectString(source={self._source!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndirectString):
            return NotImplemented
        return self._source == other._source and self._value == other._value

    __hash__ = None  # type: ignore[assignment]


__all__ = ["FILE_PREFIXES", "IndirectString"]
