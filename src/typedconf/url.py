"""URL values parsed with :mod:`urllib.parse`."""
from __future__ import annotations

import re
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .errors import ConfigFormatError, ConfigValidationError
from .values import SettableValue

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def parse_url(text: str) -> SplitResult:
    """Split *text* into URL components, rejecting malformed input."""
    if _CONTROL_CHARS.search(text):
        raise ConfigFormatError(f"Invalid control character in URL {text!r}.")
    try:
        parts = urlsplit(text)
        parts.port  # noqa: B018 - port is validated lazily by urllib
    except ValueError as exc:
        raise ConfigFormatError(f"Invalid URL {text!r}: {exc}") from exc
    return parts


class URL(SettableValue):
    """A URL kept as a :class:`urllib.parse.SplitResult`."""

    def __init__(self, text: str | None = None) -> None:
        """Create an unset URL, or parse *text* immediately."""
        self._parts: SplitResult | None = None
        if text is not None:
            self.set(text)

    def set(self, text: str) -> None:
        """Parse *text* as a URL; ``""`` leaves it unset."""
        self._parts = parse_url(text) if text else None

    def to_text(self) -> str:
        """Return the URL re-assembled from its parsed parts."""
        if self._parts is None:
            return ""
        return urlunsplit(self._parts)

    @property
    def parts(self) -> SplitResult:
        """Return the parsed components."""
        if self._parts is None:
            raise ConfigValidationError("URL is not set.")
        return self._parts

    @property
    def scheme(self) -> str:
        return self.parts.scheme

    @property
    def host(self) -> str:
        """Return the network location (``host[:port]``, with any credentials)."""
        return self.parts.netloc

    @property
    def hostname(self) -> str | None:
        return self.parts.hostname

    @property
    def port(self) -> int | None:
        return self.parts.port

    @property
    def path(self) -> str:
        return self.parts.path

    @property
    def query(self) -> str:
        return self.parts.query

    @property
    def fragment(self) -> str:
        return self.parts.fragment

    def __repr__(self) -> str:
        return f"URL({self.to_text()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, URL):
            return NotImplemented
        return self._parts == other._parts

    __hash__ = None  # type: ignore[assignment]


__all__ = ["URL", "parse_url"]
