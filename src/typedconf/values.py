"""Common contract for values that parse from, and render to, one string.

Every concrete type (durations, addresses, indirect strings, URLs, TLS
settings) implements :meth:`SettableValue.set` and
:meth:`SettableValue.to_text`. The JSON and YAML helpers defined here map that
pair onto each format's string scalar so subclasses never repeat them.
"""
from __future__ import annotations

import json
import math
from abc import ABC, abstractmethod
from typing import IO

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required by typedconf. Install with "
        "`pip install typedconf` or ensure PyYAML>=6.0 is available."
    ) from exc

from .errors import ConfigStructureError


def yaml_scalar_text(node: object) -> object:
    """Return the YAML spelling of a boolean or numeric *node*; other nodes pass through."""
    if isinstance(node, bool):
        return "true" if node else "false"
    if isinstance(node, int):
        return str(node)
    if isinstance(node, float):
        if math.isnan(node):
            return ".nan"
        if math.isinf(node):
            return ".inf" if node > 0 else "-.inf"
        return repr(node)
    return node


class SettableValue(ABC):
    """A typed value whose state is fully determined by one string."""

    @abstractmethod
    def set(self, text: str) -> None:
        """Parse *text* into this value, leaving it untouched on failure."""

    @abstractmethod
    def to_text(self) -> str:
        """Return the string that :meth:`set` would accept to rebuild this value."""

    # ------------------------------------------------------------------
    # Structured document nodes
    # ------------------------------------------------------------------
    def decode(self, node: object, *, yaml_scalars: bool = False) -> None:
        """Assign from a parsed JSON/YAML node (a string scalar).

        With *yaml_scalars* a YAML boolean or number is accepted through its
        YAML spelling, so ``token: 12345`` reads the same as ``token: "12345"``.
        """
        if yaml_scalars:
            node = yaml_scalar_text(node)
        if not isinstance(node, str):
            raise ConfigStructureError(
                f"Expected a string for {type(self).__name__}. Got {type(node).__name__} {node!r}."
            )
        self.set(node)

    def encode(self) -> object:
        """Return the JSON/YAML node representing this value."""
        return self.to_text()

    def is_empty(self) -> bool:
        """Return whether ``omitempty`` fields holding this value are skipped on write."""
        return self.to_text() == ""

    # ------------------------------------------------------------------
    # Format helpers
    # ------------------------------------------------------------------
    def from_json(self, data: str | bytes) -> None:
        """Parse a JSON document holding this value."""
        try:
            node = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ConfigStructureError(
                f"Invalid JSON for {type(self).__name__}: {exc}"
            ) from exc
        self.decode(node)

    def from_yaml(self, stream: str | bytes | IO[str] | IO[bytes]) -> None:
        """Parse a YAML document holding this value."""
        try:
            node = yaml.safe_load(stream)
        except yaml.YAMLError as exc:
            raise ConfigStructureError(
                f"Invalid YAML for {type(self).__name__}: {exc}"
            ) from exc
        self.decode(node, yaml_scalars=True)

    def to_json(self) -> str:
        """Return this value encoded as a JSON document."""
        return json.dumps(self.encode())

    def to_yaml(self) -> object:
        """Return the YAML node for this value (a plain scalar for most types)."""
        return self.encode()

    def __str__(self) -> str:
        return self.to_text()


__all__ = ["SettableValue", "yaml_scalar_text"]
