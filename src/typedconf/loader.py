"""Load JSON or YAML configuration files into typed targets.

A target is usually a dataclass instance carrying defaults. Document keys are
matched to fields case-insensitively (``field(metadata={"key": ...})``
overrides the field name) and each value is decoded according to the field's
annotation. Fields holding a :class:`~typedconf.values.SettableValue` are
decoded in place through the value's own parser, so::

    @dataclass
    class ServerConfig:
        listen: TCPAddr = field(default_factory=TCPAddr)
        timeout: Duration = field(default_factory=lambda: Duration.parse("30s"))

    config = ServerConfig()
    load_yaml(config, "/etc/app/server.yml", required=False)

A missing file is only tolerated when ``required`` is false; in that case the
target keeps its defaults.
"""
from __future__ import annotations

import json
import logging
import os
import types
import typing
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import Field, fields, is_dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Any, Union

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load typedconf configuration. Install with "
        "`pip install typedconf` or ensure PyYAML>=6.0 is available."
    ) from exc

from .errors import ConfigError, ConfigStructureError, file_error
from .values import SettableValue

LOGGER = logging.getLogger(__name__)


class Format(str, Enum):
    """Supported document formats."""

    JSON = "json"
    YAML = "yaml"

    @classmethod
    def for_path(cls, path: str | os.PathLike[str]) -> Format:
        """Infer the format from a file suffix (YAML unless ``.json``)."""
        return cls.JSON if Path(path).suffix.lower() == ".json" else cls.YAML


def load(
    target: object,
    path: str | os.PathLike[str],
    required: bool = True,
    *,
    fmt: Format | None = None,
    strict: bool = False,
) -> bool:
    """Populate *target* from the file at *path*.

    Returns ``True`` when the file was read and ``False`` when an optional
    file is missing (the target is left untouched).
    """
    file_path = Path(path)
    selected = fmt or Format.for_path(file_path)
    try:
        data = file_path.read_bytes()
    except FileNotFoundError as exc:
        if not required:
            LOGGER.debug("Optional config file %s not found; keeping defaults.", file_path)
            return False
        raise file_error(file_path, exc, what="config file") from exc
    except OSError as exc:
        raise file_error(file_path, exc, what="config file") from exc

    LOGGER.debug("Loading %s config from %s.", selected.value, file_path)
    document = parse_document(data, selected, source=str(file_path))
    if document is None:
        return True
    decode_into(target, document, strict=strict, yaml_scalars=selected is Format.YAML)
    return True


def load_json(
    target: object,
    path: str | os.PathLike[str],
    required: bool = True,
    *,
    strict: bool = False,
) -> bool:
    """Populate *target* from a JSON file."""
    return load(target, path, required, fmt=Format.JSON, strict=strict)


def load_yaml(
    target: object,
    path: str | os.PathLike[str],
    required: bool = True,
    *,
    strict: bool = False,
) -> bool:
    """Populate *target* from a YAML file."""
    return load(target, path, required, fmt=Format.YAML, strict=strict)


def parse_document(data: str | bytes, fmt: Format, *, source: str = "<string>") -> object:
    """Parse *data* as one JSON or YAML document."""
    if fmt is Format.JSON:
        try:
            return json.loads(data)
        except json.JSONDecodeError as exc:
            raise ConfigStructureError(f"Failed to parse config file {source}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ConfigStructureError(f"Config file {source} is not valid UTF-8: {exc}") from exc
    try:
        return yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise ConfigStructureError(f"Failed to parse config file {source}: {exc}") from exc


# ----------------------------------------------------------------------
# Decoding
# ----------------------------------------------------------------------
def decode_into(
    target: object,
    document: object,
    *,
    strict: bool = False,
    path: str = "",
    yaml_scalars: bool = False,
) -> None:
    """Assign the values of *document* onto *target* in place.

    *yaml_scalars* lets settable values take YAML booleans and numbers as text.
    """
    label = path or type(target).__name__
    if isinstance(target, SettableValue):
        _decode_settable(target, document, label, yaml_scalars)
        return
    if isinstance(target, MutableMapping):
        target.update(_as_dict(document, label))
        return
    if not is_dataclass(target) or isinstance(target, type):
        raise TypeError(
            f"Cannot decode configuration into {type(target).__name__}; "
            "expected a dataclass instance, mapping, or SettableValue."
        )

    mapping = _as_dict(document, label)
    by_key = {field_key(item).lower(): item for item in fields(target)}
    hints = resolve_type_hints(type(target))
    unknown: list[str] = []
    for key, node in mapping.items():
        item = by_key.get(key.lower())
        if item is None:
            unknown.append(key)
            continue
        child = f"{path}.{key}" if path else key
        current = getattr(target, item.name)
        value = _decode_value(hints.get(item.name, Any), current, node, child, strict, yaml_scalars)
        setattr(target, item.name, value)

    if unknown:
        joined = ", ".join(sorted(unknown))
        if strict:
            where = f" in {path}" if path else ""
            raise ConfigStructureError(f"Unknown configuration keys{where}: {joined}.")
        LOGGER.debug("Ignoring unknown keys in %s: %s.", label, joined)


def _decode_value(
    hint: Any,
    current: object,
    node: object,
    label: str,
    strict: bool,
    yaml_scalars: bool,
) -> object:
    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin in (Union, types.UnionType):
        if node is None and type(None) in args:
            return None
        options = [arg for arg in args if arg is not type(None)]
        if len(options) != 1:
            return node
        hint = options[0]
        origin = typing.get_origin(hint)
        args = typing.get_args(hint)

    # A null leaves the current value (and its defaults) in place.
    if node is None:
        return current

    if isinstance(current, SettableValue):
        _decode_settable(current, node, label, yaml_scalars)
        return current
    if hint is Any and is_dataclass(current) and not isinstance(current, type):
        decode_into(current, node, strict=strict, path=label, yaml_scalars=yaml_scalars)
        return current

    if origin is None and isinstance(hint, type):
        if issubclass(hint, SettableValue):
            value = _instantiate(hint, label)
            _decode_settable(value, node, label, yaml_scalars)
            return value
        if is_dataclass(hint):
            target = current if isinstance(current, hint) else _instantiate(hint, label)
            decode_into(target, node, strict=strict, path=label, yaml_scalars=yaml_scalars)
            return target
        if hint is bool:
            if not isinstance(node, bool):
                raise _type_error(label, "a boolean", node)
            return node
        if hint is int:
            if isinstance(node, bool) or not isinstance(node, int):
                raise _type_error(label, "an integer", node)
            return node
        if hint is float:
            if isinstance(node, bool) or not isinstance(node, (int, float)):
                raise _type_error(label, "a number", node)
            return float(node)
        if hint is str:
            if not isinstance(node, str):
                raise _type_error(label, "a string", node)
            return node
        if issubclass(hint, PurePath):
            if not isinstance(node, str):
                raise _type_error(label, "a path string", node)
            return hint(node)

    if origin in (list, Sequence):
        element = args[0] if args else Any
        items = _as_sequence(node, label)
        return [
            _decode_value(element, None, item, f"{label}[{index}]", strict, yaml_scalars)
            for index, item in enumerate(items)
        ]
    if origin is tuple:
        items = _as_sequence(node, label)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(
                _decode_value(args[0], None, item, f"{label}[{index}]", strict, yaml_scalars)
                for index, item in enumerate(items)
            )
        if args and len(args) != len(items):
            raise ConfigStructureError(
                f"Expected {label} to hold {len(args)} items. Got {len(items)}."
            )
        return tuple(
            _decode_value(
                args[index] if args else Any,
                None,
                item,
                f"{label}[{index}]",
                strict,
                yaml_scalars,
            )
            for index, item in enumerate(items)
        )
    if origin in (dict, Mapping, MutableMapping):
        element = args[1] if len(args) == 2 else Any
        mapping = _as_dict(node, label)
        return {
            key: _decode_value(element, None, item, f"{label}.{key}", strict, yaml_scalars)
            for key, item in mapping.items()
        }
    return node


def _decode_settable(value: SettableValue, node: object, label: str, yaml_scalars: bool) -> None:
    try:
        value.decode(node, yaml_scalars=yaml_scalars)
    except ConfigStructureError as exc:
        raise ConfigStructureError(f"Invalid value for {label}: {exc}") from exc
    except ConfigError as exc:
        exc.add_note(f"while decoding {label}")
        raise


def _instantiate(cls: type, label: str) -> Any:
    try:
        return cls()
    except TypeError as exc:
        raise ConfigStructureError(
            f"Cannot build {cls.__name__} for {label}: it has required constructor arguments."
        ) from exc


def _type_error(label: str, expected: str, node: object) -> ConfigStructureError:
    return ConfigStructureError(
        f"Expected {label} to be {expected}. Got {type(node).__name__} {node!r}."
    )


# ----------------------------------------------------------------------
# Encoding
# ----------------------------------------------------------------------
def to_document(value: object) -> object:
    """Return a JSON/YAML-ready tree of plain mappings, lists and scalars."""
    if isinstance(value, SettableValue):
        return value.encode()
    if is_dataclass(value) and not isinstance(value, type):
        document: dict[str, object] = {}
        for item in fields(value):
            current = getattr(value, item.name)
            if item.metadata.get("omitempty") and _is_empty(current):
                continue
            document[field_key(item)] = to_document(current)
        return document
    if isinstance(value, Mapping):
        return {str(key): to_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_document(item) for item in value]
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def dump_json(value: object, *, indent: int | None = None) -> str:
    """Serialize *value* (usually a dataclass) as JSON text."""
    return json.dumps(to_document(value), indent=indent, ensure_ascii=False)


def dump_yaml(value: object) -> str:
    """Serialize *value* (usually a dataclass) as YAML text."""
    return yaml.safe_dump(to_document(value), sort_keys=False, allow_unicode=True)


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, SettableValue):
        return value.is_empty()
    if isinstance(value, (str, bytes, list, tuple, dict)):
        return len(value) == 0
    return False


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------
def field_key(item: Field[Any]) -> str:
    """Return the document key for a dataclass field."""
    return str(item.metadata.get("key", item.name))


def resolve_type_hints(cls: type) -> dict[str, Any]:
    """Return evaluated annotations for *cls*, or ``{}`` when unresolvable."""
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        LOGGER.debug("Cannot resolve annotations for %s; decoding untyped.", cls.__name__)
        return {}


def _as_dict(value: object, label: str) -> dict[str, object]:
    if not isinstance(value, Mapping):
        raise ConfigStructureError(
            f"Expected {label} to be a mapping. Got {type(value).__name__}."
        )
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigStructureError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigStructureError(
            f"Expected {label} to be a sequence. Got {type(value).__name__}."
        )
    return value


__all__ = [
    "Format",
    "decode_into",
    "dump_json",
    "dump_yaml",
    "field_key",
    "load",
    "load_json",
    "load_yaml",
    "parse_document",
    "resolve_type_hints",
    "to_document",
]
