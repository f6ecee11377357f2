"""typedconf package bootstrap.

Typed configuration values (durations, network addresses, indirect strings,
URLs and TLS material) that parse from a single string, render back to it,
and load from JSON or YAML documents and environment variables.
"""
from __future__ import annotations

from .addr import Addr, InetAddress, TCPAddr, UDPAddr, UnixAddr
from .duration import Duration, format_duration, parse_duration
from .env import Environment, ErrorHandling
from .errors import (
    AddressResolutionError,
    ConfigError,
    ConfigFileError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigStructureError,
    ConfigValidationError,
)
from .flags import argument_type
from .loader import Format, dump_json, dump_yaml, load, load_json, load_yaml
from .strings import IndirectString
from .tls import TLS, ClientAuthType, TLSClientAuth, TLSConfig, TLSContext
from .url import URL
from .values import SettableValue

__all__ = [
    "Addr",
    "AddressResolutionError",
    "ClientAuthType",
    "ConfigError",
    "ConfigFileError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigStructureError",
    "ConfigValidationError",
    "Duration",
    "Environment",
    "ErrorHandling",
    "Format",
    "IndirectString",
    "InetAddress",
    "SettableValue",
    "TCPAddr",
    "TLS",
    "TLSClientAuth",
    "TLSConfig",
    "TLSContext",
    "UDPAddr",
    "URL",
    "UnixAddr",
    "__version__",
    "argument_type",
    "dump_json",
    "dump_yaml",
    "format_duration",
    "get_version",
    "load",
    "load_json",
    "load_yaml",
    "parse_duration",
]

# NOTE: The version is duplicated in ``pyproject.toml`` and managed by Hatch.
__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
