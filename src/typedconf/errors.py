"""Exception hierarchy shared by every typedconf module."""
from __future__ import annotations

from pathlib import Path


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be parsed or loaded."""


class ConfigFormatError(ConfigError, ValueError):
    """Raised when literal text is malformed for the target type."""


class ConfigValidationError(ConfigError, ValueError):
    """Raised when well-formed input is rejected (wrong family, unknown name)."""


class AddressResolutionError(ConfigValidationError):
    """Raised when a host name cannot be resolved to an address."""


class ConfigStructureError(ConfigError):
    """Raised when a JSON/YAML document does not match the expected shape."""


class ConfigFileError(ConfigError):
    """Raised when a file referenced by the configuration cannot be read."""

    def __init__(self, path: str | Path, message: str) -> None:
        """Record the offending *path* alongside the message."""
        super().__init__(message)
        self.path = Path(path)


class ConfigFileNotFoundError(ConfigFileError):
    """Raised when a required file does not exist."""


def file_error(path: str | Path, exc: OSError, *, what: str = "file") -> ConfigFileError:
    """Translate an ``OSError`` raised while reading *path*."""
    reason = exc.strerror or str(exc)
    if isinstance(exc, FileNotFoundError):
        return ConfigFileNotFoundError(path, f"Cannot read {what} {path}: {reason}.")
    return ConfigFileError(path, f"Cannot read {what} {path}: {reason}.")


__all__ = [
    "AddressResolutionError",
    "ConfigError",
    "ConfigFileError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigStructureError",
    "ConfigValidationError",
    "file_error",
]
