"""Exit codes returned by the ``typedconf`` command line."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Well-known exit codes used across the CLI."""

    OK = 0
    VALIDATION = 2
    FILE = 3
    STRUCTURE = 4
