"""Typer-powered command line for inspecting typedconf values.

``typedconf parse KIND VALUE`` runs one string through the matching value
type and shows what it resolved to; ``typedconf tls FILE`` loads a TLS
declaration, reads every referenced certificate and key, and summarises the
result. Both commands print a table by default, or JSON/YAML with
``--json``/``--output``. The default output format can be set with the
``TYPEDCONF_FORMAT`` environment variable.
"""
from __future__ import annotations

import json
import logging
import textwrap
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from . import __version__
from .addr import Addr, TCPAddr, UDPAddr, UnixAddr
from .duration import Duration
from .env import Environment
from .errors import (
    ConfigError,
    ConfigFileError,
    ConfigStructureError,
    ConfigValidationError,
)
from .exit_codes import ExitCode
from .flags import parse_value
from .loader import Format, dump_json, dump_yaml, load
from .strings import IndirectString
from .tls import TLS, TLSClientAuth
from .url import URL
from .values import SettableValue

console = Console()


class OutputFormat(str, Enum):
    """Rendering used for command results."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


class ValueKind(str, Enum):
    """Value types accepted by ``typedconf parse``."""

    DURATION = "duration"
    ADDR = "addr"
    TCP = "tcp"
    UDP = "udp"
    UNIX = "unix"
    STRING = "string"
    URL = "url"
    CLIENT_AUTH = "client-auth"
    TLS = "tls"


VALUE_TYPES: dict[ValueKind, type[SettableValue]] = {
    ValueKind.DURATION: Duration,
    ValueKind.ADDR: Addr,
    ValueKind.TCP: TCPAddr,
    ValueKind.UDP: UDPAddr,
    ValueKind.UNIX: UnixAddr,
    ValueKind.STRING: IndirectString,
    ValueKind.URL: URL,
    ValueKind.CLIENT_AUTH: TLSClientAuth,
    ValueKind.TLS: TLS,
}


@dataclass
class CliSettings:
    """CLI defaults, overridable through ``TYPEDCONF_*`` environment variables."""

    format: str = OutputFormat.TABLE.value


def load_settings() -> CliSettings:
    """Return the CLI defaults with the environment applied."""
    settings = CliSettings()
    Environment().bind(settings, "TYPEDCONF")
    return settings


JSON_OPTION = typer.Option(False, "--json", help="Emit JSON (shorthand for --output json).")
OUTPUT_OPTION = typer.Option(
    None,
    "--output",
    "-o",
    case_sensitive=False,
    help="Output format (defaults to $TYPEDCONF_FORMAT or table).",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Inspect typed configuration values.

        Parse single values the way a configuration file or environment
        variable would supply them, and check TLS declarations against the
        certificate and key files they reference.
        """
    ).strip(),
)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the typedconf version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug details to stderr.",
    ),
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"typedconf {__version__}")
        raise typer.Exit(code=ExitCode.OK)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=ExitCode.OK)


@app.command("parse")
def parse_command(
    kind: ValueKind = typer.Argument(..., case_sensitive=False, help="Value type to parse."),
    text: str = typer.Argument(..., metavar="VALUE", help="Text to parse."),
    json_output: bool = JSON_OPTION,
    output: OutputFormat | None = OUTPUT_OPTION,
) -> None:
    """Parse VALUE as KIND and show the result."""
    selected = _output_format(json_output, output)
    try:
        value = parse_value(VALUE_TYPES[kind], text)
        payload = describe_value(value)
    except ConfigError as exc:
        _command_error(exc)
    _emit(payload, selected, title=f"{kind.value} value")


@app.command("tls")
def tls_command(
    file: Path = typer.Argument(..., dir_okay=False, help="JSON or YAML file holding the declaration."),
    section: str | None = typer.Option(
        None,
        "--section",
        "-s",
        help="Read the declaration from this top-level key instead of the whole document.",
    ),
    json_output: bool = JSON_OPTION,
    output: OutputFormat | None = OUTPUT_OPTION,
) -> None:
    """Load a TLS declaration and every file it references."""
    selected = _output_format(json_output, output)
    value = TLS()
    try:
        if section is None:
            load(value, file)
        else:
            document: dict[str, object] = {}
            load(document, file)
            value.decode(
                _section(document, section, file),
                yaml_scalars=Format.for_path(file) is Format.YAML,
            )
        payload = describe_value(value)
    except ConfigError as exc:
        _command_error(exc)
    _emit(payload, selected, title=f"TLS declaration in {file}")


def describe_value(value: SettableValue) -> dict[str, object]:
    """Return the round-trip text of *value* plus type-specific details."""
    if isinstance(value, TLS):
        context = value.context.to_dict() if value.context is not None else None
        return {"type": "TLS", "declaration": value.encode(), "context": context}

    details: dict[str, object] = {"type": type(value).__name__, "text": value.to_text()}
    if isinstance(value, Duration):
        details["nanoseconds"] = value.nanoseconds
        details["seconds"] = value.total_seconds()
    elif isinstance(value, (TCPAddr, UDPAddr)):
        details["network"] = value.network
        details["host"] = value.host
        details["port"] = value.port
        if value.zone:
            details["zone"] = value.zone
    elif isinstance(value, Addr):
        details["network"] = value.network
        details["address"] = value.address
    elif isinstance(value, UnixAddr):
        details["network"] = value.network
        details["path"] = value.path
    elif isinstance(value, IndirectString):
        details["value"] = value.value
    elif isinstance(value, URL):
        details["scheme"] = value.scheme
        details["host"] = value.host
        details["path"] = value.path
        details["query"] = value.query
        details["fragment"] = value.fragment
    elif isinstance(value, TLSClientAuth):
        details["value"] = int(value.value)
        details["verify_mode"] = value.verify_mode.name
    return details


def _section(document: dict[str, object], section: str, file: Path) -> object:
    for key, node in document.items():
        if key.lower() == section.lower():
            return node
    raise ConfigStructureError(f"Section '{section}' not found in {file}.")


def _output_format(json_output: bool, output: OutputFormat | None) -> OutputFormat:
    if json_output:
        return OutputFormat.JSON
    if output is not None:
        return output
    configured = load_settings().format
    try:
        return OutputFormat(configured.lower())
    except ValueError:
        allowed = ", ".join(item.value for item in OutputFormat)
        _command_error(
            ConfigValidationError(f"Invalid TYPEDCONF_FORMAT '{configured}'. Allowed: {allowed}.")
        )


def _exit_code_for(exc: ConfigError) -> ExitCode:
    if isinstance(exc, ConfigFileError):
        return ExitCode.FILE
    if isinstance(exc, ConfigStructureError):
        return ExitCode.STRUCTURE
    return ExitCode.VALIDATION


def _command_error(exc: ConfigError) -> NoReturn:
    """Print *exc* (with any notes) and terminate the command."""
    console.print(f"[red]{escape(str(exc))}[/red]", soft_wrap=True)
    for note in getattr(exc, "__notes__", ()):
        console.print(f"[red]  {escape(note)}[/red]", soft_wrap=True)
    raise typer.Exit(code=_exit_code_for(exc))


def _emit(payload: dict[str, object], output: OutputFormat, *, title: str) -> None:
    if output is OutputFormat.JSON:
        typer.echo(dump_json(payload, indent=2))
        return
    if output is OutputFormat.YAML:
        typer.echo(dump_yaml(payload), nl=False)
        return

    table = Table("Field", "Value", title=title)
    for key, item in payload.items():
        if isinstance(item, (dict, list)):
            rendered = json.dumps(item, indent=2)
        elif item is None:
            rendered = "-"
        else:
            rendered = str(item)
        table.add_row(key, Text(rendered))
    console.print(table)


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["CliSettings", "OutputFormat", "ValueKind", "app", "describe_value", "main"]
