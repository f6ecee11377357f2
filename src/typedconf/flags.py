"""Use settable values as command-line argument converters.

``argparse`` and Click (and therefore Typer) treat a ``ValueError`` raised by
a converter as a usage error, so::

    parser.add_argument("--timeout", type=argument_type(Duration))

    @app.command()
    def serve(listen: TCPAddr = typer.Option(..., parser=argument_type(TCPAddr))): ...

reports ``invalid Duration value: '5x'`` instead of a traceback.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from .errors import ConfigError
from .values import SettableValue

V = TypeVar("V", bound=SettableValue)


def parse_value(cls: type[V], text: str) -> V:
    """Build a fresh *cls* and set it from *text*."""
    value = cls()
    value.set(text)
    return value


def argument_type(cls: type[V]) -> Callable[[str], V]:
    """Return a converter that parses one argument into a new *cls* instance."""

    def convert(text: str) -> V:
        try:
            return parse_value(cls, text)
        except ValueError:
            raise
        except ConfigError as exc:
            raise ValueError(str(exc)) from exc

    # argparse names the converter in its error messages.
    convert.__name__ = cls.__name__
    convert.__qualname__ = cls.__name__
    convert.__doc__ = f"Parse a {cls.__name__} from command-line text."
    return convert


__all__ = ["argument_type", "parse_value"]
