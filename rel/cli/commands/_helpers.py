"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn

import typer

from rel.core.errors import ErrorCode


def exit_with(message: str, *, code: ErrorCode) -> NoReturn:
    """Print ``error: message`` to stderr and exit with ``code``."""
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=int(code))
