"""check-name command - is a crate name still free on the registry?"""

from __future__ import annotations

import typer

from rel.cli.commands._helpers import exit_with
from rel.cli.context import build_context
from rel.core.config import DEFAULT_REGISTRY_URL
from rel.core.errors import ErrorCode
from rel.core.result import Err
from rel.output.console import Style
from rel.release.availability import Availability, check_availability
from rel.release.timeouts import AVAILABILITY_TIMEOUT_SECONDS


def check_name(
    name: str = typer.Argument(..., help="Crate name to look up"),
    registry: str = typer.Option(DEFAULT_REGISTRY_URL, "--registry", help="Registry base URL"),
    timeout: float = typer.Option(
        AVAILABILITY_TIMEOUT_SECONDS, "--timeout", help="Seconds before the answer is Unknown"
    ),
) -> None:
    """Print Available, Unavailable or Unknown for NAME.

    Exits 0 only when the name is available.
    """
    ctx = build_context()
    result = check_availability(name, ctx.make_registry(registry.rstrip("/"), timeout))
    if isinstance(result, Err):
        exit_with(result.error, code=ErrorCode.USER_ERROR)

    availability = result.value
    match availability:
        case Availability.AVAILABLE:
            ctx.console.print(f"{name}: {availability}", Style.SUCCESS)
        case Availability.UNAVAILABLE:
            ctx.console.print(f"{name}: {availability}", Style.WARNING)
        case Availability.UNKNOWN:
            ctx.console.print(f"{name}: {availability}", Style.DIM)

    if availability != Availability.AVAILABLE:
        raise typer.Exit(code=1)
