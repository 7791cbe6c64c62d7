"""Release failure presentation and exit code mapping."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rel.core.errors import ErrorCode
from rel.output.console import Style
from rel.output.redact import redact
from rel.release.errors import ReleaseError
from rel.release.model import ReleaseFailure

if TYPE_CHECKING:
    from rel.output.console import ConsoleProtocol

__all__ = ["release_error_exit_code", "print_release_failure"]

_LOG_TAIL_LINES = 20


def release_error_exit_code(error: ReleaseError) -> int:
    match error.kind:
        case "build_failed":
            return int(ErrorCode.BUILD_ERROR)
        case "registry_unreachable" | "publish_rejected" | "authentication_failed":
            return int(ErrorCode.PUBLISH_ERROR)
        case "invalid_version_format" | "version_mismatch":
            return int(ErrorCode.VERSION_ERROR)
        case "cancelled":
            return int(ErrorCode.CANCELLED)
        case "config_invalid":
            return int(ErrorCode.USER_ERROR)


def print_release_failure(
    failure: ReleaseFailure,
    console: ConsoleProtocol,
    *,
    secret: str | None = None,
) -> None:
    """Print stage, kind and reason; build logs are trimmed to their tail."""
    error = failure.error
    console.error(redact(f"{failure.stage}: {error.kind}: {error.message}", secret))
    if error.hint:
        console.print(redact(f"hint: {error.hint}", secret), Style.DIM)
    if error.log:
        tail = "\n".join(error.log.splitlines()[-_LOG_TAIL_LINES:])
        console.print(redact(tail, secret), Style.DIM)
