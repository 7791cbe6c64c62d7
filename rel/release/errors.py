from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "invalid_version_format",
    "build_failed",
    "version_mismatch",
    "registry_unreachable",
    "publish_rejected",
    "authentication_failed",
    "cancelled",
    "config_invalid",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    Stages return it inside ``Err``; the CLI renders it and maps ``kind`` to
    an exit code. ``message`` and ``hint`` never contain the credential.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    # Only set for build_failed.
    exit_code: int | None = None
    log: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


def invalid_version(message: str, *, hint: str | None = None) -> ReleaseError:
    return ReleaseError(kind="invalid_version_format", message=message, hint=hint)


def build_failed(message: str, *, exit_code: int, log: str = "") -> ReleaseError:
    return ReleaseError(kind="build_failed", message=message, exit_code=exit_code, log=log)


def publish_rejected(reason: str, *, hint: str | None = None) -> ReleaseError:
    return ReleaseError(kind="publish_rejected", message=reason, hint=hint)


def cancelled(stage: str) -> ReleaseError:
    return ReleaseError(kind="cancelled", message=f"cancelled during {stage}")
