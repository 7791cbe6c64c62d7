from __future__ import annotations

import re

from rel.core.result import Err, Ok, Result
from rel.release.errors import ReleaseError, invalid_version
from rel.release.model import ReleaseVersion

TAG_REF_PREFIX = "refs/tags/"

_ALLOWED_CHARS_RE = re.compile(r"[0-9A-Za-z.+-]+")
_SEMVER_RE = re.compile(
    r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)(?:\.(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
)


def strip_ref(trigger_ref: str) -> str:
    """Drop the ``refs/tags/`` namespace CI platforms put in front of tags."""
    if trigger_ref.startswith(TAG_REF_PREFIX):
        return trigger_ref[len(TAG_REF_PREFIX) :]
    return trigger_ref


def resolve(trigger_ref: str, *, prefix: str = "v") -> Result[ReleaseVersion, ReleaseError]:
    """Derive the release version from a trigger reference.

    ``"v1.2.3"`` with prefix ``"v"`` resolves to ``"1.2.3"``; so does
    ``"refs/tags/v1.2.3"``. The remainder after the prefix must be a semantic
    version (``MAJOR.MINOR.PATCH[-pre][+build]``).
    """
    tag = strip_ref(trigger_ref)
    if not tag.startswith(prefix):
        return Err(
            invalid_version(
                f"trigger ref {tag!r} does not start with {prefix!r}",
                hint=f"expected a tag like {prefix}1.2.3",
            )
        )

    candidate = tag[len(prefix) :]
    if not candidate:
        return Err(invalid_version(f"trigger ref {tag!r} has an empty version"))

    if _ALLOWED_CHARS_RE.fullmatch(candidate) is None:
        return Err(
            invalid_version(
                f"version {candidate!r} contains disallowed characters",
                hint="allowed: digits, letters, '.', '-', '+'",
            )
        )

    if _SEMVER_RE.fullmatch(candidate) is None:
        return Err(
            invalid_version(
                f"version {candidate!r} is not a semantic version",
                hint="expected MAJOR.MINOR.PATCH with optional -pre and +build parts",
            )
        )

    return Ok(ReleaseVersion(value=candidate, tag=tag))
