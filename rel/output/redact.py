"""Credential scrubbing for anything that may reach a terminal or CI log."""

from __future__ import annotations

REDACTED = "***"

# Shorter values would blank out unrelated words.
_MIN_SECRET_LENGTH = 4


def redact(text: str, *secrets: str | None) -> str:
    """Replace every occurrence of each secret in ``text`` with ``***``."""
    out = text
    for secret in secrets:
        if secret and len(secret) >= _MIN_SECRET_LENGTH:
            out = out.replace(secret, REDACTED)
    return out
