from __future__ import annotations

from enum import StrEnum

from rel.core.result import Err, Ok, Result
from rel.release.registry import Registry


class Availability(StrEnum):
    """Whether a crate name can still be claimed on a registry."""

    AVAILABLE = "Available"
    UNAVAILABLE = "Unavailable"
    # The registry could not be asked (network, timeout, unexpected status).
    UNKNOWN = "Unknown"


def check_availability(name: str, registry: Registry) -> Result[Availability, str]:
    """Look the name up; Err only for an empty name."""
    name = name.strip()
    if not name:
        return Err("crate name can't be empty")

    result = registry.crate_exists(name)
    if isinstance(result, Err):
        return Ok(Availability.UNKNOWN)
    return Ok(Availability.UNAVAILABLE if result.value else Availability.AVAILABLE)
