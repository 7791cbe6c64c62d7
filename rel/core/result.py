"""Result type for explicit error handling.

Stages return ``Ok(value)`` or ``Err(error)`` instead of raising, so the
orchestrator can decide what a failure means without try/except at every
call site.

Usage:
    match resolve("v1.2.3", prefix="v"):
        case Ok(version):
            print(version.value)
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result carrying ``value``."""

    value: T

    def unwrap(self) -> T:
        return self.value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed result carrying ``error``."""

    error: E

    def unwrap(self) -> None:
        """Raise, since there is no value.

        Raises:
            ValueError: Always, mentioning the carried error.
        """
        raise ValueError(f"called unwrap on Err: {self.error}")

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result: TypeAlias = Union[Ok[T], Err[E]]
