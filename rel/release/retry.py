"""Retry with exponential backoff for transient registry failures.

Retries stay inside a stage: an error that survives the policy is returned
to the orchestrator, which never retries across stages.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from rel.core.result import Ok, Result
from rel.release.timeouts import REGISTRY_RETRY_ATTEMPTS, REGISTRY_RETRY_BACKOFF_SECONDS

T = TypeVar("T")
E = TypeVar("E")


class CancelToken:
    """Cooperative cancellation shared by the stages of one run.

    Backoff waits go through ``wait`` so a cancelled run stops sleeping at
    once instead of finishing its retry schedule.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = REGISTRY_RETRY_ATTEMPTS
    backoff: float = REGISTRY_RETRY_BACKOFF_SECONDS

    def delay(self, attempt: int) -> float:
        """Wait before retrying after the 0-based ``attempt`` failed: 1s, 2s, 4s..."""
        return self.backoff * (2**attempt)


@dataclass(frozen=True, slots=True)
class RetryOutcome(Generic[T, E]):
    result: Result[T, E] | None  # None when cancelled before an attempt finished
    attempts: int

    @property
    def cancelled(self) -> bool:
        return self.result is None


def call_with_retry(
    op: Callable[[], Result[T, E]],
    *,
    policy: RetryPolicy,
    is_transient: Callable[[E], bool],
    cancel: CancelToken,
    on_retry: Callable[[int, E, float], None] | None = None,
) -> RetryOutcome[T, E]:
    """Run ``op`` until it succeeds, fails permanently, or attempts run out."""
    attempts = max(1, policy.attempts)
    result: Result[T, E] | None = None
    for attempt in range(attempts):
        if cancel.cancelled:
            return RetryOutcome(result=None, attempts=attempt)

        result = op()
        if isinstance(result, Ok):
            return RetryOutcome(result=result, attempts=attempt + 1)

        error = result.error
        if attempt == attempts - 1 or not is_transient(error):
            return RetryOutcome(result=result, attempts=attempt + 1)

        delay = policy.delay(attempt)
        if on_retry is not None:
            on_retry(attempt + 1, error, delay)
        if cancel.wait(delay):
            return RetryOutcome(result=None, attempts=attempt + 1)

    return RetryOutcome(result=result, attempts=attempts)
