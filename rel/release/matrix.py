"""Independent release runs in parallel.

Each job gets its own orchestration; runs share nothing but the remote
registry. All jobs run to completion even when one fails, and the matrix
fails if any job failed.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from rel.release.model import ReleaseAttempt
from rel.release.retry import CancelToken

MAX_PARALLEL_RUNS = 4


@dataclass(frozen=True, slots=True)
class MatrixJob:
    tag: str
    project_root: Path


@dataclass(frozen=True, slots=True)
class MatrixReport:
    attempts: tuple[ReleaseAttempt, ...]

    @property
    def succeeded(self) -> bool:
        return all(a.succeeded for a in self.attempts)

    @property
    def failed(self) -> tuple[ReleaseAttempt, ...]:
        return tuple(a for a in self.attempts if not a.succeeded)


def run_matrix(
    jobs: Sequence[MatrixJob],
    run: Callable[[MatrixJob], ReleaseAttempt],
    *,
    max_workers: int = MAX_PARALLEL_RUNS,
    cancel: CancelToken | None = None,
) -> MatrixReport:
    """Run every job and report outcomes in job order.

    An interrupt in the caller cancels ``cancel`` before the pool waits for
    the running jobs, so they stop at their next stage boundary or backoff.
    """
    if len(jobs) <= 1:
        return MatrixReport(attempts=tuple(run(job) for job in jobs))

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs)))) as pool:
        futures = [pool.submit(run, job) for job in jobs]
        try:
            return MatrixReport(attempts=tuple(f.result() for f in futures))
        except KeyboardInterrupt:
            if cancel is not None:
                cancel.cancel()
            raise
