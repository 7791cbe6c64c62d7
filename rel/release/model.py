from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Literal

from rel.output.redact import REDACTED
from rel.release.errors import ReleaseError

BuildMode = Literal["debug", "release"]


@dataclass(frozen=True, slots=True)
class ReleaseVersion:
    """A validated version derived from a trigger reference."""

    value: str  # e.g. "1.2.3"
    tag: str  # trigger reference it came from, e.g. "v1.2.3"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """The packaged crate produced by a successful build."""

    path: Path
    sha256: str
    size: int
    crate_name: str
    crate_version: str


class PublishCredential:
    """Registry token. Only ``reveal()`` exposes the raw value."""

    __slots__ = ("_token",)

    def __init__(self, token: str) -> None:
        if not token.strip():
            raise ValueError("empty publish credential")
        self._token = token.strip()

    def reveal(self) -> str:
        return self._token

    def __repr__(self) -> str:
        return f"PublishCredential({REDACTED})"

    __str__ = __repr__


@dataclass(frozen=True, slots=True)
class PublishReceipt:
    crate_name: str
    version: str
    sha256: str
    attempts: int
    warnings: tuple[str, ...] = ()


class ReleaseState(StrEnum):
    INIT = "init"
    VERSION_RESOLVED = "version_resolved"
    BUILT = "built"
    GATE_CHECKED = "gate_checked"
    PUBLISHED = "published"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ReleaseState.DONE, ReleaseState.FAILED)


class ReleaseStage(StrEnum):
    RESOLVE = "resolve"
    BUILD = "build"
    GATE = "gate"
    PUBLISH = "publish"


# Forward-only transitions; FAILED is reachable from every non-terminal state.
_NEXT_STATE: dict[ReleaseState, tuple[ReleaseState, ...]] = {
    ReleaseState.INIT: (ReleaseState.VERSION_RESOLVED,),
    ReleaseState.VERSION_RESOLVED: (ReleaseState.BUILT,),
    ReleaseState.BUILT: (ReleaseState.GATE_CHECKED,),
    # Dry runs go straight from the gate to DONE.
    ReleaseState.GATE_CHECKED: (ReleaseState.PUBLISHED, ReleaseState.DONE),
    ReleaseState.PUBLISHED: (ReleaseState.DONE,),
}


@dataclass(frozen=True, slots=True)
class ReleaseFailure:
    stage: ReleaseStage
    error: ReleaseError

    def pretty(self) -> str:
        return f"[{self.stage}] {self.error.kind}: {self.error.pretty()}"


@dataclass(slots=True)
class ReleaseAttempt:
    """Record of one orchestration run, mutated stage by stage."""

    tag: str
    project_root: Path
    state: ReleaseState = ReleaseState.INIT
    version: ReleaseVersion | None = None
    artifact: BuildArtifact | None = None
    receipt: PublishReceipt | None = None
    failure: ReleaseFailure | None = None
    history: list[ReleaseState] = field(default_factory=lambda: [ReleaseState.INIT])

    @property
    def succeeded(self) -> bool:
        return self.state == ReleaseState.DONE

    def advance(self, state: ReleaseState) -> None:
        """Move to ``state``.

        Raises:
            RuntimeError: If the transition is not allowed, including any
                transition out of a terminal state.
        """
        if state not in _NEXT_STATE.get(self.state, ()):
            raise RuntimeError(f"invalid release transition: {self.state} -> {state}")
        self.state = state
        self.history.append(state)

    def fail(self, stage: ReleaseStage, error: ReleaseError) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"release attempt already finished ({self.state})")
        self.failure = ReleaseFailure(stage=stage, error=error)
        self.state = ReleaseState.FAILED
        self.history.append(ReleaseState.FAILED)
