"""Release state machine.

    init -> version_resolved -> built -> gate_checked -> published -> done
                 any non-terminal state -> failed

A stage's success advances the attempt by one state; its failure moves the
attempt to ``failed`` and nothing after it runs. Retries happen only inside
the gate and the publisher. Built artifacts are left on disk and a
successful publish is never undone.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from rel.core.result import Err, Ok, Result
from rel.output.console import ConsoleProtocol, Style
from rel.release.errors import ReleaseError, cancelled, publish_rejected
from rel.release.model import (
    BuildArtifact,
    BuildMode,
    PublishCredential,
    PublishReceipt,
    ReleaseAttempt,
    ReleaseStage,
    ReleaseState,
    ReleaseVersion,
)
from rel.release.registry import Registry
from rel.release.retry import CancelToken
from rel.release.version import resolve


class Builder(Protocol):
    def build(self, project_root: Path, mode: BuildMode = "release") -> Result[BuildArtifact, ReleaseError]: ...


class Gate(Protocol):
    def check_not_published(
        self, version: ReleaseVersion, registry: Registry, *, crate: str
    ) -> Result[bool, ReleaseError]: ...


class Uploader(Protocol):
    def publish(
        self,
        artifact: BuildArtifact,
        version: ReleaseVersion,
        credential: PublishCredential,
    ) -> Result[PublishReceipt, ReleaseError]: ...


@dataclass(frozen=True, slots=True)
class _RunOptions:
    credential: PublishCredential | None
    dry_run: bool


_Step = Callable[[ReleaseAttempt, _RunOptions], Result[ReleaseState, ReleaseError]]

_STAGE_OF_STATE: Mapping[ReleaseState, ReleaseStage] = {
    ReleaseState.INIT: ReleaseStage.RESOLVE,
    ReleaseState.VERSION_RESOLVED: ReleaseStage.BUILD,
    ReleaseState.BUILT: ReleaseStage.GATE,
    ReleaseState.GATE_CHECKED: ReleaseStage.PUBLISH,
    ReleaseState.PUBLISHED: ReleaseStage.PUBLISH,
}


class ReleaseOrchestrator:
    def __init__(
        self,
        *,
        builder: Builder,
        gate: Gate,
        publisher: Uploader,
        registry: Registry,
        console: ConsoleProtocol,
        tag_prefix: str = "v",
        mode: BuildMode = "release",
        cancel: CancelToken | None = None,
    ) -> None:
        self._builder = builder
        self._gate = gate
        self._publisher = publisher
        self._registry = registry
        self._console = console
        self._tag_prefix = tag_prefix
        self._mode: BuildMode = mode
        self._cancel = cancel or CancelToken()
        self._steps: Mapping[ReleaseState, _Step] = {
            ReleaseState.INIT: self._resolve,
            ReleaseState.VERSION_RESOLVED: self._build,
            ReleaseState.BUILT: self._check_gate,
            ReleaseState.GATE_CHECKED: self._publish,
            ReleaseState.PUBLISHED: self._finish,
        }

    def _resolve(self, attempt: ReleaseAttempt, opts: _RunOptions) -> Result[ReleaseState, ReleaseError]:
        result = resolve(attempt.tag, prefix=self._tag_prefix)
        if isinstance(result, Err):
            return result
        attempt.version = result.value
        return Ok(ReleaseState.VERSION_RESOLVED)

    def _build(self, attempt: ReleaseAttempt, opts: _RunOptions) -> Result[ReleaseState, ReleaseError]:
        assert attempt.version is not None
        result = self._builder.build(attempt.project_root, self._mode)
        if isinstance(result, Err):
            return result

        artifact = result.value
        if artifact.crate_version != attempt.version.value:
            return Err(
                ReleaseError(
                    kind="version_mismatch",
                    message=(
                        f"tag {attempt.version.tag} resolves to {attempt.version}, "
                        f"but {artifact.crate_name} is version {artifact.crate_version}"
                    ),
                    hint="bump package.version in Cargo.toml or retag",
                )
            )
        attempt.artifact = artifact
        return Ok(ReleaseState.BUILT)

    def _check_gate(self, attempt: ReleaseAttempt, opts: _RunOptions) -> Result[ReleaseState, ReleaseError]:
        assert attempt.version is not None and attempt.artifact is not None
        result = self._gate.check_not_published(
            attempt.version, self._registry, crate=attempt.artifact.crate_name
        )
        if isinstance(result, Err):
            return result
        if not result.value:
            return Err(
                publish_rejected(
                    "already exists",
                    hint=f"{attempt.artifact.crate_name} {attempt.version} is on {self._registry.name}",
                )
            )
        return Ok(ReleaseState.GATE_CHECKED)

    def _publish(self, attempt: ReleaseAttempt, opts: _RunOptions) -> Result[ReleaseState, ReleaseError]:
        assert attempt.version is not None and attempt.artifact is not None
        if opts.dry_run:
            self._console.info("dry run: skipping upload")
            return Ok(ReleaseState.DONE)
        if opts.credential is None:
            return Err(
                ReleaseError(
                    kind="authentication_failed",
                    message="no publish token provided",
                    hint="pass --token or set the token environment variable",
                )
            )
        result = self._publisher.publish(attempt.artifact, attempt.version, opts.credential)
        if isinstance(result, Err):
            return result
        attempt.receipt = result.value
        return Ok(ReleaseState.PUBLISHED)

    def _finish(self, attempt: ReleaseAttempt, opts: _RunOptions) -> Result[ReleaseState, ReleaseError]:
        return Ok(ReleaseState.DONE)

    def run(
        self,
        tag: str,
        *,
        project_root: Path,
        credential: PublishCredential | None = None,
        dry_run: bool = False,
    ) -> ReleaseAttempt:
        """Run one release from ``tag`` and return its finished record.

        Every call starts from a fresh attempt, so re-running after a failure
        carries nothing over from the previous run.
        """
        attempt = ReleaseAttempt(tag=tag, project_root=project_root)
        opts = _RunOptions(credential=credential, dry_run=dry_run)

        while not attempt.state.is_terminal:
            stage = _STAGE_OF_STATE[attempt.state]
            # Once the upload went out, the run can only finish.
            if self._cancel.cancelled and attempt.state != ReleaseState.PUBLISHED:
                attempt.fail(stage, cancelled(str(stage)))
                break

            outcome = self._steps[attempt.state](attempt, opts)
            if isinstance(outcome, Err):
                attempt.fail(stage, outcome.error)
                break

            attempt.advance(outcome.value)
            self._console.print(f"{stage}: {attempt.state}", Style.DIM)

        return attempt
