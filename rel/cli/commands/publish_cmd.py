"""Publish command - build a tagged crate and upload it once."""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path

import typer

from rel.cli.commands._helpers import exit_with
from rel.cli.context import CLIContext, build_context
from rel.core.config import Config, load_project_config
from rel.core.errors import ErrorCode
from rel.core.result import Err
from rel.output.console import Style
from rel.output.errors import print_release_failure, release_error_exit_code
from rel.release.build import BuildExecutor
from rel.release.gate import PublishGate
from rel.release.matrix import MatrixJob, run_matrix
from rel.release.model import BuildMode, PublishCredential, ReleaseAttempt
from rel.release.orchestrator import ReleaseOrchestrator
from rel.release.publisher import Publisher
from rel.release.retry import CancelToken, RetryPolicy


class Mode(StrEnum):
    debug = "debug"
    release = "release"


def _load_configs(projects: list[Path]) -> list[tuple[Path, Config]]:
    out: list[tuple[Path, Config]] = []
    for project in projects:
        try:
            root = project.expanduser().resolve()
        except OSError as e:
            exit_with(f"invalid --project {project}: {e}", code=ErrorCode.USER_ERROR)
        if not root.is_dir():
            exit_with(f"project directory not found: {root}", code=ErrorCode.USER_ERROR)

        result = load_project_config(root)
        if isinstance(result, Err):
            exit_with(result.error.message, code=ErrorCode.USER_ERROR)
        out.append((root, result.value))
    return out


def _credential(token: str | None, token_env: str, *, dry_run: bool) -> PublishCredential | None:
    raw = token if token is not None else os.environ.get(token_env)
    if raw is None or not raw.strip():
        if dry_run:
            return None
        exit_with(
            f"no publish token: pass --token or set {token_env}",
            code=ErrorCode.PUBLISH_ERROR,
        )
    return PublishCredential(raw)


def _orchestrator(
    ctx: CLIContext,
    config: Config,
    *,
    registry_url: str | None,
    prefix: str | None,
    mode: Mode | None,
    cancel: CancelToken,
) -> ReleaseOrchestrator:
    registry = ctx.make_registry(registry_url or config.registry.url, config.registry.timeout)
    policy = RetryPolicy(attempts=config.retry.attempts, backoff=config.retry.backoff)
    build_mode: BuildMode = "debug" if (mode or config.build.mode) == "debug" else "release"
    return ReleaseOrchestrator(
        builder=BuildExecutor(console=ctx.console, timeout=config.build.timeout),
        gate=PublishGate(console=ctx.console, policy=policy, cancel=cancel),
        publisher=Publisher(registry=registry, console=ctx.console, policy=policy, cancel=cancel),
        registry=registry,
        console=ctx.console,
        tag_prefix=config.tag_prefix if prefix is None else prefix,
        mode=build_mode,
        cancel=cancel,
    )


def _report(ctx: CLIContext, attempt: ReleaseAttempt, *, secret: str | None, dry_run: bool) -> None:
    name = attempt.artifact.crate_name if attempt.artifact else attempt.project_root.name
    if attempt.succeeded:
        if dry_run:
            ctx.console.success(f"{name} {attempt.version}: dry run complete, nothing uploaded")
            return
        ctx.console.success(f"{name} {attempt.version} published")
        if attempt.receipt:
            for warning in attempt.receipt.warnings:
                ctx.console.warning(warning)
        return

    assert attempt.failure is not None
    ctx.console.print(f"{name}: release of {attempt.tag} failed", Style.ERROR)
    print_release_failure(attempt.failure, ctx.console, secret=secret)


def publish(
    tag: str = typer.Option(
        ...,
        "--tag",
        envvar="GITHUB_REF",
        help="Trigger reference, e.g. v1.2.3 or refs/tags/v1.2.3",
    ),
    token: str | None = typer.Option(
        None,
        "--token",
        help="Registry API token (prefer the environment variable)",
        show_default=False,
    ),
    token_env: str | None = typer.Option(
        None,
        "--token-env",
        help="Environment variable holding the token [default: CRATES_IO_TOKEN]",
        show_default=False,
    ),
    projects: list[Path] | None = typer.Option(
        None,
        "--project",
        help="Crate directory; repeat to release several crates in parallel",
        show_default=False,
    ),
    registry: str | None = typer.Option(
        None, "--registry", help="Registry base URL", show_default=False
    ),
    prefix: str | None = typer.Option(
        None, "--prefix", help="Tag prefix stripped to get the version", show_default=False
    ),
    mode: Mode | None = typer.Option(None, "--mode", help="Build mode", show_default=False),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Build and check the registry, but do not upload"
    ),
) -> None:
    """Build the crate for TAG and publish it unless that version already exists."""
    ctx = build_context()
    loaded = _load_configs(projects or [Path(".")])

    # All crates of one run share the token variable of the first project.
    env_name = token_env or loaded[0][1].token_env
    credential = _credential(token, env_name, dry_run=dry_run)
    secret = credential.reveal() if credential else None

    cancel = CancelToken()
    orchestrators = {
        root: _orchestrator(
            ctx, config, registry_url=registry, prefix=prefix, mode=mode, cancel=cancel
        )
        for root, config in loaded
    }

    def run_one(job: MatrixJob) -> ReleaseAttempt:
        return orchestrators[job.project_root].run(
            job.tag, project_root=job.project_root, credential=credential, dry_run=dry_run
        )

    jobs = [MatrixJob(tag=tag, project_root=root) for root, _ in loaded]
    try:
        report = run_matrix(jobs, run_one, cancel=cancel)
    except KeyboardInterrupt:
        cancel.cancel()
        exit_with("cancelled", code=ErrorCode.CANCELLED)

    for attempt in report.attempts:
        _report(ctx, attempt, secret=secret, dry_run=dry_run)

    if report.succeeded:
        return

    first = report.failed[0]
    assert first.failure is not None
    if len(report.attempts) > 1:
        ctx.console.error(f"{len(report.failed)} of {len(report.attempts)} releases failed")
    raise typer.Exit(code=release_error_exit_code(first.failure.error))
