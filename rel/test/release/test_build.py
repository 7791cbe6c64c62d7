from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from rel.core.result import Err, Ok, Result
from rel.output.console import MockConsole
from rel.platform.process import ProcessError
from rel.release import build as build_mod
from rel.release.build import BuildExecutor, build_command

CARGO_TOML = '[package]\nname = "crate-check"\nversion = "1.2.3"\n'
CRATE_BYTES = b"fake crate contents"


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.delenv("CARGO_TARGET_DIR", raising=False)
    (tmp_path / "Cargo.toml").write_text(CARGO_TOML, encoding="utf-8")
    return tmp_path


def _fake_cargo(calls: list[list[str]], *, fail_on: str | None = None, write_crate: bool = True):
    def fake_run(
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        calls.append(cmd)
        if fail_on is not None and cmd[1] == fail_on:
            return Err(ProcessError(tuple(cmd), 101, "", "error[E0425]: cannot find value `x`"))
        if cmd[1] == "package" and write_crate:
            out = cwd / "target" / "package"
            out.mkdir(parents=True, exist_ok=True)
            (out / "crate-check-1.2.3.crate").write_bytes(CRATE_BYTES)
        return Ok("")

    return fake_run


def test_build_command_modes() -> None:
    assert build_command("release") == ["cargo", "build", "--release"]
    assert build_command("debug") == ["cargo", "build"]


def test_release_build_produces_artifact(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(build_mod, "run_process", _fake_cargo(calls))

    result = BuildExecutor(console=MockConsole()).build(project, "release")

    assert isinstance(result, Ok)
    artifact = result.value
    assert calls == [["cargo", "build", "--release"], ["cargo", "package", "--no-verify"]]
    assert artifact.path == project / "target" / "package" / "crate-check-1.2.3.crate"
    assert artifact.sha256 == hashlib.sha256(CRATE_BYTES).hexdigest()
    assert artifact.size == len(CRATE_BYTES)
    assert (artifact.crate_name, artifact.crate_version) == ("crate-check", "1.2.3")


def test_compile_failure_reports_exit_code_and_log(
    project: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(build_mod, "run_process", _fake_cargo(calls, fail_on="build"))

    result = BuildExecutor(console=MockConsole()).build(project, "release")

    assert isinstance(result, Err)
    assert result.error.kind == "build_failed"
    assert result.error.exit_code == 101
    assert "E0425" in (result.error.log or "")
    # packaging never runs after a failed build
    assert len(calls) == 1


def test_missing_artifact_is_a_build_failure(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(build_mod, "run_process", _fake_cargo([], write_crate=False))

    result = BuildExecutor(console=MockConsole()).build(project)

    assert isinstance(result, Err)
    assert "packaged crate not found" in result.error.message


def test_missing_manifest_fails_without_running_cargo(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(build_mod, "run_process", _fake_cargo(calls))

    result = BuildExecutor(console=MockConsole()).build(tmp_path)

    assert isinstance(result, Err)
    assert result.error.kind == "build_failed"
    assert calls == []


def test_cargo_target_dir_is_honoured(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    custom = project / "custom-target"
    monkeypatch.setenv("CARGO_TARGET_DIR", str(custom))

    def fake_run(cmd: list[str], cwd: Path, env: dict[str, str] | None = None, *, timeout: float | None = None):
        if cmd[1] == "package":
            (custom / "package").mkdir(parents=True)
            (custom / "package" / "crate-check-1.2.3.crate").write_bytes(CRATE_BYTES)
        return Ok("")

    monkeypatch.setattr(build_mod, "run_process", fake_run)

    result = BuildExecutor(console=MockConsole()).build(project)

    assert isinstance(result, Ok)
    assert result.value.path.parent == custom / "package"
