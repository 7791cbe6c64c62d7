from __future__ import annotations

from pathlib import Path

import pytest
import typer

from rel.cli.context import CLIContext
from rel.core.errors import ErrorCode
from rel.net.http import MockHttpClient
from rel.output.console import MockConsole
from rel.release.registry import InMemoryRegistry, Registry

from ..release._fakes import FakeBuilder, compile_error

TOKEN = "cio_0123456789abcdef"


@pytest.fixture
def console() -> MockConsole:
    return MockConsole()


@pytest.fixture
def registry() -> InMemoryRegistry:
    return InMemoryRegistry(tokens=frozenset({TOKEN}))


@pytest.fixture
def builder(tmp_path: Path) -> FakeBuilder:
    return FakeBuilder(out_dir=tmp_path / "target" / "package")


@pytest.fixture(autouse=True)
def _patch(
    monkeypatch: pytest.MonkeyPatch,
    console: MockConsole,
    registry: InMemoryRegistry,
    builder: FakeBuilder,
) -> None:
    import rel.cli.commands.publish_cmd as publish_cmd

    def make_registry(url: str, timeout: float) -> Registry:
        return registry

    ctx = CLIContext(console=console, http=MockHttpClient(), make_registry=make_registry)
    monkeypatch.setattr(publish_cmd, "build_context", lambda: ctx)
    monkeypatch.setattr(publish_cmd, "BuildExecutor", lambda **_: builder)
    monkeypatch.delenv("CRATES_IO_TOKEN", raising=False)


def _publish(project: Path, tag: str = "v1.2.3", **overrides: object) -> None:
    import rel.cli.commands.publish_cmd as publish_cmd

    kwargs: dict[str, object] = {
        "tag": tag,
        "token": TOKEN,
        "token_env": None,
        "projects": [project],
        "registry": None,
        "prefix": None,
        "mode": None,
        "dry_run": False,
    }
    kwargs.update(overrides)
    publish_cmd.publish(**kwargs)  # type: ignore[arg-type]


def _exit_code(project: Path, **overrides: object) -> int:
    with pytest.raises(typer.Exit) as exc:
        _publish(project, **overrides)
    return exc.value.exit_code


def test_successful_release_exits_zero(tmp_path: Path, registry: InMemoryRegistry, console: MockConsole) -> None:
    _publish(tmp_path)

    assert "1.2.3" in registry.crates["crate-check"]
    assert console.find("crate-check 1.2.3 published")
    assert TOKEN not in console.text


def test_bad_tag_exits_three(tmp_path: Path, builder: FakeBuilder, console: MockConsole) -> None:
    assert _exit_code(tmp_path, tag="badtag") == 3
    assert builder.calls == []
    assert console.find("resolve: invalid_version_format")


def test_build_failure_exits_one(tmp_path: Path, builder: FakeBuilder) -> None:
    builder.failures.append(compile_error())
    assert _exit_code(tmp_path) == int(ErrorCode.BUILD_ERROR)


def test_existing_version_exits_two(tmp_path: Path, registry: InMemoryRegistry, console: MockConsole) -> None:
    registry.crates["crate-check"] = {"1.2.3": b""}

    assert _exit_code(tmp_path) == 2
    assert registry.uploads == 0
    assert console.find("already exists")


def test_rejected_token_exits_two_without_leaking(tmp_path: Path, console: MockConsole) -> None:
    assert _exit_code(tmp_path, token="cio_wrong_token_value") == 2
    assert "cio_wrong_token_value" not in console.text
    assert console.find("authentication_failed")


def test_token_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, registry: InMemoryRegistry) -> None:
    monkeypatch.setenv("MY_TOKEN", TOKEN)
    _publish(tmp_path, token=None, token_env="MY_TOKEN")
    assert registry.uploads == 1


def test_missing_token_exits_two(tmp_path: Path, builder: FakeBuilder) -> None:
    assert _exit_code(tmp_path, token=None) == 2
    assert builder.calls == []


def test_dry_run_needs_no_token(tmp_path: Path, registry: InMemoryRegistry, console: MockConsole) -> None:
    _publish(tmp_path, token=None, dry_run=True)
    assert registry.uploads == 0
    assert console.find("dry run complete")


def test_invalid_config_exits_four(tmp_path: Path) -> None:
    (tmp_path / "release.toml").write_text("[retry]\nattempts = 0\n", encoding="utf-8")
    assert _exit_code(tmp_path) == int(ErrorCode.USER_ERROR)


def test_config_prefix_is_used(tmp_path: Path, registry: InMemoryRegistry) -> None:
    (tmp_path / "release.toml").write_text('tag_prefix = "release-"\n', encoding="utf-8")
    _publish(tmp_path, tag="refs/tags/release-1.2.3")
    assert registry.uploads == 1


def test_matrix_reports_aggregate_failure(tmp_path: Path, console: MockConsole) -> None:
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    # Both jobs share one builder and one registry: the second upload of the
    # same crate version loses to the first.
    code = _exit_code(tmp_path, projects=[a, b])

    assert code == 2
    assert console.find("1 of 2 releases failed")


def test_interrupt_exits_cancelled(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, registry: InMemoryRegistry
) -> None:
    import rel.cli.commands.publish_cmd as publish_cmd

    def interrupted(*args: object, **kwargs: object) -> None:
        raise KeyboardInterrupt

    monkeypatch.setattr(publish_cmd, "run_matrix", interrupted)

    assert _exit_code(tmp_path) == int(ErrorCode.CANCELLED) == 130
    assert registry.uploads == 0
