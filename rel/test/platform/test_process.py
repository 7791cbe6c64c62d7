"""Tests for rel.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

from rel.core.result import Err, Ok
from rel.platform.process import NO_RETURNCODE, ProcessError, run


class TestProcessError:
    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(("cargo", "build", "--release", "--locked"), 101, "", "")
        assert str(error) == "cargo build --release ... failed (exit 101)"

    def test_log_tail_combines_streams(self) -> None:
        error = ProcessError(("cargo",), 1, "out", "\n".join(f"e{i}" for i in range(50)))
        tail = error.log_tail(lines=3)
        assert tail.splitlines() == ["e47", "e48", "e49"]


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_captures_code_and_stderr(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"],
            cwd=tmp_path,
        )
        assert isinstance(result, Err)
        assert result.error.returncode == 3
        assert "bad" in result.error.stderr

    def test_timeout(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            cwd=tmp_path,
            timeout=0.2,
        )
        assert isinstance(result, Err)
        assert result.error.returncode == NO_RETURNCODE
        assert "timed out" in result.error.stderr

    def test_missing_executable(self, tmp_path: Path) -> None:
        result = run(["definitely-not-a-real-binary-xyz"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == NO_RETURNCODE
