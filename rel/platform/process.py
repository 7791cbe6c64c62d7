"""Subprocess execution with Result-based error handling.

Usage:
    result = run(["cargo", "build", "--release"], cwd=project_root, timeout=1800)
    match result:
        case Ok(stdout):
            ...
        case Err(error):
            print(error.log_tail())
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from rel.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

NO_RETURNCODE = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, or -1 when the process never ran or timed out.
        stdout: Standard output (may be empty).
        stderr: Standard error (cargo writes its progress and diagnostics here).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"

    def log_tail(self, lines: int = 40) -> str:
        """Last ``lines`` lines of combined output, for error reports."""
        combined = "\n".join(part for part in (self.stdout, self.stderr) if part.strip())
        return "\n".join(combined.splitlines()[-lines:])


def _as_text(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=NO_RETURNCODE,
                stdout=_as_text(e.stdout),
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=NO_RETURNCODE,
                stdout="",
                stderr=str(e),
            )
        )

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)
