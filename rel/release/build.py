from __future__ import annotations

import hashlib
import os
from pathlib import Path

from rel.core.result import Err, Ok, Result
from rel.output.console import ConsoleProtocol, Style
from rel.platform.process import NO_RETURNCODE
from rel.platform.process import run as run_process
from rel.release.errors import ReleaseError, build_failed
from rel.release.manifest import read_manifest
from rel.release.model import BuildArtifact, BuildMode
from rel.release.timeouts import BUILD_TIMEOUT_SECONDS

_HASH_CHUNK = 1024 * 1024


def build_command(mode: BuildMode) -> list[str]:
    cmd = ["cargo", "build"]
    if mode == "release":
        cmd.append("--release")
    return cmd


# The crate was just built; verifying would compile it a second time.
PACKAGE_COMMAND = ["cargo", "package", "--no-verify"]


def target_dir(project_root: Path) -> Path:
    override = os.environ.get("CARGO_TARGET_DIR")
    if override:
        p = Path(override).expanduser()
        return p if p.is_absolute() else project_root / p
    return project_root / "target"


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(_HASH_CHUNK):
            digest.update(chunk)
    return digest.hexdigest()


class BuildExecutor:
    """Builds a crate and packages it into the artifact that gets published."""

    def __init__(self, *, console: ConsoleProtocol, timeout: float = BUILD_TIMEOUT_SECONDS) -> None:
        self._console = console
        self._timeout = timeout

    def _run_step(self, cmd: list[str], project_root: Path) -> Result[None, ReleaseError]:
        self._console.print(" ".join(cmd), Style.DIM)
        result = run_process(cmd, cwd=project_root, timeout=self._timeout)
        if isinstance(result, Ok):
            return Ok(None)

        error = result.error
        if error.returncode == NO_RETURNCODE:
            message = f"{' '.join(cmd)}: {error.stderr.strip() or 'could not run'}"
        else:
            message = f"{' '.join(cmd)} failed (exit {error.returncode})"
        return Err(build_failed(message, exit_code=error.returncode, log=error.log_tail()))

    def build(self, project_root: Path, mode: BuildMode = "release") -> Result[BuildArtifact, ReleaseError]:
        """Build in ``mode`` and package the crate.

        Blocks until both cargo invocations finish. Only touches files under
        the cargo target directory.
        """
        manifest = read_manifest(project_root)
        if isinstance(manifest, Err):
            e = manifest.error
            return Err(build_failed(f"{e.path}: {e.message}", exit_code=NO_RETURNCODE))
        crate = manifest.value

        for cmd in (build_command(mode), PACKAGE_COMMAND):
            step = self._run_step(cmd, project_root)
            if isinstance(step, Err):
                return step

        path = target_dir(project_root) / "package" / crate.package_file_name
        try:
            size = path.stat().st_size
            checksum = sha256_file(path)
        except OSError as e:
            return Err(
                build_failed(
                    f"packaged crate not found: {path}",
                    exit_code=NO_RETURNCODE,
                    log=str(e),
                )
            )

        return Ok(
            BuildArtifact(
                path=path,
                sha256=checksum,
                size=size,
                crate_name=crate.name,
                crate_version=crate.version,
            )
        )
