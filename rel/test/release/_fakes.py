from __future__ import annotations

import hashlib
import io
import tarfile
from dataclasses import dataclass, field
from pathlib import Path

from rel.core.result import Err, Ok, Result
from rel.release.errors import ReleaseError, build_failed
from rel.release.model import BuildArtifact, BuildMode

CARGO_TOML = """\
[package]
name = "{name}"
version = "{version}"
edition = "2021"
description = "Checks crate name availability"
license = "MIT OR Apache-2.0"
readme = "README.md"
keywords = ["crates", "availability"]

[dependencies.ureq]
version = "2.4"

[dependencies.colored]
version = "2"
optional = true

[features]
colors = ["colored"]
"""


def _add(archive: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    archive.addfile(info, io.BytesIO(data))


def make_crate(directory: Path, name: str = "crate-check", version: str = "1.2.3") -> BuildArtifact:
    """Write a minimal .crate archive and describe it as a build artifact."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}-{version}.crate"
    root = f"{name}-{version}"
    with tarfile.open(path, "w:gz") as archive:
        _add(archive, f"{root}/Cargo.toml", CARGO_TOML.format(name=name, version=version).encode())
        _add(archive, f"{root}/README.md", b"# crate-check\n")
        _add(archive, f"{root}/src/lib.rs", b"pub fn check() {}\n")
    data = path.read_bytes()
    return BuildArtifact(
        path=path,
        sha256=hashlib.sha256(data).hexdigest(),
        size=len(data),
        crate_name=name,
        crate_version=version,
    )


@dataclass
class FakeBuilder:
    """Builder returning scripted outcomes; produces a real .crate on success."""

    out_dir: Path
    crate_version: str = "1.2.3"
    failures: list[ReleaseError] = field(default_factory=list)
    calls: list[tuple[Path, BuildMode]] = field(default_factory=list)

    def build(self, project_root: Path, mode: BuildMode = "release") -> Result[BuildArtifact, ReleaseError]:
        self.calls.append((project_root, mode))
        if self.failures:
            return Err(self.failures.pop(0))
        return Ok(make_crate(self.out_dir / project_root.name, version=self.crate_version))


def compile_error() -> ReleaseError:
    return build_failed("cargo build --release failed (exit 101)", exit_code=101, log="error[E0425]")
