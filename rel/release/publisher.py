"""Upload of a packaged crate.

The registry metadata is read back from the ``Cargo.toml`` inside the
``.crate`` archive: that file is the normalized manifest cargo wrote for
publication, so it never carries path dependencies or workspace inheritance.
"""

from __future__ import annotations

import tarfile
import tomllib
from pathlib import Path

from rel.core.result import Err, Ok, Result
from rel.core.structured import as_str_dict
from rel.output.console import ConsoleProtocol, Style
from rel.output.redact import redact
from rel.release.errors import ReleaseError, cancelled, publish_rejected
from rel.release.manifest import MANIFEST_FILE_NAME, CrateManifest, ManifestError, parse_manifest
from rel.release.model import BuildArtifact, PublishCredential, PublishReceipt, ReleaseVersion
from rel.release.registry import Registry, RegistryError
from rel.release.retry import CancelToken, RetryPolicy, call_with_retry

_MAX_README_BYTES = 1024 * 1024


def _read_member(archive: tarfile.TarFile, name: str) -> bytes | None:
    try:
        member = archive.extractfile(name)
    except KeyError:
        return None
    if member is None:
        return None
    with member:
        return member.read()


def read_packaged_manifest(artifact: BuildArtifact) -> Result[tuple[CrateManifest, str | None], ManifestError]:
    """Return the manifest packaged in the crate and the readme text, if any."""
    root = f"{artifact.crate_name}-{artifact.crate_version}"
    manifest_path = Path(root) / MANIFEST_FILE_NAME
    try:
        with tarfile.open(artifact.path, "r:gz") as archive:
            raw = _read_member(archive, f"{root}/{MANIFEST_FILE_NAME}")
            if raw is None:
                return Err(ManifestError("manifest missing from crate", path=manifest_path))
            data = as_str_dict(tomllib.loads(raw.decode("utf-8")))
            if data is None:
                return Err(ManifestError("manifest root must be a TOML table", path=manifest_path))
            parsed = parse_manifest(data, manifest_path)
            if isinstance(parsed, Err):
                return parsed

            readme: str | None = None
            if parsed.value.readme:
                readme_raw = _read_member(archive, f"{root}/{parsed.value.readme}")
                if readme_raw is not None:
                    readme = readme_raw[:_MAX_README_BYTES].decode("utf-8", errors="replace")
            return Ok((parsed.value, readme))
    except (OSError, tarfile.TarError) as e:
        return Err(ManifestError(f"cannot read crate archive: {e}", path=artifact.path))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        return Err(ManifestError(f"invalid packaged manifest: {e}", path=manifest_path))


def publish_metadata(manifest: CrateManifest, *, readme: str | None) -> dict[str, object]:
    """Metadata document crates.io expects in front of the crate bytes."""
    return {
        "name": manifest.name,
        "vers": manifest.version,
        "deps": [
            {
                "name": dep.name,
                "version_req": dep.version_req,
                "features": list(dep.features),
                "optional": dep.optional,
                "default_features": dep.default_features,
                "target": dep.target,
                "kind": dep.kind,
                "registry": dep.registry,
                "explicit_name_in_toml": dep.explicit_name_in_toml,
            }
            for dep in manifest.dependencies
        ],
        "features": {name: list(values) for name, values in manifest.features},
        "authors": list(manifest.authors),
        "description": manifest.description,
        "documentation": manifest.documentation,
        "homepage": manifest.homepage,
        "readme": readme,
        "readme_file": manifest.readme,
        "keywords": list(manifest.keywords),
        "categories": list(manifest.categories),
        "license": manifest.license,
        "license_file": manifest.license_file,
        "repository": manifest.repository,
        "badges": {},
        "links": manifest.links,
        "rust_version": manifest.rust_version,
    }


class Publisher:
    """Uploads a built crate with retry on transient registry failures."""

    def __init__(
        self,
        *,
        registry: Registry,
        console: ConsoleProtocol,
        policy: RetryPolicy | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self._registry = registry
        self._console = console
        self._policy = policy or RetryPolicy()
        self._cancel = cancel or CancelToken()

    def _error(self, error: RegistryError, credential: PublishCredential, attempts: int) -> ReleaseError:
        message = redact(error.message, credential.reveal())
        match error.kind:
            case "auth":
                return ReleaseError(
                    kind="authentication_failed",
                    message=f"{self._registry.name} refused the token: {message}",
                    hint="check the token's publish scope and expiry",
                )
            case "rejected":
                return publish_rejected(message)
            case _:
                return ReleaseError(
                    kind="registry_unreachable",
                    message=f"upload to {self._registry.name} failed: {message}",
                    hint=f"gave up after {attempts} attempt(s)",
                )

    def _landed(self, artifact: BuildArtifact, version: ReleaseVersion) -> bool:
        exists = self._registry.version_exists(artifact.crate_name, version.value)
        return isinstance(exists, Ok) and exists.value

    def publish(
        self,
        artifact: BuildArtifact,
        version: ReleaseVersion,
        credential: PublishCredential,
    ) -> Result[PublishReceipt, ReleaseError]:
        if artifact.crate_version != version.value:
            return Err(
                ReleaseError(
                    kind="version_mismatch",
                    message=f"artifact is {artifact.crate_version}, release is {version}",
                )
            )

        packaged = read_packaged_manifest(artifact)
        if isinstance(packaged, Err):
            return Err(publish_rejected(f"{packaged.error.path}: {packaged.error.message}"))
        manifest, readme = packaged.value

        try:
            crate_bytes = artifact.path.read_bytes()
        except OSError as e:
            return Err(publish_rejected(f"cannot read {artifact.path}: {e}"))

        metadata = publish_metadata(manifest, readme=readme)

        retried = False

        def on_retry(attempt: int, error: RegistryError, delay: float) -> None:
            nonlocal retried
            retried = True
            msg = redact(str(error), credential.reveal())
            self._console.warning(f"upload attempt {attempt} failed ({msg}); retrying in {delay:g}s")

        self._console.print(
            f"uploading {artifact.path.name} ({artifact.size} bytes, sha256 {artifact.sha256[:12]})",
            Style.DIM,
        )
        outcome = call_with_retry(
            lambda: self._registry.upload(metadata, crate_bytes, credential),
            policy=self._policy,
            is_transient=lambda e: e.is_transient,
            cancel=self._cancel,
            on_retry=on_retry,
        )
        if outcome.result is None:
            return Err(cancelled("publish"))

        result = outcome.result
        warnings: tuple[str, ...]
        if isinstance(result, Err):
            if not (retried and result.error.kind == "rejected" and self._landed(artifact, version)):
                return Err(self._error(result.error, credential, outcome.attempts))
            # An earlier attempt reached the registry although its response was lost.
            note = f"{artifact.crate_name} {version} was stored by an earlier attempt whose response was lost"
            self._console.warning(note)
            warnings = (note,)
        else:
            warnings = result.value.warnings

        return Ok(
            PublishReceipt(
                crate_name=artifact.crate_name,
                version=version.value,
                sha256=artifact.sha256,
                attempts=outcome.attempts,
                warnings=warnings,
            )
        )
