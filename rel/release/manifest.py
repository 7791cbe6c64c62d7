"""Cargo.toml reading.

Only the parts needed to locate the packaged crate and to describe it to the
registry are read. Workspace-inherited fields (``version.workspace = true``)
are not resolved; such crates must be released from a manifest that states
its own name and version.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from rel.core.result import Err, Ok, Result
from rel.core.structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_str,
    get_str_list,
    get_table,
)

MANIFEST_FILE_NAME = "Cargo.toml"

_DEP_TABLES = (
    ("dependencies", "normal"),
    ("dev-dependencies", "dev"),
    ("build-dependencies", "build"),
)


@dataclass(frozen=True, slots=True)
class ManifestError:
    message: str
    path: Path


@dataclass(frozen=True, slots=True)
class Dependency:
    name: str
    version_req: str
    kind: str  # normal | dev | build
    features: tuple[str, ...] = ()
    optional: bool = False
    default_features: bool = True
    target: str | None = None
    registry: str | None = None
    # Set when the dependency is renamed with `package = "..."`.
    explicit_name_in_toml: str | None = None


@dataclass(frozen=True, slots=True)
class CrateManifest:
    name: str
    version: str
    description: str | None = None
    documentation: str | None = None
    homepage: str | None = None
    readme: str | None = None
    repository: str | None = None
    license: str | None = None
    license_file: str | None = None
    links: str | None = None
    rust_version: str | None = None
    authors: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    features: tuple[tuple[str, tuple[str, ...]], ...] = ()
    dependencies: tuple[Dependency, ...] = ()

    @property
    def package_file_name(self) -> str:
        return f"{self.name}-{self.version}.crate"


def _parse_dependency(
    toml_name: str,
    spec: object,
    *,
    kind: str,
    target: str | None,
) -> Dependency | None:
    if isinstance(spec, str):
        return Dependency(name=toml_name, version_req=spec, kind=kind, target=target)

    table = as_str_dict(spec)
    if table is None:
        return None

    package = get_str(table, "package")
    default_features = get_bool(table, "default-features")
    if default_features is None:
        default_features = get_bool(table, "default_features")
    return Dependency(
        name=package or toml_name,
        # Path and git dependencies without a version are rejected by
        # `cargo package` before we ever get here.
        version_req=get_str(table, "version") or "*",
        kind=kind,
        features=tuple(get_str_list(table, "features")),
        optional=bool(get_bool(table, "optional")),
        default_features=True if default_features is None else default_features,
        target=target,
        registry=get_str(table, "registry-index"),
        explicit_name_in_toml=toml_name if package else None,
    )


def _parse_dependency_tables(
    data: Mapping[str, object], *, target: str | None = None
) -> list[Dependency]:
    deps: list[Dependency] = []
    for table_name, kind in _DEP_TABLES:
        table = get_table(data, table_name) or {}
        for toml_name, spec in table.items():
            dep = _parse_dependency(toml_name, spec, kind=kind, target=target)
            if dep is not None:
                deps.append(dep)
    return deps


def _parse_features(data: Mapping[str, object]) -> tuple[tuple[str, tuple[str, ...]], ...]:
    table: StrDict = get_table(data, "features") or {}
    return tuple((name, tuple(get_str_list(table, name))) for name in sorted(table))


def parse_manifest(data: Mapping[str, object], path: Path) -> Result[CrateManifest, ManifestError]:
    package = get_table(data, "package")
    if package is None:
        return Err(ManifestError("missing [package] table", path=path))

    name = get_str(package, "name")
    version = get_str(package, "version")
    if name is None:
        return Err(ManifestError("package.name is missing", path=path))
    if version is None:
        return Err(
            ManifestError(
                "package.version is missing or inherited from the workspace",
                path=path,
            )
        )

    deps = _parse_dependency_tables(data)
    targets: StrDict = get_table(data, "target") or {}
    for target_name, target_obj in targets.items():
        target_table = as_str_dict(target_obj)
        if target_table is not None:
            deps.extend(_parse_dependency_tables(target_table, target=target_name))

    return Ok(
        CrateManifest(
            name=name,
            version=version,
            description=get_str(package, "description"),
            documentation=get_str(package, "documentation"),
            homepage=get_str(package, "homepage"),
            readme=get_str(package, "readme"),
            repository=get_str(package, "repository"),
            license=get_str(package, "license"),
            license_file=get_str(package, "license-file"),
            links=get_str(package, "links"),
            rust_version=get_str(package, "rust-version"),
            authors=tuple(get_str_list(package, "authors")),
            keywords=tuple(get_str_list(package, "keywords")),
            categories=tuple(get_str_list(package, "categories")),
            features=_parse_features(data),
            dependencies=tuple(deps),
        )
    )


def read_manifest(project_root: Path) -> Result[CrateManifest, ManifestError]:
    path = project_root / MANIFEST_FILE_NAME
    try:
        data_obj: object = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ManifestError(f"{MANIFEST_FILE_NAME} not found", path=path))
    except (OSError, UnicodeDecodeError) as e:
        return Err(ManifestError(f"cannot read {MANIFEST_FILE_NAME}: {e}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ManifestError(f"invalid TOML: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ManifestError("manifest root must be a TOML table", path=path))
    return parse_manifest(data, path)
