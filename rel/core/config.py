"""Typed configuration loading.

A project may carry an optional ``release.toml`` next to ``Cargo.toml``::

    tag_prefix = "v"
    token_env = "CRATES_IO_TOKEN"

    [registry]
    url = "https://crates.io"
    timeout = 60

    [retry]
    attempts = 3
    backoff = 1.0

    [build]
    mode = "release"
    timeout = 1800

Every value has a default, and CLI flags override the file.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from rel.release.timeouts import (
    BUILD_TIMEOUT_SECONDS,
    REGISTRY_RETRY_ATTEMPTS,
    REGISTRY_RETRY_BACKOFF_SECONDS,
    REGISTRY_TIMEOUT_SECONDS,
)

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_float, get_int, get_str, get_table

__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_REGISTRY_URL",
    "DEFAULT_TAG_PREFIX",
    "DEFAULT_TOKEN_ENV",
    "BuildConfig",
    "Config",
    "ConfigError",
    "RegistryConfig",
    "RetryConfig",
    "load_config",
    "load_project_config",
]

CONFIG_FILE_NAME = "release.toml"
DEFAULT_REGISTRY_URL = "https://crates.io"
DEFAULT_TAG_PREFIX = "v"
DEFAULT_TOKEN_ENV = "CRATES_IO_TOKEN"

_BUILD_MODES = ("debug", "release")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    url: str = DEFAULT_REGISTRY_URL
    timeout: float = REGISTRY_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry policy for transient registry failures."""

    attempts: int = REGISTRY_RETRY_ATTEMPTS
    backoff: float = REGISTRY_RETRY_BACKOFF_SECONDS


@dataclass(frozen=True, slots=True)
class BuildConfig:
    mode: str = "release"
    timeout: float = BUILD_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    tag_prefix: str = DEFAULT_TAG_PREFIX
    token_env: str = DEFAULT_TOKEN_ENV
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    build: BuildConfig = field(default_factory=BuildConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: On values that parse but make no sense.
        """
        registry: StrDict = get_table(data, "registry") or {}
        retry: StrDict = get_table(data, "retry") or {}
        build: StrDict = get_table(data, "build") or {}

        attempts = get_int(retry, "attempts")
        if attempts is not None and attempts < 1:
            raise ValueError(f"retry.attempts must be >= 1, got {attempts}")

        registry_timeout = _seconds(registry, "timeout", "registry.timeout", REGISTRY_TIMEOUT_SECONDS)
        backoff = _seconds(
            retry, "backoff", "retry.backoff", REGISTRY_RETRY_BACKOFF_SECONDS, allow_zero=True
        )
        build_timeout = _seconds(build, "timeout", "build.timeout", BUILD_TIMEOUT_SECONDS)

        mode = get_str(build, "mode") or "release"
        if mode not in _BUILD_MODES:
            raise ValueError(f"build.mode must be one of {', '.join(_BUILD_MODES)}, got {mode!r}")

        # tag_prefix may legitimately be "" (bare version tags), so get_str's
        # empty-is-missing rule does not apply here.
        prefix_obj = data.get("tag_prefix")
        tag_prefix = prefix_obj.strip() if isinstance(prefix_obj, str) else DEFAULT_TAG_PREFIX

        return cls(
            tag_prefix=tag_prefix,
            token_env=get_str(data, "token_env") or DEFAULT_TOKEN_ENV,
            registry=RegistryConfig(
                url=(get_str(registry, "url") or DEFAULT_REGISTRY_URL).rstrip("/"),
                timeout=registry_timeout,
            ),
            retry=RetryConfig(
                attempts=attempts or REGISTRY_RETRY_ATTEMPTS,
                backoff=backoff,
            ),
            build=BuildConfig(
                mode=mode,
                timeout=build_timeout,
            ),
        )


def _seconds(table: StrDict, key: str, label: str, default: float, *, allow_zero: bool = False) -> float:
    value = get_float(table, key)
    if value is None:
        return default
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValueError(f"{label} must be {bound}, got {value:g}")
    return value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to release.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_project_config(project_root: Path) -> Result[Config, ConfigError]:
    """Load ``release.toml`` from a project, or defaults when it is absent."""
    path = project_root / CONFIG_FILE_NAME
    if not path.exists():
        return Ok(Config())
    return load_config(path)
