"""Package registry access.

``CratesIoRegistry`` speaks the crates.io web API (also served by
alternative registries such as a self-hosted index). ``InMemoryRegistry``
keeps state in a dict; tests use it to exercise the gate and the publisher
against the same store.
"""

from __future__ import annotations

import json
import struct
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal, Protocol
from urllib.parse import quote

from rel.core.result import Err, Ok, Result
from rel.core.structured import as_obj_list, as_str_dict, get_str, get_table
from rel.net.http import HttpClient, HttpError, HttpResponse
from rel.release.model import PublishCredential
from rel.release.timeouts import REGISTRY_TIMEOUT_SECONDS

RegistryErrorKind = Literal["unreachable", "server", "auth", "rejected"]


@dataclass(frozen=True, slots=True)
class RegistryError:
    kind: RegistryErrorKind
    message: str
    status: int = 0

    @property
    def is_transient(self) -> bool:
        return self.kind in ("unreachable", "server")

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message}"
        return self.message


def _error_detail(body: str) -> str | None:
    """Extract ``errors[].detail`` from a crates.io error payload."""
    resp = HttpResponse(status=0, body=body.encode("utf-8"))
    data = resp.json()
    if data is None:
        return None
    details: list[str] = []
    for item in as_obj_list(data.get("errors")) or []:
        entry = as_str_dict(item)
        if entry is not None and (detail := get_str(entry, "detail")):
            details.append(detail)
    return "; ".join(details) or None


def classify_http_error(error: HttpError) -> RegistryError:
    """Map an HTTP failure onto the retry taxonomy.

    Network errors, timeouts, 408, 429 and 5xx are transient; 401/403 are
    authentication failures; any other status is a permanent rejection.
    """
    detail = _error_detail(error.body) or error.message
    if error.is_network:
        return RegistryError(kind="unreachable", message=error.message)
    if error.status in (408, 429) or error.status >= 500:
        return RegistryError(kind="server", message=detail, status=error.status)
    if error.status in (401, 403):
        return RegistryError(kind="auth", message=detail, status=error.status)
    return RegistryError(kind="rejected", message=detail, status=error.status)


@dataclass(frozen=True, slots=True)
class UploadResult:
    warnings: tuple[str, ...] = ()


class Registry(Protocol):
    name: str

    def version_exists(self, crate: str, version: str) -> Result[bool, RegistryError]:
        """True if ``crate`` already has ``version``."""
        ...

    def crate_exists(self, crate: str) -> Result[bool, RegistryError]:
        """True if any version of ``crate`` exists (the name is taken)."""
        ...

    def upload(
        self,
        metadata: Mapping[str, object],
        crate_bytes: bytes,
        credential: PublishCredential,
    ) -> Result[UploadResult, RegistryError]:
        """Publish one crate version in a single request."""
        ...


def encode_publish_body(metadata: Mapping[str, object], crate_bytes: bytes) -> bytes:
    """Frame a publish request: u32 LE length + JSON metadata, u32 LE length + .crate."""
    meta = json.dumps(metadata, separators=(",", ":")).encode("utf-8")
    return b"".join(
        (
            struct.pack("<I", len(meta)),
            meta,
            struct.pack("<I", len(crate_bytes)),
            crate_bytes,
        )
    )


def _warnings(response: HttpResponse) -> tuple[str, ...]:
    data = response.json()
    if data is None:
        return ()
    table = get_table(data, "warnings") or {}
    out: list[str] = []
    for key, value in table.items():
        for item in as_obj_list(value) or []:
            if isinstance(item, str):
                out.append(f"{key.replace('_', ' ')}: {item}")
    return tuple(out)


class CratesIoRegistry:
    """crates.io compatible registry over HTTP."""

    def __init__(
        self,
        *,
        base_url: str,
        http: HttpClient,
        timeout: float = REGISTRY_TIMEOUT_SECONDS,
    ) -> None:
        self.name = base_url.rstrip("/")
        self._api = f"{self.name}/api/v1/crates"
        self._http = http
        self._timeout = timeout

    def crate_url(self, crate: str, version: str | None = None) -> str:
        url = f"{self._api}/{quote(crate, safe='')}"
        if version is not None:
            url += f"/{quote(version, safe='')}"
        return url

    def _exists(self, url: str) -> Result[bool, RegistryError]:
        result = self._http.request("GET", url, timeout=self._timeout)
        if isinstance(result, Ok):
            return Ok(True)
        if result.error.status == 404:
            return Ok(False)
        return Err(classify_http_error(result.error))

    def version_exists(self, crate: str, version: str) -> Result[bool, RegistryError]:
        return self._exists(self.crate_url(crate, version))

    def crate_exists(self, crate: str) -> Result[bool, RegistryError]:
        return self._exists(self.crate_url(crate))

    def upload(
        self,
        metadata: Mapping[str, object],
        crate_bytes: bytes,
        credential: PublishCredential,
    ) -> Result[UploadResult, RegistryError]:
        result = self._http.request(
            "PUT",
            f"{self._api}/new",
            headers={
                "Authorization": credential.reveal(),
                "Content-Type": "application/octet-stream",
            },
            body=encode_publish_body(metadata, crate_bytes),
            timeout=self._timeout,
        )
        if isinstance(result, Err):
            return Err(classify_http_error(result.error))

        # Older registries answer 200 with an errors array.
        detail = _error_detail(result.value.body.decode("utf-8", errors="replace"))
        if detail is not None:
            return Err(RegistryError(kind="rejected", message=detail, status=result.value.status))
        return Ok(UploadResult(warnings=_warnings(result.value)))


@dataclass
class InMemoryRegistry:
    """Registry kept in memory.

    ``fail_next`` scripts errors returned (in order) before real handling
    resumes, which is how tests simulate outages.
    """

    name: str = "memory"
    tokens: frozenset[str] = frozenset()
    crates: dict[str, dict[str, bytes]] = field(default_factory=dict)
    uploads: int = 0
    checks: int = 0
    _failures: list[RegistryError] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def fail_next(self, *errors: RegistryError) -> None:
        self._failures.extend(errors)

    def _scripted_failure(self) -> RegistryError | None:
        if self._failures:
            return self._failures.pop(0)
        return None

    def version_exists(self, crate: str, version: str) -> Result[bool, RegistryError]:
        with self._lock:
            self.checks += 1
            if (failure := self._scripted_failure()) is not None:
                return Err(failure)
            return Ok(version in self.crates.get(crate, {}))

    def crate_exists(self, crate: str) -> Result[bool, RegistryError]:
        with self._lock:
            if (failure := self._scripted_failure()) is not None:
                return Err(failure)
            return Ok(crate in self.crates)

    def upload(
        self,
        metadata: Mapping[str, object],
        crate_bytes: bytes,
        credential: PublishCredential,
    ) -> Result[UploadResult, RegistryError]:
        with self._lock:
            self.uploads += 1
            if (failure := self._scripted_failure()) is not None:
                return Err(failure)
            if self.tokens and credential.reveal() not in self.tokens:
                return Err(RegistryError(kind="auth", message="invalid API token", status=403))

            crate = str(metadata.get("name", ""))
            version = str(metadata.get("vers", ""))
            versions = self.crates.setdefault(crate, {})
            if version in versions:
                return Err(
                    RegistryError(
                        kind="rejected",
                        message=f"crate version `{version}` is already uploaded",
                        status=400,
                    )
                )
            versions[version] = crate_bytes
            return Ok(UploadResult())
