from __future__ import annotations

import json
import struct

import pytest

from rel.core.result import Err, Ok
from rel.net.http import HttpError, HttpResponse, MockHttpClient
from rel.release.model import PublishCredential
from rel.release.registry import (
    CratesIoRegistry,
    InMemoryRegistry,
    RegistryError,
    classify_http_error,
    encode_publish_body,
)

BASE = "https://crates.io"
VERSION_URL = f"{BASE}/api/v1/crates/crate-check/1.2.3"
NEW_URL = f"{BASE}/api/v1/crates/new"


def _registry(http: MockHttpClient) -> CratesIoRegistry:
    return CratesIoRegistry(base_url=BASE + "/", http=http, timeout=5.0)


class TestClassify:
    @pytest.mark.parametrize(
        ("status", "kind"),
        [(0, "unreachable"), (408, "server"), (429, "server"), (500, "server"), (503, "server"),
         (401, "auth"), (403, "auth"), (400, "rejected"), (409, "rejected"), (422, "rejected")],
    )
    def test_status_mapping(self, status: int, kind: str) -> None:
        assert classify_http_error(HttpError(VERSION_URL, status, "x")).kind == kind

    def test_transient_kinds(self) -> None:
        assert RegistryError(kind="unreachable", message="").is_transient
        assert RegistryError(kind="server", message="").is_transient
        assert not RegistryError(kind="auth", message="").is_transient
        assert not RegistryError(kind="rejected", message="").is_transient

    def test_detail_from_crates_io_payload(self) -> None:
        body = json.dumps({"errors": [{"detail": "crate version `1.2.3` is already uploaded"}]})
        error = classify_http_error(HttpError(NEW_URL, 400, "Bad Request", body=body))
        assert error.message == "crate version `1.2.3` is already uploaded"


class TestCratesIoRegistry:
    def test_version_exists(self) -> None:
        http = MockHttpClient()
        http.queue("GET", VERSION_URL, HttpResponse(200, b'{"version": {}}'))
        assert _registry(http).version_exists("crate-check", "1.2.3") == Ok(True)

    def test_version_absent_on_404(self) -> None:
        http = MockHttpClient()
        http.queue("GET", VERSION_URL, HttpError(VERSION_URL, 404, "Not Found"))
        assert _registry(http).version_exists("crate-check", "1.2.3") == Ok(False)

    def test_server_error_is_reported(self) -> None:
        http = MockHttpClient()
        http.queue("GET", VERSION_URL, HttpError(VERSION_URL, 502, "Bad Gateway"))
        result = _registry(http).version_exists("crate-check", "1.2.3")
        assert isinstance(result, Err)
        assert result.error.is_transient

    def test_upload_sends_token_and_framed_body(self) -> None:
        http = MockHttpClient()
        http.queue(
            "PUT",
            NEW_URL,
            HttpResponse(200, b'{"warnings": {"invalid_categories": ["x"], "other": []}}'),
        )

        result = _registry(http).upload({"name": "crate-check"}, b"CRATE", PublishCredential("cio_tok"))

        assert isinstance(result, Ok)
        assert result.value.warnings == ("invalid categories: x",)
        call = http.calls[0]
        assert call.headers["Authorization"] == "cio_tok"
        assert call.body == encode_publish_body({"name": "crate-check"}, b"CRATE")

    def test_upload_200_with_errors_is_rejected(self) -> None:
        http = MockHttpClient()
        http.queue("PUT", NEW_URL, HttpResponse(200, b'{"errors": [{"detail": "nope"}]}'))
        result = _registry(http).upload({}, b"", PublishCredential("cio_tok"))
        assert result == Err(RegistryError(kind="rejected", message="nope", status=200))

    def test_crate_name_is_url_quoted(self) -> None:
        registry = _registry(MockHttpClient())
        assert registry.crate_url("a/b") == f"{BASE}/api/v1/crates/a%2Fb"


def test_publish_body_framing() -> None:
    body = encode_publish_body({"name": "x"}, b"abc")
    (meta_len,) = struct.unpack("<I", body[:4])
    meta = json.loads(body[4 : 4 + meta_len])
    (crate_len,) = struct.unpack("<I", body[4 + meta_len : 8 + meta_len])
    assert meta == {"name": "x"}
    assert crate_len == 3
    assert body[8 + meta_len :] == b"abc"


class TestInMemoryRegistry:
    def test_duplicate_upload_rejected(self) -> None:
        registry = InMemoryRegistry()
        cred = PublishCredential("tok1")
        meta = {"name": "crate-check", "vers": "1.2.3"}
        assert isinstance(registry.upload(meta, b"a", cred), Ok)
        second = registry.upload(meta, b"a", cred)
        assert isinstance(second, Err)
        assert second.error.kind == "rejected"

    def test_token_check(self) -> None:
        registry = InMemoryRegistry(tokens=frozenset({"good-token"}))
        result = registry.upload({"name": "a", "vers": "1.0.0"}, b"", PublishCredential("bad-token"))
        assert isinstance(result, Err)
        assert result.error.kind == "auth"
