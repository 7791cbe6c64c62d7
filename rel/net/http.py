"""HTTP client abstraction for registry access.

This module provides:
- HttpClient: Protocol for HTTP operations (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Scripted implementation for testing
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from rel import __version__
from rel.core.result import Err, Ok, Result
from rel.core.structured import StrDict, as_str_dict

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "MockHttpClient",
    "RealHttpClient",
    "USER_AGENT",
]

# crates.io rejects requests without a descriptive User-Agent.
USER_AGENT = f"rel/{__version__} (release orchestration)"

# Error bodies are kept for diagnostics only.
_MAX_ERROR_BODY = 4096


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    body: bytes

    def json(self) -> StrDict | None:
        """Decode the body as a JSON object, or None if it is not one."""
        try:
            obj: object = json.loads(self.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return as_str_dict(obj)


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors and timeouts)
        message: Human-readable error message
        body: Response body of an HTTP error, decoded leniently
    """

    url: str
    status: int
    message: str
    body: str = ""

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"

    @property
    def is_network(self) -> bool:
        return self.status == 0


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations."""

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> Result[HttpResponse, HttpError]:
        """Perform a request.

        Returns:
            Ok with a 2xx response, or Err with HttpError for any other
            status, network failure, or timeout.
        """
        ...


class RealHttpClient:
    """Real HTTP client using urllib with system certificates."""

    def __init__(self, timeout: float = 60.0, user_agent: str = USER_AGENT) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> Result[HttpResponse, HttpError]:
        all_headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if headers:
            all_headers.update(headers)
        req = urllib.request.Request(url, data=body, headers=all_headers, method=method)
        try:
            with urllib.request.urlopen(
                req,
                timeout=timeout if timeout is not None else self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(HttpResponse(status=response.status, body=response.read()))
        except urllib.error.HTTPError as e:
            raw = e.read()[:_MAX_ERROR_BODY] if e.fp is not None else b""
            return Err(
                HttpError(
                    url=url,
                    status=e.code,
                    message=str(e.reason),
                    body=raw.decode("utf-8", errors="replace"),
                )
            )
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))


@dataclass(frozen=True, slots=True)
class RecordedRequest:
    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None


@dataclass
class MockHttpClient:
    """Scripted HTTP client for testing.

    Responses are queued per (method, url) and consumed in order; the last
    queued response repeats once the queue is down to one entry.

    Usage:
        client = MockHttpClient()
        client.queue("GET", url, HttpError(url, 503, "unavailable"), HttpResponse(200, b"{}"))
    """

    calls: list[RecordedRequest] = field(default_factory=list)
    _responses: dict[tuple[str, str], list[HttpResponse | HttpError]] = field(
        default_factory=dict
    )

    def queue(self, method: str, url: str, *responses: HttpResponse | HttpError) -> None:
        self._responses.setdefault((method, url), []).extend(responses)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> Result[HttpResponse, HttpError]:
        self.calls.append(RecordedRequest(method, url, dict(headers or {}), body))

        pending = self._responses.get((method, url))
        if not pending:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = pending.pop(0) if len(pending) > 1 else pending[0]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
