"""HTTP transport for the GitHub API and plain downloads.

This module provides:
- HttpClient: Protocol for HTTP operations (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Mock implementation for testing
"""

from __future__ import annotations

import http.client
import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pb import __version__
from pb.core.result import Err, Ok, Result

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "MockHttpClient",
    "RealHttpClient",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for transport errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    @property
    def is_transport(self) -> bool:
        return self.status == 0

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """A completed 2xx response.

    Attributes:
        status: HTTP status code
        content_type: Media type without parameters, lower-cased ("" if absent)
        body: Raw response bytes
    """

    status: int
    content_type: str
    body: bytes


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations.

    `auth=True` attaches the client's credential, if it has one. The
    credential is never forwarded across redirects (GitHub asset downloads
    redirect to a storage host that rejects foreign Authorization headers).
    """

    @property
    def authenticated(self) -> bool:
        """True if the client holds a credential."""
        ...

    def get(
        self,
        url: str,
        *,
        accept: str | None = None,
        auth: bool = False,
    ) -> Result[HttpResponse, HttpError]:
        """GET url; non-2xx and transport failures are returned as HttpError."""
        ...

    def post(
        self,
        url: str,
        data: bytes,
        *,
        content_type: str,
        accept: str | None = None,
        auth: bool = True,
    ) -> Result[HttpResponse, HttpError]:
        """POST raw bytes to url."""
        ...


def _media_type(header: str | None) -> str:
    if not header:
        return ""
    return header.split(";", 1)[0].strip().lower()


class RealHttpClient:
    """Real HTTP client using urllib.

    No retries. The socket timeout is left to the platform unless `timeout`
    is given; it bounds each socket operation, not the whole transfer.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        timeout: float | None = None,
        user_agent: str = f"payload-bundler/{__version__}",
    ) -> None:
        self._token = token
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def get(
        self,
        url: str,
        *,
        accept: str | None = None,
        auth: bool = False,
    ) -> Result[HttpResponse, HttpError]:
        return self._request("GET", url, None, accept=accept, content_type=None, auth=auth)

    def post(
        self,
        url: str,
        data: bytes,
        *,
        content_type: str,
        accept: str | None = None,
        auth: bool = True,
    ) -> Result[HttpResponse, HttpError]:
        return self._request("POST", url, data, accept=accept, content_type=content_type, auth=auth)

    def _request(
        self,
        method: str,
        url: str,
        data: bytes | None,
        *,
        accept: str | None,
        content_type: str | None,
        auth: bool,
    ) -> Result[HttpResponse, HttpError]:
        try:
            req = urllib.request.Request(
                url,
                data=data,
                method=method,
                headers={"User-Agent": self.user_agent},
            )
            if accept:
                req.add_header("Accept", accept)
            if content_type:
                req.add_header("Content-Type", content_type)
            if auth and self._token:
                req.add_unredirected_header("Authorization", f"Bearer {self._token}")

            # Without a timeout urlopen keeps the socket module default
            options: dict[str, Any] = {"context": self._ssl_context}
            if self.timeout is not None:
                options["timeout"] = self.timeout
            with urllib.request.urlopen(req, **options) as response:
                return Ok(
                    HttpResponse(
                        status=response.status,
                        content_type=_media_type(response.headers.get("Content-Type")),
                        body=response.read(),
                    )
                )
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except http.client.HTTPException as e:
            # Truncated body or garbled status line; not an OSError
            return Err(HttpError(url=url, status=0, message=str(e) or type(e).__name__))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))


@dataclass(frozen=True, slots=True)
class MockCall:
    method: str
    url: str
    accept: str | None = None
    auth: bool = False
    content_type: str | None = None
    data: bytes | None = None


def _empty_calls() -> list[MockCall]:
    return []


@dataclass
class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json("https://api.github.com/repos/o/r/releases/latest", {...})
        client.set_bytes("https://example.com/data.zip", zip_bytes)
    """

    token: str | None = None
    calls: list[MockCall] = field(default_factory=_empty_calls)
    _get: dict[str, HttpResponse | HttpError] = field(default_factory=dict)
    _post: dict[str, HttpResponse | HttpError] = field(default_factory=dict)

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def set_json(self, url: str, payload: object, *, method: str = "GET") -> None:
        """Serve `payload` as an application/json body."""
        response = HttpResponse(200, "application/json", json.dumps(payload).encode("utf-8"))
        self._table(method)[url] = response

    def set_bytes(
        self,
        url: str,
        body: bytes,
        *,
        content_type: str = "application/octet-stream",
    ) -> None:
        self._get[url] = HttpResponse(200, content_type, body)

    def set_error(self, url: str, status: int, message: str = "", *, method: str = "GET") -> None:
        self._table(method)[url] = HttpError(url=url, status=status, message=message or "error")

    def urls(self, method: str = "GET") -> list[str]:
        return [c.url for c in self.calls if c.method == method]

    def get(
        self,
        url: str,
        *,
        accept: str | None = None,
        auth: bool = False,
    ) -> Result[HttpResponse, HttpError]:
        self.calls.append(MockCall("GET", url, accept=accept, auth=auth))
        return self._respond(self._get, url)

    def post(
        self,
        url: str,
        data: bytes,
        *,
        content_type: str,
        accept: str | None = None,
        auth: bool = True,
    ) -> Result[HttpResponse, HttpError]:
        self.calls.append(
            MockCall("POST", url, accept=accept, auth=auth, content_type=content_type, data=data)
        )
        return self._respond(self._post, url)

    def _table(self, method: str) -> dict[str, HttpResponse | HttpError]:
        return self._post if method == "POST" else self._get

    @staticmethod
    def _respond(
        table: dict[str, HttpResponse | HttpError], url: str
    ) -> Result[HttpResponse, HttpError]:
        response = table.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not Found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
