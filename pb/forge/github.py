"""GitHub releases API client.

Wraps the handful of REST endpoints the bundler needs: reading releases,
downloading release assets, creating a release and uploading to it. Every
call returns a Result whose error is one of a closed set of ForgeError
variants, dispatched with `match` by the callers.
"""

from __future__ import annotations

import json
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from pb.core.result import Err, Ok, Result
from pb.forge.http import HttpClient, HttpError, HttpResponse
from pb.forge.models import (
    Asset,
    Release,
    RepoRef,
    parse_asset,
    parse_release,
    parse_release_list,
)

__all__ = [
    "API_ROOT",
    "ApiError",
    "ForgeClient",
    "ForgeError",
    "GitHubClient",
    "MalformedResponse",
    "NotFound",
    "TransportError",
    "describe",
]

API_ROOT = "https://api.github.com"
_JSON_ACCEPT = "application/vnd.github+json"
_BINARY_ACCEPT = "application/octet-stream"

# Bodies of these types are error pages or API documents, never archives.
_NON_BINARY_TYPES = ("application/json", "application/vnd.github+json", "text/")


@dataclass(frozen=True, slots=True)
class NotFound:
    url: str
    message: str = "Not Found"


@dataclass(frozen=True, slots=True)
class ApiError:
    url: str
    status: int
    message: str


@dataclass(frozen=True, slots=True)
class TransportError:
    url: str
    message: str


@dataclass(frozen=True, slots=True)
class MalformedResponse:
    url: str
    message: str


ForgeError = NotFound | ApiError | TransportError | MalformedResponse


def describe(error: ForgeError) -> str:
    """One-line description including the HTTP status when there is one."""
    match error:
        case NotFound(url=url, message=message):
            return f"404 {message} ({url})"
        case ApiError(url=url, status=status, message=message):
            return f"{status} {message} ({url})"
        case TransportError(url=url, message=message):
            return f"network error: {message} ({url})"
        case MalformedResponse(url=url, message=message):
            return f"unexpected response: {message} ({url})"


def _from_http(error: HttpError) -> ForgeError:
    if error.status == 404:
        return NotFound(url=error.url, message=error.message)
    if error.is_transport:
        return TransportError(url=error.url, message=error.message)
    return ApiError(url=error.url, status=error.status, message=error.message)


def _validated[T](
    url: str, parse: Callable[[object], Result[T, str]]
) -> Callable[[object], Result[T, ForgeError]]:
    """Adapt a model parser so a shape error becomes MalformedResponse."""

    def step(obj: object) -> Result[T, ForgeError]:
        return parse(obj).map_err(lambda msg: MalformedResponse(url, msg))

    return step


def _is_binary(response: HttpResponse) -> bool:
    return not any(response.content_type.startswith(t) for t in _NON_BINARY_TYPES)


class ForgeClient(Protocol):
    """The release operations the publish pipeline depends on."""

    def latest_release(self, repo: RepoRef) -> Result[Release, ForgeError]: ...

    def list_releases(self, repo: RepoRef) -> Result[list[Release], ForgeError]: ...

    def download_asset(self, repo: RepoRef, asset: Asset) -> Result[bytes, ForgeError]: ...

    def download_url(self, url: str) -> Result[bytes, ForgeError]: ...

    def create_release(
        self,
        repo: RepoRef,
        *,
        tag_name: str,
        target_commitish: str,
        name: str,
        body: str,
    ) -> Result[Release, ForgeError]: ...

    def upload_asset(
        self,
        release: Release,
        *,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> Result[Asset, ForgeError]: ...


class GitHubClient:
    """GitHub REST client over an injectable HttpClient.

    Usage:
        client = GitHubClient(RealHttpClient(token))
        match client.latest_release(RepoRef("BepInEx", "BepInEx")):
            case Ok(release):
                ...
            case Err(NotFound()):
                ...
    """

    def __init__(self, http: HttpClient, *, api_root: str = API_ROOT) -> None:
        self.http = http
        self.api_root = api_root.rstrip("/")

    def latest_release(self, repo: RepoRef) -> Result[Release, ForgeError]:
        """Latest non-prerelease, non-draft release.

        GitHub answers 404 when the repository has no such release.
        """
        url = f"{self.api_root}/repos/{repo.slug}/releases/latest"
        return self._get_json(url).and_then(_validated(url, parse_release))

    def list_releases(self, repo: RepoRef) -> Result[list[Release], ForgeError]:
        """First page (up to 100) of releases, newest first as GitHub lists them."""
        url = f"{self.api_root}/repos/{repo.slug}/releases?per_page=100"
        return self._get_json(url).and_then(_validated(url, parse_release_list))

    def download_asset(self, repo: RepoRef, asset: Asset) -> Result[bytes, ForgeError]:
        """Fetch the raw bytes of a release asset.

        Uses the authenticated asset endpoint when a token is available,
        otherwise the public browser download URL.
        """
        if self.http.authenticated and asset.id:
            url = f"{self.api_root}/repos/{repo.slug}/releases/assets/{asset.id}"
            result = self.http.get(url, accept=_BINARY_ACCEPT, auth=True)
        elif asset.browser_download_url:
            url = asset.browser_download_url
            result = self.http.get(url, accept=_BINARY_ACCEPT)
        else:
            return Err(MalformedResponse(url=asset.name, message="asset has no download reference"))
        return self._binary(url, result)

    def download_url(self, url: str) -> Result[bytes, ForgeError]:
        """Plain unauthenticated GET for data hosted outside GitHub."""
        return self._binary(url, self.http.get(url))

    def create_release(
        self,
        repo: RepoRef,
        *,
        tag_name: str,
        target_commitish: str,
        name: str,
        body: str,
    ) -> Result[Release, ForgeError]:
        url = f"{self.api_root}/repos/{repo.slug}/releases"
        payload = {
            "tag_name": tag_name,
            "target_commitish": target_commitish,
            "name": name,
            "body": body,
            "generate_release_notes": True,
        }
        result = self.http.post(
            url,
            json.dumps(payload).encode("utf-8"),
            content_type="application/json",
            accept=_JSON_ACCEPT,
        )
        return self._decode(url, result).and_then(_validated(url, parse_release))

    def upload_asset(
        self,
        release: Release,
        *,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> Result[Asset, ForgeError]:
        if not release.upload_url:
            return Err(MalformedResponse(url=release.html_url, message="release has no upload_url"))

        url = f"{release.upload_url}?{urllib.parse.urlencode({'name': filename})}"
        result = self.http.post(url, data, content_type=content_type, accept=_JSON_ACCEPT)
        return self._decode(url, result).and_then(_validated(url, parse_asset))

    def _get_json(self, url: str) -> Result[object, ForgeError]:
        return self._decode(url, self.http.get(url, accept=_JSON_ACCEPT, auth=True))

    @staticmethod
    def _decode(url: str, result: Result[HttpResponse, HttpError]) -> Result[object, ForgeError]:
        if isinstance(result, Err):
            return Err(_from_http(result.error))
        try:
            obj: object = json.loads(result.value.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(MalformedResponse(url=url, message=f"invalid JSON: {e}"))
        return Ok(obj)

    @staticmethod
    def _binary(url: str, result: Result[HttpResponse, HttpError]) -> Result[bytes, ForgeError]:
        if isinstance(result, Err):
            return Err(_from_http(result.error))
        response = result.value
        if not _is_binary(response):
            return Err(
                MalformedResponse(
                    url=url,
                    message=f"expected binary data, got {response.content_type or 'unknown type'}",
                )
            )
        return Ok(response.body)
