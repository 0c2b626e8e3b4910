"""Tests for forge/github.py - releases API client."""

from __future__ import annotations

import json

from pb.core.result import Err, Ok
from pb.forge.github import (
    API_ROOT,
    ApiError,
    GitHubClient,
    MalformedResponse,
    NotFound,
    TransportError,
    describe,
)
from pb.forge.http import MockHttpClient
from pb.forge.models import Asset, Release, RepoRef

REPO = RepoRef("BepInEx", "BepInEx")
ASSET = Asset(
    id=10,
    name="BepInEx_win_x64.zip",
    content_type="application/x-zip-compressed",
    size=3,
    browser_download_url="https://github.com/BepInEx/BepInEx/releases/download/v5/BepInEx_win_x64.zip",
)


def _release_obj(release_id: int = 1, tag: str = "v5.4.23", created_at: str = "2024-01-01T00:00:00Z") -> dict[str, object]:
    return {
        "id": release_id,
        "tag_name": tag,
        "html_url": f"https://github.com/BepInEx/BepInEx/releases/tag/{tag}",
        "upload_url": f"https://uploads.github.com/repos/BepInEx/BepInEx/releases/{release_id}/assets{{?name,label}}",
        "created_at": created_at,
        "assets": [],
    }


class TestReleases:
    """Tests for latest_release / list_releases."""

    def test_latest_release(self) -> None:
        http = MockHttpClient(token="t")
        http.set_json(f"{API_ROOT}/repos/BepInEx/BepInEx/releases/latest", _release_obj())
        result = GitHubClient(http).latest_release(REPO)

        assert isinstance(result, Ok)
        assert result.value.tag_name == "v5.4.23"
        assert http.calls[0].auth is True
        assert http.calls[0].accept == "application/vnd.github+json"

    def test_latest_release_not_found(self) -> None:
        http = MockHttpClient()
        result = GitHubClient(http).latest_release(REPO)
        assert isinstance(result, Err)
        assert isinstance(result.error, NotFound)

    def test_api_error(self) -> None:
        http = MockHttpClient()
        http.set_error(f"{API_ROOT}/repos/BepInEx/BepInEx/releases/latest", 403, "rate limited")
        result = GitHubClient(http).latest_release(REPO)
        assert result == Err(
            ApiError(url=f"{API_ROOT}/repos/BepInEx/BepInEx/releases/latest", status=403, message="rate limited")
        )

    def test_transport_error(self) -> None:
        http = MockHttpClient()
        http.set_error(f"{API_ROOT}/repos/BepInEx/BepInEx/releases/latest", 0, "refused")
        result = GitHubClient(http).latest_release(REPO)
        assert isinstance(result, Err)
        assert isinstance(result.error, TransportError)

    def test_malformed_release(self) -> None:
        http = MockHttpClient()
        http.set_json(f"{API_ROOT}/repos/BepInEx/BepInEx/releases/latest", {"message": "?"})
        result = GitHubClient(http).latest_release(REPO)
        assert isinstance(result, Err)
        assert isinstance(result.error, MalformedResponse)

    def test_list_releases(self) -> None:
        http = MockHttpClient()
        http.set_json(
            f"{API_ROOT}/repos/BepInEx/BepInEx/releases?per_page=100",
            [_release_obj(1, "v6.0.0-pre.1"), _release_obj(2, "v6.0.0-pre.2")],
        )
        result = GitHubClient(http).list_releases(REPO)
        assert isinstance(result, Ok)
        assert [r.id for r in result.value] == [1, 2]

    def test_api_root_trailing_slash(self) -> None:
        http = MockHttpClient()
        GitHubClient(http, api_root="https://ghe.local/api/v3/").latest_release(REPO)
        assert http.urls() == ["https://ghe.local/api/v3/repos/BepInEx/BepInEx/releases/latest"]


class TestDownloads:
    """Tests for asset and URL downloads."""

    def test_authenticated_download_uses_asset_endpoint(self) -> None:
        http = MockHttpClient(token="t")
        url = f"{API_ROOT}/repos/BepInEx/BepInEx/releases/assets/10"
        http.set_bytes(url, b"zip")

        result = GitHubClient(http).download_asset(REPO, ASSET)

        assert result == Ok(b"zip")
        assert http.calls[0].accept == "application/octet-stream"
        assert http.calls[0].auth is True

    def test_anonymous_download_uses_browser_url(self) -> None:
        http = MockHttpClient()
        http.set_bytes(ASSET.browser_download_url, b"zip")

        result = GitHubClient(http).download_asset(REPO, ASSET)

        assert result == Ok(b"zip")
        assert http.calls[0].auth is False

    def test_json_body_is_malformed(self) -> None:
        http = MockHttpClient()
        http.set_bytes(ASSET.browser_download_url, b'{"message": "x"}', content_type="application/json")
        result = GitHubClient(http).download_asset(REPO, ASSET)
        assert isinstance(result, Err)
        assert isinstance(result.error, MalformedResponse)

    def test_html_body_is_malformed(self) -> None:
        http = MockHttpClient()
        http.set_bytes("https://unity.bepinex.dev/corlibs/1.zip", b"<html>", content_type="text/html")
        result = GitHubClient(http).download_url("https://unity.bepinex.dev/corlibs/1.zip")
        assert isinstance(result, Err)
        assert isinstance(result.error, MalformedResponse)

    def test_asset_without_reference(self) -> None:
        asset = Asset(id=0, name="x.zip", content_type="", size=0, browser_download_url="")
        result = GitHubClient(MockHttpClient(token="t")).download_asset(REPO, asset)
        assert isinstance(result, Err)
        assert isinstance(result.error, MalformedResponse)


class TestPublishing:
    """Tests for create_release / upload_asset."""

    def test_create_release_payload(self) -> None:
        http = MockHttpClient(token="t")
        url = f"{API_ROOT}/repos/toebeann/BepInEx.Subnautica/releases"
        http.set_json(url, _release_obj(7, "v5.4.23-payload.1.0.0"), method="POST")

        result = GitHubClient(http).create_release(
            RepoRef("toebeann", "BepInEx.Subnautica"),
            tag_name="v5.4.23-payload.1.0.0",
            target_commitish="abc123",
            name="v5.4.23-payload.1.0.0",
            body="# Payload auto-update\n",
        )

        assert isinstance(result, Ok)
        assert result.value.id == 7
        sent = json.loads(http.calls[0].data or b"")
        assert sent == {
            "tag_name": "v5.4.23-payload.1.0.0",
            "target_commitish": "abc123",
            "name": "v5.4.23-payload.1.0.0",
            "body": "# Payload auto-update\n",
            "generate_release_notes": True,
        }
        assert http.calls[0].content_type == "application/json"

    def test_upload_asset(self) -> None:
        release = Release(
            id=7,
            tag_name="v1",
            html_url="https://github.com/o/r/releases/tag/v1",
            upload_url="https://uploads.github.com/repos/o/r/releases/7/assets",
        )
        http = MockHttpClient(token="t")
        url = "https://uploads.github.com/repos/o/r/releases/7/assets?name=Bundle+Name.zip"
        http.set_json(url, {"id": 99, "name": "Bundle Name.zip"}, method="POST")

        result = GitHubClient(http).upload_asset(
            release,
            filename="Bundle Name.zip",
            content_type="application/x-zip-compressed",
            data=b"zip",
        )

        assert isinstance(result, Ok)
        assert result.value.id == 99
        assert http.calls[0].content_type == "application/x-zip-compressed"
        assert http.calls[0].data == b"zip"

    def test_upload_without_upload_url(self) -> None:
        release = Release(id=7, tag_name="v1", html_url="https://github.com/o/r/releases/tag/v1")
        result = GitHubClient(MockHttpClient()).upload_asset(
            release, filename="a.zip", content_type="application/zip", data=b""
        )
        assert isinstance(result, Err)


def test_describe_includes_status() -> None:
    assert describe(NotFound("u")) == "404 Not Found (u)"
    assert describe(ApiError("u", 500, "boom")) == "500 boom (u)"
    assert describe(TransportError("u", "refused")).startswith("network error")
    assert describe(MalformedResponse("u", "bad")).startswith("unexpected response")
