"""Typed GitHub release data, validated at the API boundary.

Responses from the releases API are untyped JSON; `parse_release` turns
them into frozen dataclasses or reports what was wrong, so nothing past this
module ever touches a raw dict.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from pb.core.result import Err, Ok, Result
from pb.core.structured import as_obj_list, as_str_dict, get_bool, get_int, get_str

__all__ = [
    "Asset",
    "Release",
    "RepoRef",
    "parse_asset",
    "parse_release",
    "parse_release_list",
    "parse_repo",
]

_URL_PREFIX_RE = re.compile(r"^(?:[a-z+]+://)?(?:[^@/]+@)?(?:www\.)?github\.com[/:]", re.IGNORECASE)
_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True, slots=True)
class RepoRef:
    """A GitHub repository."""

    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    def matches(self, other: RepoRef) -> bool:
        """GitHub owner/name comparison is case-insensitive."""
        return self.slug.lower() == other.slug.lower()

    def __str__(self) -> str:
        return self.slug


def parse_repo(text: str) -> RepoRef | None:
    """Parse `owner/name`, a github.com URL, or any URL below a repository.

    Examples:
        >>> parse_repo("BepInEx/BepInEx")
        RepoRef(owner='BepInEx', name='BepInEx')
        >>> parse_repo("https://github.com/toebeann/BepInEx.Subnautica/releases/tag/v1.0.0").slug
        'toebeann/BepInEx.Subnautica'
    """
    s = _URL_PREFIX_RE.sub("", text.strip())
    parts = [p for p in s.split("/") if p]
    if len(parts) < 2:
        return None
    owner, name = parts[0], parts[1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not _NAME_RE.match(owner) or not _NAME_RE.match(name):
        return None
    return RepoRef(owner=owner, name=name)


@dataclass(frozen=True, slots=True)
class Asset:
    """One downloadable file attached to a release."""

    id: int
    name: str
    content_type: str
    size: int
    browser_download_url: str


@dataclass(frozen=True, slots=True)
class Release:
    """One published release of a repository."""

    id: int
    tag_name: str
    html_url: str
    name: str | None = None
    body: str | None = None
    upload_url: str | None = None
    created_at: str = ""
    prerelease: bool = False
    draft: bool = False
    assets: tuple[Asset, ...] = field(default_factory=tuple)

    @property
    def repo(self) -> RepoRef | None:
        return parse_repo(self.html_url)


def parse_asset(obj: object) -> Result[Asset, str]:
    data = as_str_dict(obj)
    if data is None:
        return Err("asset is not an object")

    asset_id = get_int(data, "id")
    name = get_str(data, "name")
    if asset_id is None or name is None:
        return Err("asset is missing id or name")

    return Ok(
        Asset(
            id=asset_id,
            name=name,
            content_type=get_str(data, "content_type") or "application/octet-stream",
            size=get_int(data, "size") or 0,
            browser_download_url=get_str(data, "browser_download_url") or "",
        )
    )


def _strip_uri_template(url: str | None) -> str | None:
    # "https://uploads.github.com/repos/o/r/releases/1/assets{?name,label}"
    if url is None:
        return None
    return url.split("{", 1)[0]


def parse_release(obj: object) -> Result[Release, str]:
    """Validate a release object from the REST API."""
    data = as_str_dict(obj)
    if data is None:
        return Err("release is not an object")

    release_id = get_int(data, "id")
    tag_name = get_str(data, "tag_name")
    html_url = get_str(data, "html_url")
    if release_id is None or tag_name is None or html_url is None:
        return Err("release is missing id, tag_name or html_url")

    raw_assets = as_obj_list(data.get("assets", []))
    if raw_assets is None:
        return Err(f"release {tag_name}: assets is not a list")

    assets: list[Asset] = []
    for raw in raw_assets:
        parsed = parse_asset(raw)
        if isinstance(parsed, Err):
            return Err(f"release {tag_name}: {parsed.error}")
        assets.append(parsed.value)

    body = data.get("body")
    return Ok(
        Release(
            id=release_id,
            tag_name=tag_name,
            html_url=html_url,
            name=get_str(data, "name"),
            body=body if isinstance(body, str) else None,
            upload_url=_strip_uri_template(get_str(data, "upload_url")),
            created_at=get_str(data, "created_at") or "",
            prerelease=get_bool(data, "prerelease") or False,
            draft=get_bool(data, "draft") or False,
            assets=tuple(assets),
        )
    )


def parse_release_list(obj: object) -> Result[list[Release], str]:
    items = as_obj_list(obj)
    if items is None:
        return Err("release list is not an array")

    releases: list[Release] = []
    for item in items:
        parsed = parse_release(item)
        if isinstance(parsed, Err):
            return parsed
        releases.append(parsed.value)
    return Ok(releases)

