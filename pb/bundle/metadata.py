"""State persisted between runs in `.metadata.json`.

The file records what the last published bundle was built from:

    {
      "dependency": "5.4.23",
      "payload": "1.2.0",
      "sources": [
        "https://github.com/BepInEx/BepInEx/releases/tag/v5.4.23",
        "https://github.com/owner/plugin/releases/tag/v2.0.1"
      ]
    }

Older files name the dependency version `bepinex`; both keys are read.
"""

from __future__ import annotations

import json
import posixpath
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from pb.bundle.version import Version, compound_version, is_newer, normalize
from pb.core.result import Err, Ok, Result
from pb.core.structured import as_str_dict, get_str, get_str_list
from pb.forge.models import Release, parse_repo
from pb.platform.files import atomic_write_text

__all__ = [
    "FIRST_RUN_VERSION",
    "Metadata",
    "create_metadata",
    "load_metadata",
    "same_repository",
    "save_metadata",
    "source_repo_label",
    "updated_sources",
]

FIRST_RUN_VERSION = "0"


@dataclass(frozen=True, slots=True)
class Metadata:
    """Versions and release URLs of the last published build.

    Attributes:
        dependency: Normalized dependency version, "0" before the first release
        payload: Payload version the bundle was built with
        sources: html_url of every release merged into the bundle
    """

    dependency: str = FIRST_RUN_VERSION
    payload: str | None = None
    sources: tuple[str, ...] = ()

    @property
    def is_first_run(self) -> bool:
        return self.dependency == FIRST_RUN_VERSION

    def compound(self) -> Version | None:
        """Version of the last published bundle, None if it cannot be formed."""
        if self.is_first_run or self.payload is None:
            return None
        dependency = normalize(self.dependency)
        payload = normalize(self.payload)
        if isinstance(dependency, Err) or isinstance(payload, Err):
            return None
        result = compound_version(dependency.value, payload.value)
        return result.value if isinstance(result, Ok) else None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"dependency": self.dependency}
        if self.payload is not None:
            data["payload"] = self.payload
        data["sources"] = list(self.sources)
        return data


def load_metadata(path: Path) -> Metadata:
    """Read `.metadata.json`; any problem yields the first-run state."""
    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return Metadata()

    data = as_str_dict(obj)
    if data is None:
        return Metadata()

    dependency = get_str(data, "dependency") or get_str(data, "bepinex")
    if dependency is None:
        return Metadata()
    return Metadata(
        dependency=dependency,
        payload=get_str(data, "payload"),
        sources=tuple(get_str_list(data, "sources") or ()),
    )


def save_metadata(path: Path, metadata: Metadata) -> Result[None, str]:
    try:
        atomic_write_text(path, json.dumps(metadata.to_dict(), indent=2) + "\n")
    except OSError as e:
        return Err(f"Failed to write {path}: {e}")
    return Ok(None)


def create_metadata(
    dependency_release: Release,
    source_releases: Sequence[Release],
    payload_version: str,
) -> Metadata:
    """Metadata describing a build from the given releases."""
    dependency = normalize(dependency_release.tag_name)
    return Metadata(
        dependency=str(dependency.value) if isinstance(dependency, Ok) else FIRST_RUN_VERSION,
        payload=payload_version,
        sources=(dependency_release.html_url, *(r.html_url for r in source_releases)),
    )


def same_repository(release_url: str, recorded_url: str) -> bool:
    # A release URL's parent path (".../releases/tag") identifies its repository
    return posixpath.dirname(release_url).lower() == posixpath.dirname(recorded_url).lower()


def updated_sources(old: Metadata, releases: Sequence[Release]) -> list[str]:
    """Recorded source URLs whose repository has published a newer release.

    The recorded tag is the last path segment of the URL. Sources with no
    current release, or with a tag that cannot be versioned, never count.
    """
    updated: list[str] = []
    for source in old.sources:
        latest = next((r for r in releases if same_repository(r.html_url, source)), None)
        if latest is None:
            continue
        recorded = normalize(posixpath.basename(source))
        current = normalize(latest.tag_name)
        if isinstance(recorded, Err) or isinstance(current, Err):
            continue
        if is_newer(current.value, recorded.value):
            updated.append(source)
    return updated


def source_repo_label(source: str) -> str:
    """`owner/name` of a recorded source URL, or the URL itself."""
    repo = parse_repo(source)
    return repo.slug if repo is not None else source
