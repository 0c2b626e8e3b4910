"""Pick the release assets that go into the bundle."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from pb.forge.models import Asset, Release, RepoRef

__all__ = ["newest_release", "select_asset", "select_source_asset"]


def _contains(asset: Asset, *needles: str) -> bool:
    name = asset.name.lower()
    return all(n.lower() in name for n in needles)


def select_asset(
    assets: Sequence[Asset],
    platform_key: str,
    prefer_variant: str | None = None,
) -> Asset | None:
    """Select the dependency asset for one platform.

    Matching is a case-insensitive substring test on the asset name. When
    `prefer_variant` is given (e.g. "unitymono"), an asset naming both the
    platform and the variant wins; otherwise the first asset naming the
    platform is used. Listing order decides ties.

    Returns None when nothing matches.
    """
    if prefer_variant:
        for asset in assets:
            if _contains(asset, platform_key, prefer_variant):
                return asset
    for asset in assets:
        if _contains(asset, platform_key):
            return asset
    return None


def select_source_asset(
    assets: Sequence[Asset],
    repo: RepoRef,
    markers: Sequence[str] = (),
) -> Asset | None:
    """Select the archive of a payload source release.

    With markers, the first asset whose name contains any of them; without,
    the asset named `<repo name>.zip`.
    """
    if markers:
        for asset in assets:
            name = asset.name.lower()
            if any(m.lower() in name for m in markers):
                return asset
        return None

    expected = f"{repo.name}.zip".lower()
    return next((a for a in assets if a.name.lower() == expected), None)


def _created_ts(release: Release) -> float:
    try:
        return datetime.fromisoformat(release.created_at).timestamp()
    except ValueError:
        return float("-inf")


def newest_release(releases: Sequence[Release]) -> Release | None:
    """The most recently created release, drafts excluded."""
    candidates = [r for r in releases if not r.draft]
    if not candidates:
        return None
    return max(candidates, key=_created_ts)
