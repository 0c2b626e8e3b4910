"""Typed configuration loading and access.

Two layers of configuration drive a bundling run:

- `Manifest`: the checked-in payload.json describing what to bundle
  (upstream dependency, platforms, payload sources, datasets).
- `RunConfig`: per-invocation options (credential, CI mode, directories, git
  identity) assembled by the CLI from flags and environment variables.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pb.platform.files import atomic_write_text

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_list,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "ConfigError",
    "ConflictPolicyName",
    "DatasetSpec",
    "Manifest",
    "RunConfig",
    "SourceSpec",
    "load_manifest",
    "write_manifest_version",
    "DEFAULT_PREFER_VARIANT",
    "UNITY_DATA_HOST",
]

DEFAULT_PREFER_VARIANT = "unitymono"
UNITY_DATA_HOST = "https://unity.bepinex.dev"

ConflictPolicyName = Literal["overwrite", "skip"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when the manifest cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class SourceSpec:
    """A payload source repository whose release archive is merged in.

    Attributes:
        repo: Repository reference (URL or owner/name)
        assets: Case-insensitive name markers; empty means `<repo name>.zip`
    """

    repo: str
    assets: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DatasetSpec:
    """A supplementary zip fetched from a plain URL.

    Attributes:
        name: Label used in logs
        url: Direct download URL
        prefix: Destination directory inside the bundle
        include: Top-level entry names to keep (None keeps everything)
        optional: When True a failed download is logged and skipped
    """

    name: str
    url: str
    prefix: str
    include: frozenset[str] | None = None
    optional: bool = False


def _empty_sources() -> tuple[SourceSpec, ...]:
    return ()


def _empty_datasets() -> tuple[DatasetSpec, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class Manifest:
    """Parsed payload.json."""

    name: str
    version: str
    repo: str
    dependency: str
    platforms: tuple[str, ...]
    prefer_variant: str | None = DEFAULT_PREFER_VARIANT
    conflict_policy: ConflictPolicyName = "overwrite"
    sources: tuple[SourceSpec, ...] = field(default_factory=_empty_sources)
    datasets: tuple[DatasetSpec, ...] = field(default_factory=_empty_datasets)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Manifest:
        """Create a Manifest from parsed JSON.

        Raises:
            ValueError: If a required key is missing or a value has the wrong shape.
        """
        name = get_str(data, "name")
        version = get_str(data, "version")
        repo = get_str(data, "repo")
        dependency = get_str(data, "dependency") or get_str(data, "bepinex")
        platforms = get_str_list(data, "platforms")

        missing = [
            key
            for key, value in (
                ("name", name),
                ("version", version),
                ("repo", repo),
                ("dependency", dependency),
            )
            if value is None
        ]
        if missing:
            raise ValueError(f"missing required key(s): {', '.join(missing)}")
        if not platforms:
            raise ValueError("platforms must be a non-empty list of strings")

        prefer_variant: str | None = DEFAULT_PREFER_VARIANT
        if "prefer_variant" in data:
            prefer_variant = get_str(data, "prefer_variant")

        policy = get_str(data, "conflict_policy") or "overwrite"
        if policy not in ("overwrite", "skip"):
            raise ValueError(f"conflict_policy must be 'overwrite' or 'skip', got {policy!r}")

        datasets = _parse_datasets(data)
        unity = get_table(data, "unity")
        if unity is not None:
            datasets = datasets + _unity_datasets(unity)

        assert name and version and repo and dependency
        return cls(
            name=name,
            version=version,
            repo=repo,
            dependency=dependency,
            platforms=tuple(platforms),
            prefer_variant=prefer_variant,
            conflict_policy="skip" if policy == "skip" else "overwrite",
            sources=_parse_sources(data),
            datasets=datasets,
        )


def _parse_sources(data: Mapping[str, object]) -> tuple[SourceSpec, ...]:
    raw = get_list(data, "sources")
    if raw is None:
        return ()

    out: list[SourceSpec] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            out.append(SourceSpec(repo=item.strip()))
            continue
        table = as_str_dict(item)
        repo = get_str(table, "repo") if table is not None else None
        if table is None or repo is None:
            raise ValueError(f"invalid source entry: {item!r}")
        markers = get_str_list(table, "assets") or []
        out.append(SourceSpec(repo=repo, assets=tuple(m.lower() for m in markers)))
    return tuple(out)


def _parse_datasets(data: Mapping[str, object]) -> tuple[DatasetSpec, ...]:
    raw = get_list(data, "datasets")
    if raw is None:
        return ()

    out: list[DatasetSpec] = []
    for item in raw:
        table = as_str_dict(item)
        if table is None:
            raise ValueError(f"invalid dataset entry: {item!r}")
        name = get_str(table, "name")
        url = get_str(table, "url")
        if name is None or url is None:
            raise ValueError(f"dataset requires name and url: {item!r}")
        include = get_str_list(table, "include")
        out.append(
            DatasetSpec(
                name=name,
                url=url,
                prefix=get_str(table, "prefix") or "",
                include=frozenset(include) if include else None,
                optional=get_bool(table, "optional") or False,
            )
        )
    return tuple(out)


def _unity_datasets(unity: StrDict) -> tuple[DatasetSpec, ...]:
    version = get_str(unity, "version")
    if version is None:
        raise ValueError("unity.version is required")

    out: list[DatasetSpec] = []
    for kind in ("corlibs", "libraries"):
        if kind not in unity:
            continue
        names = get_str_list(unity, kind)
        if names is None:
            raise ValueError(f"unity.{kind} must be a list of strings")
        # Both sets land in corlibs/, where the loader's doorstop looks for them.
        out.append(
            DatasetSpec(
                name=f"unity {kind} {version}",
                url=f"{UNITY_DATA_HOST}/{kind}/{version}.zip",
                prefix="corlibs",
                include=frozenset(names) if names else None,
            )
        )
    return tuple(out)


def _read_json(path: Path) -> Result[StrDict, ConfigError]:
    try:
        data_obj: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Manifest not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(ConfigError(f"Invalid JSON: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Manifest root must be a JSON object", path=path))
    return Ok(data)


def load_manifest(path: Path) -> Result[Manifest, ConfigError]:
    """Load and validate payload.json.

    Args:
        path: Path to the manifest file

    Returns:
        Ok(Manifest) on success, Err(ConfigError) on failure
    """
    result = _read_json(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Manifest.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid manifest: {e}", path=path))


def write_manifest_version(path: Path, version: str) -> Result[None, ConfigError]:
    """Rewrite only the `version` key of payload.json, keeping everything else."""
    result = _read_json(path)
    if isinstance(result, Err):
        return result

    data = dict(result.value)
    data["version"] = version
    try:
        atomic_write_text(path, json.dumps(data, indent=2) + "\n")
    except OSError as e:
        return Err(ConfigError(f"Failed to write manifest: {e}", path=path))
    return Ok(None)


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Everything a single bundling run needs besides the manifest.

    Attributes:
        workspace: Root of the checked-out project (git working copy)
        token: GitHub token; required in CI mode
        ci: Commit metadata and publish a release after building
        manifest_path: payload.json location
        payload_dir: Local files embedded into the bundle
        dist_dir: Output directory for the merged archive
        metadata_path: Persisted state from the last published build
        git_name: Committer name for the metadata commit
        git_email: Committer email for the metadata commit
        max_workers: Concurrent downloads
    """

    workspace: Path
    token: str | None = None
    ci: bool = False
    manifest_path: Path = Path("payload.json")
    payload_dir: Path = Path("payload")
    dist_dir: Path = Path("dist")
    metadata_path: Path = Path(".metadata.json")
    git_name: str = "GitHub Workflow Update and Release"
    git_email: str = "github-workflow-update-and-release@users.noreply.github.com"
    max_workers: int = 8

    def resolve(self, path: Path) -> Path:
        """Resolve a configured path against the workspace."""
        return path if path.is_absolute() else self.workspace / path
