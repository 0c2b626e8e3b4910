"""Tests for pb.core.config module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pb.core.config import (
    DEFAULT_PREFER_VARIANT,
    UNITY_DATA_HOST,
    Manifest,
    RunConfig,
    SourceSpec,
    load_manifest,
    write_manifest_version,
)
from pb.core.result import Err, Ok


def _manifest_dict(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "name": "Tobey.BepInEx.Subnautica",
        "version": "1.2.0",
        "repo": "toebeann/BepInEx.Subnautica",
        "dependency": "BepInEx/BepInEx",
        "platforms": ["win_x64"],
    }
    data.update(overrides)
    return data


def _write(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestManifestFromDict:
    """Tests for Manifest.from_dict."""

    def test_minimal(self) -> None:
        manifest = Manifest.from_dict(_manifest_dict())
        assert manifest.name == "Tobey.BepInEx.Subnautica"
        assert manifest.platforms == ("win_x64",)
        assert manifest.prefer_variant == DEFAULT_PREFER_VARIANT
        assert manifest.conflict_policy == "overwrite"
        assert manifest.sources == ()
        assert manifest.datasets == ()

    def test_legacy_bepinex_key(self) -> None:
        data = _manifest_dict()
        del data["dependency"]
        data["bepinex"] = "https://github.com/BepInEx/BepInEx"
        assert Manifest.from_dict(data).dependency == "https://github.com/BepInEx/BepInEx"

    def test_missing_keys_are_listed(self) -> None:
        data = _manifest_dict()
        del data["name"]
        del data["repo"]
        with pytest.raises(ValueError, match="name, repo"):
            Manifest.from_dict(data)

    def test_empty_platforms_rejected(self) -> None:
        with pytest.raises(ValueError, match="platforms"):
            Manifest.from_dict(_manifest_dict(platforms=[]))

    def test_prefer_variant_can_be_disabled(self) -> None:
        assert Manifest.from_dict(_manifest_dict(prefer_variant="")).prefer_variant is None

    def test_conflict_policy(self) -> None:
        assert Manifest.from_dict(_manifest_dict(conflict_policy="skip")).conflict_policy == "skip"
        with pytest.raises(ValueError, match="conflict_policy"):
            Manifest.from_dict(_manifest_dict(conflict_policy="merge"))

    def test_sources_strings_and_tables(self) -> None:
        manifest = Manifest.from_dict(
            _manifest_dict(
                sources=[
                    "https://github.com/toebeann/Tobey.FileTree",
                    {"repo": "BepInEx/BepInEx.MelonLoader.Loader", "assets": ["BepInEx5"]},
                ]
            )
        )
        assert manifest.sources == (
            SourceSpec(repo="https://github.com/toebeann/Tobey.FileTree"),
            SourceSpec(repo="BepInEx/BepInEx.MelonLoader.Loader", assets=("bepinex5",)),
        )

    def test_invalid_source_rejected(self) -> None:
        with pytest.raises(ValueError, match="invalid source"):
            Manifest.from_dict(_manifest_dict(sources=[{"assets": ["x"]}]))

    def test_datasets(self) -> None:
        manifest = Manifest.from_dict(
            _manifest_dict(
                datasets=[
                    {
                        "name": "extras",
                        "url": "https://example.com/extras.zip",
                        "prefix": "BepInEx/plugins",
                        "include": ["a.dll"],
                        "optional": True,
                    }
                ]
            )
        )
        (dataset,) = manifest.datasets
        assert dataset.prefix == "BepInEx/plugins"
        assert dataset.include == frozenset({"a.dll"})
        assert dataset.optional is True

    def test_unity_shorthand_expands_to_corlibs_datasets(self) -> None:
        manifest = Manifest.from_dict(
            _manifest_dict(
                unity={
                    "version": "2019.4.36",
                    "corlibs": ["mscorlib.dll"],
                    "libraries": ["UnityEngine.dll"],
                }
            )
        )
        corlibs, libraries = manifest.datasets
        assert corlibs.url == f"{UNITY_DATA_HOST}/corlibs/2019.4.36.zip"
        assert libraries.url == f"{UNITY_DATA_HOST}/libraries/2019.4.36.zip"
        assert corlibs.prefix == libraries.prefix == "corlibs"
        assert corlibs.include == frozenset({"mscorlib.dll"})

    def test_unity_requires_version(self) -> None:
        with pytest.raises(ValueError, match="unity.version"):
            Manifest.from_dict(_manifest_dict(unity={"corlibs": []}))


class TestLoadManifest:
    """Tests for load_manifest."""

    def test_load_valid(self, tmp_path: Path) -> None:
        result = load_manifest(_write(tmp_path / "payload.json", _manifest_dict()))
        assert isinstance(result, Ok)
        assert result.value.version == "1.2.0"

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_manifest(tmp_path / "payload.json")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "payload.json"
        path.write_text("{not json", encoding="utf-8")
        result = load_manifest(path)
        assert isinstance(result, Err)
        assert "Invalid JSON" in result.error.message
        assert result.error.path == path

    def test_root_must_be_object(self, tmp_path: Path) -> None:
        result = load_manifest(_write(tmp_path / "payload.json", ["x"]))
        assert isinstance(result, Err)

    def test_invalid_manifest(self, tmp_path: Path) -> None:
        result = load_manifest(_write(tmp_path / "payload.json", {"name": "x"}))
        assert isinstance(result, Err)
        assert result.error.message.startswith("Invalid manifest")


def test_write_manifest_version_keeps_other_keys(tmp_path: Path) -> None:
    data = _manifest_dict(custom={"kept": True})
    path = _write(tmp_path / "payload.json", data)

    assert write_manifest_version(path, "1.2.1") == Ok(None)

    written = json.loads(path.read_text(encoding="utf-8"))
    assert written["version"] == "1.2.1"
    assert written["custom"] == {"kept": True}
    assert list(written) == list(data)


def test_run_config_resolve(tmp_path: Path) -> None:
    config = RunConfig(workspace=tmp_path)
    assert config.resolve(config.dist_dir) == tmp_path / "dist"
    assert config.resolve(tmp_path / "abs") == tmp_path / "abs"
