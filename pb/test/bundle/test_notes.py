"""Tests for bundle/notes.py."""

from __future__ import annotations

from pb.bundle.notes import render_release_notes
from pb.forge.models import Release

OLD = "https://github.com/toebeann/Tobey.FileTree/releases/tag/v1.0.0"


def _release(body: str | None) -> Release:
    return Release(
        id=2,
        tag_name="v1.1.0",
        html_url="https://github.com/toebeann/Tobey.FileTree/releases/tag/v1.1.0",
        body=body,
    )


def test_no_updates_is_header_only() -> None:
    assert render_release_notes([], []) == "# Payload auto-update\n"


def test_quotes_release_notes() -> None:
    body = render_release_notes([OLD], [_release("Fixed things.  \n\n- item")])

    assert body.startswith("# Payload auto-update\n\n<details>\n")
    assert "<summary>Update toebeann/Tobey.FileTree to v1.1.0</summary>" in body
    assert "## [Release notes](https://github.com/toebeann/Tobey.FileTree/releases/tag/v1.1.0)" in body
    assert "> Fixed things.\n> \n> - item" in body
    assert body.endswith("</details>")


def test_missing_notes() -> None:
    body = render_release_notes([OLD], [_release(None)])
    assert "No release notes provided." in body


def test_source_without_release_is_left_out() -> None:
    other = "https://github.com/o/other/releases/tag/v1"
    body = render_release_notes([other, OLD], [_release("x")])
    assert body.count("<details>") == 1
