"""Tests for pb.output.console module."""

import pytest

from pb.output.console import MockConsole, RichConsole, Style


class TestMockConsole:
    """Tests for MockConsole."""

    def test_prefixes(self) -> None:
        console = MockConsole()
        console.success("done")
        console.error("bad")
        console.warning("careful")
        console.info("note")
        console.header("Title")
        console.print("plain")

        assert console.messages == [
            "OK done",
            "error: bad",
            "warning: careful",
            "info: note",
            "Title",
            "plain",
        ]

    def test_flags(self) -> None:
        console = MockConsole()
        assert console.has_error() is False
        console.warning("w")
        assert console.has_warning() is True
        assert console.has_error() is False
        console.error("e")
        assert console.has_error() is True

    def test_find_and_text(self) -> None:
        console = MockConsole()
        console.info("Downloading a.zip...")
        console.info("Downloading b.zip...")
        console.print("other", Style.DIM)

        assert len(console.find("Downloading")) == 2
        assert console.find("other")[0].style == Style.DIM
        assert console.text.splitlines()[-1] == "other"


def test_style_str() -> None:
    assert str(Style.WARNING) == "warning"


class TestRichConsole:
    """Workflow commands under GitHub Actions."""

    def test_plain_terminal_emits_no_commands(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole(annotate=False)
        console.header("Fetching")
        console.warning("slow mirror")

        out = capsys.readouterr().out
        assert "::" not in out
        assert "warning: slow mirror" in out

    def test_error_becomes_annotation(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole(annotate=True)
        console.error("BepInEx_x64.zip: 100% broken\nsee log")

        captured = capsys.readouterr()
        assert "::error::BepInEx_x64.zip: 100%25 broken%0Asee log" in captured.out
        assert "error: BepInEx_x64.zip" in captured.err

    def test_headers_open_and_close_groups(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole(annotate=True)
        console.header("Resolving")
        console.header("Fetching")
        console.end_group()
        console.end_group()

        lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("::")]
        assert lines == ["::group::Resolving", "::endgroup::", "::group::Fetching", "::endgroup::"]

    def test_detects_actions_runner(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        assert RichConsole().annotate is True
        monkeypatch.delenv("GITHUB_ACTIONS")
        assert RichConsole().annotate is False
