from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from pb.core.result import Err, Ok
from pb.platform.process import NON_INTERACTIVE_ENV, ProcessError, run


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        with patch("subprocess.run", return_value=_completed(stdout="ok\n")) as mock_run:
            result = run(["git", "status"], cwd=tmp_path, timeout=5)

        assert result == Ok("ok\n")
        kwargs = mock_run.call_args.kwargs
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["timeout"] == 5
        assert kwargs["capture_output"] is True

    def test_child_never_prompts(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GIT_TERMINAL_PROMPT", "1")
        monkeypatch.setenv("PB_MARKER", "kept")
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run(["git", "push"], cwd=tmp_path, env={"GIT_TRACE": "1"})

        env = mock_run.call_args.kwargs["env"]
        for key, value in NON_INTERACTIVE_ENV.items():
            assert env[key] == value
        assert env["PB_MARKER"] == "kept"
        assert env["GIT_TRACE"] == "1"

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        with patch("subprocess.run", return_value=_completed(stderr="fatal: no upstream\n", returncode=128)):
            result = run(["git", "push"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 128
        assert result.error.detail == "fatal: no upstream"
        assert not result.error.timed_out

    def test_timeout(self, tmp_path: Path) -> None:
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(["git"], 1.0)):
            result = run(["git", "push"], cwd=tmp_path, timeout=1.0)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert result.error.timed_out
        assert str(result.error) == "git push timed out"

    def test_missing_executable(self, tmp_path: Path) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            result = run(["git", "status"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert result.error.detail == "git"


@pytest.mark.parametrize(
    ("stdout", "stderr", "expected"),
    [
        ("", "fatal: bad\n", "fatal: bad"),
        ("nothing to commit\n", "", "nothing to commit"),
        ("", "", "exit status 1"),
    ],
)
def test_detail_prefers_stderr(stdout: str, stderr: str, expected: str) -> None:
    assert ProcessError(("git",), 1, stdout, stderr).detail == expected


def test_str_truncates_long_commands() -> None:
    error = ProcessError(("git", "commit", "-m", "Update metadata"), 1, "", "")
    assert str(error) == "git commit -m ... failed (exit 1)"
