"""Git working-copy operations for the publish step.

After a successful CI build the bundler commits the refreshed metadata and
pushes it, so the release tag can point at that commit. All operations
return Result types.

Usage:
    repo = Repository(workspace, safe_directory=workspace)

    match repo.status():
        case Ok(status):
            changed = status.changed_paths
        case Err(e):
            console.error(e.message)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pb.core.result import Err, Ok, Result
from pb.platform.process import ProcessError
from pb.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in `git status --porcelain`.

    Attributes:
        xy: Two-character status code (e.g., "M ", " M", "??")
        path: File path relative to the repository root
    """

    xy: str
    path: str

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"

    @property
    def is_modified(self) -> bool:
        """True for tracked files changed in the index or the worktree."""
        return not self.is_untracked and ("M" in self.xy or "A" in self.xy)


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Working tree status, reduced to what the publish step needs."""

    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def modified(self) -> list[str]:
        return [e.path for e in self.entries if e.is_modified]

    @property
    def not_added(self) -> list[str]:
        return [e.path for e in self.entries if e.is_untracked]

    @property
    def changed_paths(self) -> list[str]:
        """Untracked then modified paths."""
        return [*self.not_added, *self.modified]


class Repository:
    """A git working copy.

    Attributes:
        path: Path to the repository root
        safe_directory: Directory passed as `-c safe.directory=...` on every
            call, so CI containers owned by another user are trusted for this
            process only.
    """

    def __init__(self, path: Path, *, safe_directory: Path | None = None) -> None:
        self.path = path
        self.safe_directory = safe_directory

    def status(self) -> Result[GitStatus, GitError]:
        """Run `git status --porcelain=v1` and parse the entries."""
        result = self._run(["status", "--porcelain=v1", "--untracked-files=all"])
        match result:
            case Err(e):
                return Err(_git_error("status", e))
            case Ok(stdout):
                return Ok(parse_status(stdout))

    def set_config(self, key: str, value: str) -> Result[None, GitError]:
        """Set a repository-local config value."""
        return self._simple(["config", "--local", key, value], command=f"config {key}")

    def add(self, paths: list[str]) -> Result[None, GitError]:
        return self._simple(["add", "--", *paths], command="add")

    def commit(self, message: str, paths: list[str]) -> Result[str, GitError]:
        """Commit only `paths` and return the new commit sha."""
        committed = self._simple(["commit", "-m", message, "--", *paths], command="commit")
        if isinstance(committed, Err):
            return committed

        match self._run(["rev-parse", "HEAD"]):
            case Err(e):
                return Err(_git_error("rev-parse HEAD", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def push(self) -> Result[None, GitError]:
        return self._simple(["push"], command="push")

    def _simple(self, args: list[str], *, command: str) -> Result[None, GitError]:
        match self._run(args):
            case Err(e):
                return Err(_git_error(command, e))
            case Ok(_):
                return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push"}
            else _GIT_TIMEOUT_SECONDS
        )
        prefix = ["git"]
        if self.safe_directory is not None:
            prefix += ["-c", f"safe.directory={self.safe_directory}"]
        return run_process([*prefix, "-C", str(self.path), *args], cwd=self.path, timeout=timeout)


def _git_error(command: str, error: ProcessError) -> GitError:
    return GitError(command=command, message=error.detail, returncode=error.returncode)


def parse_status(output: str) -> GitStatus:
    """Parse `git status --porcelain=v1` output."""
    entries: list[StatusEntry] = []
    for line in output.splitlines():
        if len(line) < 4 or line.startswith("##"):
            continue
        xy = line[:2]
        path = line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        entries.append(StatusEntry(xy=xy, path=path.strip('"')))
    return GitStatus(entries=tuple(entries))
