"""Run external programs without raising.

Git is the only program the bundler drives. In CI nothing can answer a
prompt, so every child runs with terminal prompts disabled and a timeout;
a hung credential helper then fails the step instead of the whole job.

    match run(["git", "status", "--porcelain"], cwd=workspace, timeout=30):
        case Ok(stdout):
            ...
        case Err(error):
            console.error(error.detail)
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from pb.core.result import Err, Ok, Result

__all__ = ["NON_INTERACTIVE_ENV", "ProcessError", "run"]

NON_INTERACTIVE_ENV: Mapping[str, str] = {
    "GIT_TERMINAL_PROMPT": "0",
    "GCM_INTERACTIVE": "never",
    "LC_ALL": "C",
}


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A child process that failed, could not start, or ran too long.

    Attributes:
        command: argv as executed
        returncode: Exit status; -1 when the process never finished
        stdout: Captured standard output
        stderr: Captured standard error, or the reason it never finished
        timed_out: The timeout expired and the child was killed
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def detail(self) -> str:
        """Most useful single message: stderr, else stdout, else the exit status."""
        return self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"

    def __str__(self) -> str:
        shown = " ".join(self.command[:3]) + (" ..." if len(self.command) > 3 else "")
        if self.timed_out:
            return f"{shown} timed out"
        return f"{shown} failed (exit {self.returncode})"


def _child_env(overrides: Mapping[str, str] | None) -> dict[str, str]:
    env = {**os.environ, **NON_INTERACTIVE_ENV}
    if overrides:
        env.update(overrides)
    return env


def run(
    cmd: list[str],
    cwd: Path,
    *,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> Result[str, ProcessError]:
    """Run `cmd` in `cwd` and return its stdout.

    `env` holds overrides on top of the current environment and
    NON_INTERACTIVE_ENV.
    """
    command = tuple(cmd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=_child_env(env),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(command, -1, partial, f"no result after {timeout}s", timed_out=True))
    except OSError as e:
        return Err(ProcessError(command, -1, "", str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command, proc.returncode, proc.stdout, proc.stderr))
    return Ok(proc.stdout)
