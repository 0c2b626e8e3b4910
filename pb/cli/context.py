from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

import typer

from pb.bundle.pipeline import GitProtocol
from pb.core.config import Manifest, RunConfig, load_manifest
from pb.core.errors import ErrorCode
from pb.core.result import Err
from pb.forge.github import ForgeClient, GitHubClient
from pb.forge.http import RealHttpClient
from pb.git.repository import Repository
from pb.output.console import ConsoleProtocol, RichConsole
from pb.output.errors import print_config_error

DEFAULT_GIT_NAME = "GitHub Workflow Update and Release"
DEFAULT_GIT_USER = "github-workflow-update-and-release"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: RunConfig
    manifest: Manifest
    forge: ForgeClient
    git: GitProtocol
    console: ConsoleProtocol


def _env(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def git_identity() -> tuple[str, str]:
    """Committer name and email from PB_GIT_NAME / PB_GIT_EMAIL / GITHUB_ACTOR."""
    actor = _env("GITHUB_ACTOR") or DEFAULT_GIT_USER
    name = _env("PB_GIT_NAME") or DEFAULT_GIT_NAME
    email = _env("PB_GIT_EMAIL") or f"{actor}@users.noreply.github.com"
    return name, email


def workspace_root() -> Path:
    """GITHUB_WORKSPACE when set, else the current directory."""
    root = _env("GITHUB_WORKSPACE")
    return Path(root) if root else Path.cwd()


def build_context(
    *,
    token: str | None,
    ci: bool,
    manifest: Path | None = None,
    max_workers: int = 8,
    workspace: Path | None = None,
) -> CLIContext:
    """Load the manifest and wire the real clients.

    `workspace` comes from `pb --workspace`; without it the root is
    `workspace_root()`.
    """
    console = RichConsole()
    if workspace is None:
        workspace = workspace_root()
    git_name, git_email = git_identity()

    config = RunConfig(
        workspace=workspace,
        token=token or None,
        ci=ci,
        git_name=git_name,
        git_email=git_email,
        max_workers=max_workers,
    )
    if manifest is not None:
        config = replace(config, manifest_path=manifest)

    manifest_result = load_manifest(config.resolve(config.manifest_path))
    if isinstance(manifest_result, Err):
        print_config_error(manifest_result.error, console)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        config=config,
        manifest=manifest_result.value,
        forge=GitHubClient(RealHttpClient(config.token)),
        git=Repository(workspace, safe_directory=workspace),
        console=console,
    )
