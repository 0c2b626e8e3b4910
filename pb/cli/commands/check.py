from __future__ import annotations

from pathlib import Path

import typer

from pb.bundle.pipeline import PipelineState
from pb.cli.commands._helpers import make_pipeline, unwrap_or_exit
from pb.cli.context import build_context
from pb.output.console import Style


def check(
    ctx: typer.Context,
    token: str | None = typer.Option(
        None,
        "--token",
        envvar="GITHUB_PERSONAL_ACCESS_TOKEN",
        help="GitHub token (raises the API rate limit)",
        show_default=False,
    ),
    manifest: Path | None = typer.Option(None, "--manifest", help="Path to payload.json"),
) -> None:
    """Report whether a new bundle would be built, without downloading anything."""
    cli = build_context(token=token, ci=False, manifest=manifest, workspace=ctx.obj)
    outcome = unwrap_or_exit(make_pipeline(cli).run(dry_run=True), cli)

    resolution = outcome.resolution
    if outcome.state is PipelineState.SKIPPED:
        cli.console.success(f"Up to date ({resolution.tag_name})")
        return

    cli.console.info(f"New bundle available: {resolution.tag_name}")
    if resolution.bumped:
        cli.console.print(f"payload version would be bumped to {resolution.payload_version}", Style.DIM)
    if resolution.updated:
        cli.console.print(f"updated sources: {len(resolution.updated)}", Style.DIM)
