from __future__ import annotations

from pathlib import Path

import typer

from pb.bundle.pipeline import PipelineState
from pb.cli.commands._helpers import make_pipeline, unwrap_or_exit
from pb.cli.context import build_context
from pb.output.console import Style


def run(
    ctx: typer.Context,
    token: str | None = typer.Option(
        None,
        "--token",
        envvar="GITHUB_PERSONAL_ACCESS_TOKEN",
        help="GitHub token (required with --ci)",
        show_default=False,
    ),
    ci: bool = typer.Option(
        False,
        "--ci/--no-ci",
        envvar="CI",
        help="Commit metadata, push and publish a release after building",
    ),
    manifest: Path | None = typer.Option(None, "--manifest", help="Path to payload.json"),
    workers: int = typer.Option(8, "--workers", min=1, help="Concurrent downloads"),
) -> None:
    """Build the bundle when upstream releases changed; publish it in CI."""
    cli = build_context(
        token=token, ci=ci, manifest=manifest, max_workers=workers, workspace=ctx.obj
    )
    outcome = unwrap_or_exit(make_pipeline(cli).run(), cli)

    match outcome.state:
        case PipelineState.SKIPPED:
            cli.console.print(f"up to date: {outcome.resolution.recorded}", Style.DIM)
        case PipelineState.DONE_LOCAL:
            cli.console.success(f"Built {outcome.resolution.tag_name}")
            cli.console.print(f"archive: {outcome.archive_path}", Style.DIM)
        case PipelineState.DONE_REMOTE:
            cli.console.success(f"Published {outcome.resolution.tag_name}")
            if outcome.release is not None:
                cli.console.print(f"release: {outcome.release.html_url}", Style.DIM)
        case _:
            pass
