from __future__ import annotations

from pathlib import Path

import typer

from pb import __version__
from pb.cli.commands.check import check
from pb.cli.commands.run_cmd import run
from pb.core.errors import ErrorCode

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Bundle the latest plugin-loader release with this project's payload.",
)

app.command()(run)
app.command()(check)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"payload-bundler {__version__}")
        raise typer.Exit(code=0)


def _resolve_workspace(path: Path) -> Path:
    try:
        root = path.expanduser().resolve(strict=True)
    except OSError as e:
        typer.echo(f"error: --workspace {path}: {e.strerror or e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    if not root.is_dir():
        typer.echo(f"error: --workspace {root} is not a directory", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return root


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        is_eager=True,
        callback=_print_version,
        help="Show version and exit.",
    ),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        help="Project root holding payload.json (default: $GITHUB_WORKSPACE or cwd)",
    ),
) -> None:
    # Commands read the project root from ctx.obj; None falls back to the environment
    ctx.obj = _resolve_workspace(workspace) if workspace is not None else None


def main() -> None:
    app()
