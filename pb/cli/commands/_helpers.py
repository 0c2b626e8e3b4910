"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from pb.bundle.errors import PipelineError
from pb.bundle.pipeline import PipelineOutcome, PublishPipeline
from pb.core.result import Err, Ok, Result
from pb.output.errors import pipeline_error_exit_code, print_pipeline_error

if TYPE_CHECKING:
    from pb.cli.context import CLIContext


def make_pipeline(ctx: CLIContext) -> PublishPipeline:
    return PublishPipeline(
        manifest=ctx.manifest,
        config=ctx.config,
        forge=ctx.forge,
        git=ctx.git,
        console=ctx.console,
    )


def unwrap_or_exit(
    result: Result[PipelineOutcome, PipelineError],
    ctx: CLIContext,
) -> PipelineOutcome:
    """Return the outcome, or print the error and exit with its code.

    Replaces the common pattern:
        match result:
            case Err(e):
                print_pipeline_error(e, ctx.console)
                raise typer.Exit(code=pipeline_error_exit_code(e))
            case Ok(outcome):
                ...
    """
    ctx.console.end_group()
    match result:
        case Err(error):
            print_pipeline_error(error, ctx.console)
            exit_with_code(pipeline_error_exit_code(error))
        case Ok(outcome):
            return outcome


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)
