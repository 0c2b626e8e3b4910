"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pb.bundle.errors import (
    ArchiveInvalid,
    CredentialMissing,
    GitFailed,
    MetadataUnchanged,
    PartialFetchFailure,
    PipelineError,
    PublishFailed,
    ReadFailed,
    ReleaseLookupFailed,
    TotalFetchFailure,
    WriteFailed,
)
from pb.bundle.version import Unversionable
from pb.core.config import ConfigError
from pb.core.errors import ErrorCode
from pb.forge.github import describe
from pb.output.console import Style

if TYPE_CHECKING:
    from pb.output.console import ConsoleProtocol

__all__ = ["pipeline_error_exit_code", "print_config_error", "print_pipeline_error"]


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    """Print pipeline error to console with appropriate formatting."""
    match error:
        case CredentialMissing(variable=variable):
            console.error("GitHub token required in CI mode")
            console.print(f"hint: set {variable} or pass --token", Style.DIM)
        case ReleaseLookupFailed(repo=repo, error=cause):
            console.error(f"Failed to get latest release of {repo}: {describe(cause)}")
        case Unversionable():
            console.error(error.message)
        case PartialFetchFailure(failures=failures, total=total):
            console.error(f"{len(failures)} of {total} archives failed to download")
            for failure in failures:
                console.print(f"  {failure}", Style.DIM)
        case TotalFetchFailure(failures=failures):
            console.error("No archive could be downloaded")
            for failure in failures:
                console.print(f"  {failure}", Style.DIM)
        case ArchiveInvalid(label=label, reason=reason):
            console.error(f"{label}: {reason}")
        case ReadFailed(path=path, reason=reason):
            console.error(f"Failed to read {path}: {reason}")
        case WriteFailed(path=path, reason=reason):
            console.error(f"Failed to write {path}: {reason}")
        case MetadataUnchanged(path=path):
            console.error("Metadata unchanged!")
            console.print(f"{path} does not appear in git status", Style.DIM)
        case GitFailed(command=command, message=message, returncode=rc):
            console.error(f"git {command} failed (exit {rc}): {message}")
        case PublishFailed(step=step, error=cause):
            console.error(f"Failed to {step}: {describe(cause)}")


def pipeline_error_exit_code(error: PipelineError) -> int:
    """Get exit code for a pipeline error."""
    match error:
        case Unversionable():
            return int(ErrorCode.USER_ERROR)
        case CredentialMissing() | GitFailed() | MetadataUnchanged():
            return int(ErrorCode.ENV_ERROR)
        case ArchiveInvalid():
            return int(ErrorCode.BUILD_ERROR)
        case ReleaseLookupFailed() | PartialFetchFailure() | TotalFetchFailure() | PublishFailed():
            return int(ErrorCode.NETWORK_ERROR)
        case ReadFailed() | WriteFailed():
            return int(ErrorCode.IO_ERROR)


def print_config_error(error: ConfigError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    if error.path is not None:
        console.print(f"manifest: {error.path}", Style.DIM)
