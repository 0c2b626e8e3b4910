from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pb.bundle.fetcher import FetchFailure
from pb.bundle.version import Unversionable
from pb.forge.github import ForgeError


@dataclass(frozen=True, slots=True)
class CredentialMissing:
    variable: str = "GITHUB_PERSONAL_ACCESS_TOKEN"


@dataclass(frozen=True, slots=True)
class ReleaseLookupFailed:
    repo: str
    error: ForgeError


@dataclass(frozen=True, slots=True)
class PartialFetchFailure:
    failures: tuple[FetchFailure, ...]
    total: int


@dataclass(frozen=True, slots=True)
class TotalFetchFailure:
    failures: tuple[FetchFailure, ...]


@dataclass(frozen=True, slots=True)
class ArchiveInvalid:
    label: str
    reason: str


@dataclass(frozen=True, slots=True)
class ReadFailed:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class WriteFailed:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class MetadataUnchanged:
    path: Path


@dataclass(frozen=True, slots=True)
class GitFailed:
    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class PublishFailed:
    step: str
    error: ForgeError


PipelineError = (
    CredentialMissing
    | ReleaseLookupFailed
    | Unversionable
    | PartialFetchFailure
    | TotalFetchFailure
    | ArchiveInvalid
    | ReadFailed
    | WriteFailed
    | MetadataUnchanged
    | GitFailed
    | PublishFailed
)
