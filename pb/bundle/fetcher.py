"""Concurrent download of every archive a bundle needs.

Each archive is a FetchJob. `fetch_all` starts all jobs at once on a thread
pool, waits until every one has settled and returns the outcomes in job
order. Nothing is retried; a failed job is reported once with the asset
name and HTTP status.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Literal

from pb.core.result import Err, Ok, Result
from pb.forge.github import (
    ApiError,
    ForgeClient,
    ForgeError,
    MalformedResponse,
    NotFound,
    TransportError,
)
from pb.forge.models import Asset, RepoRef
from pb.output.console import ConsoleProtocol

__all__ = [
    "FetchCause",
    "FetchFailure",
    "FetchJob",
    "FetchOutcome",
    "FetchReport",
    "asset_job",
    "failure_from_forge",
    "fetch_all",
    "url_job",
]

FetchCause = Literal["not_found", "http_status", "malformed", "transport"]
JobKind = Literal["platform", "source", "dataset"]


@dataclass(frozen=True, slots=True)
class FetchFailure:
    """Why one archive could not be retrieved.

    Attributes:
        label: Asset name or dataset name
        cause: not_found | http_status | malformed | transport
        message: Details from the transport or API
        status: HTTP status code, 0 when there was no response
    """

    label: str
    cause: FetchCause
    message: str
    status: int = 0

    def __str__(self) -> str:
        status = f" (HTTP {self.status})" if self.status else ""
        return f"{self.label}: {self.cause.replace('_', ' ')}{status}: {self.message}"


def failure_from_forge(label: str, error: ForgeError) -> FetchFailure:
    match error:
        case NotFound(message=message):
            return FetchFailure(label, "not_found", message, 404)
        case ApiError(status=status, message=message):
            return FetchFailure(label, "http_status", message, status)
        case TransportError(message=message):
            return FetchFailure(label, "transport", message)
        case MalformedResponse(message=message):
            return FetchFailure(label, "malformed", message)


@dataclass(frozen=True, slots=True)
class FetchJob:
    """One download.

    Attributes:
        label: Name shown in logs
        kind: What the archive is used for
        run: Performs the download
        optional: A failure is tolerated and the archive left out
        key: Identifier the caller uses to find the result (platform key,
            repo slug or dataset name)
    """

    label: str
    kind: JobKind
    run: Callable[[], Result[bytes, FetchFailure]]
    optional: bool = False
    key: str = ""


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    job: FetchJob
    result: Result[bytes, FetchFailure]


@dataclass(frozen=True, slots=True)
class FetchReport:
    """All outcomes, in job order."""

    outcomes: tuple[FetchOutcome, ...]

    @property
    def succeeded(self) -> list[FetchOutcome]:
        return [o for o in self.outcomes if isinstance(o.result, Ok)]

    @property
    def failed(self) -> list[FetchOutcome]:
        """Failures of required jobs."""
        return [o for o in self.outcomes if isinstance(o.result, Err) and not o.job.optional]

    @property
    def skipped(self) -> list[FetchOutcome]:
        """Failures of optional jobs."""
        return [o for o in self.outcomes if isinstance(o.result, Err) and o.job.optional]

    @property
    def required_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.job.optional)

    def failures(self) -> tuple[FetchFailure, ...]:
        return tuple(o.result.error for o in self.failed if isinstance(o.result, Err))


def asset_job(
    client: ForgeClient,
    repo: RepoRef,
    asset: Asset | None,
    *,
    label: str,
    kind: JobKind,
    key: str = "",
) -> FetchJob:
    """Job downloading a release asset; `asset=None` fails as not_found."""

    def run() -> Result[bytes, FetchFailure]:
        if asset is None:
            return Err(FetchFailure(label, "not_found", f"no matching asset in {repo.slug}"))
        return client.download_asset(repo, asset).map_err(
            lambda e: failure_from_forge(asset.name, e)
        )

    return FetchJob(label=asset.name if asset else label, kind=kind, run=run, key=key)


def url_job(
    client: ForgeClient,
    url: str,
    *,
    label: str,
    optional: bool = False,
    key: str = "",
) -> FetchJob:
    """Job downloading a plain URL (datasets hosted outside GitHub)."""

    def run() -> Result[bytes, FetchFailure]:
        return client.download_url(url).map_err(lambda e: failure_from_forge(label, e))

    return FetchJob(label=label, kind="dataset", run=run, optional=optional, key=key)


def fetch_all(
    jobs: Sequence[FetchJob],
    *,
    console: ConsoleProtocol,
    max_workers: int = 8,
) -> FetchReport:
    """Run every job concurrently and wait for all of them."""
    if not jobs:
        return FetchReport(outcomes=())

    def run_one(job: FetchJob) -> FetchOutcome:
        console.info(f"Downloading {job.label}...")
        try:
            result = job.run()
        except Exception as e:
            # A raising job settles as a transport failure
            result = Err(FetchFailure(job.label, "transport", str(e) or type(e).__name__))
        return FetchOutcome(job=job, result=result)

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs)))) as executor:
        outcomes = tuple(executor.map(run_one, jobs))

    report = FetchReport(outcomes=outcomes)
    for outcome in report.failed:
        if isinstance(outcome.result, Err):
            console.error(f"Failed to get archive {outcome.result.error}")
    for outcome in report.skipped:
        if isinstance(outcome.result, Err):
            console.warning(f"Skipping optional {outcome.result.error}")
    return report
