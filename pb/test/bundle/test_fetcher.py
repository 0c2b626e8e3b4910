"""Tests for bundle/fetcher.py."""

from __future__ import annotations

import threading

from pb.bundle.fetcher import (
    FetchFailure,
    FetchJob,
    asset_job,
    failure_from_forge,
    fetch_all,
    url_job,
)
from pb.core.result import Err, Ok, Result
from pb.forge.github import API_ROOT, ApiError, GitHubClient, MalformedResponse, NotFound, TransportError
from pb.forge.http import MockHttpClient
from pb.forge.models import Asset, RepoRef
from pb.output.console import MockConsole

REPO = RepoRef("BepInEx", "BepInEx")


def _asset(asset_id: int, name: str) -> Asset:
    return Asset(
        id=asset_id,
        name=name,
        content_type="application/x-zip-compressed",
        size=1,
        browser_download_url=f"https://github.com/BepInEx/BepInEx/releases/download/v5/{name}",
    )


def _job(label: str, result: Result[bytes, FetchFailure], *, optional: bool = False) -> FetchJob:
    return FetchJob(label=label, kind="platform", run=lambda: result, optional=optional)


class TestFailureFromForge:
    """Forge errors map to distinct causes."""

    def test_causes(self) -> None:
        assert failure_from_forge("a", NotFound("u")).cause == "not_found"
        assert failure_from_forge("a", NotFound("u")).status == 404
        api = failure_from_forge("a", ApiError("u", 502, "Bad Gateway"))
        assert (api.cause, api.status) == ("http_status", 502)
        assert failure_from_forge("a", TransportError("u", "reset")).cause == "transport"
        assert failure_from_forge("a", MalformedResponse("u", "html")).cause == "malformed"

    def test_str_names_asset_and_status(self) -> None:
        failure = FetchFailure("BepInEx_x64.zip", "http_status", "Bad Gateway", 502)
        assert str(failure) == "BepInEx_x64.zip: http status (HTTP 502): Bad Gateway"


class TestJobs:
    """Tests for asset_job / url_job."""

    def test_asset_job_downloads(self) -> None:
        http = MockHttpClient(token="t")
        http.set_bytes(f"{API_ROOT}/repos/BepInEx/BepInEx/releases/assets/5", b"zip")
        job = asset_job(GitHubClient(http), REPO, _asset(5, "BepInEx_x64.zip"), label="x64", kind="platform")

        assert job.label == "BepInEx_x64.zip"
        assert job.run() == Ok(b"zip")

    def test_asset_job_without_asset_is_not_found(self) -> None:
        http = MockHttpClient()
        job = asset_job(GitHubClient(http), REPO, None, label="BepInEx win_x64", kind="platform")

        result = job.run()
        assert isinstance(result, Err)
        assert result.error.cause == "not_found"
        assert result.error.label == "BepInEx win_x64"
        assert http.calls == []

    def test_asset_job_failure_is_labelled_with_asset(self) -> None:
        http = MockHttpClient()
        http.set_error(_asset(5, "BepInEx_x64.zip").browser_download_url, 503, "Unavailable")
        job = asset_job(GitHubClient(http), REPO, _asset(5, "BepInEx_x64.zip"), label="x64", kind="platform")

        result = job.run()
        assert isinstance(result, Err)
        assert result.error == FetchFailure("BepInEx_x64.zip", "http_status", "Unavailable", 503)

    def test_url_job(self) -> None:
        http = MockHttpClient()
        http.set_bytes("https://unity.bepinex.dev/corlibs/1.zip", b"zip")
        job = url_job(GitHubClient(http), "https://unity.bepinex.dev/corlibs/1.zip", label="corlibs", optional=True)

        assert job.kind == "dataset"
        assert job.optional is True
        assert job.run() == Ok(b"zip")


class TestFetchAll:
    """Tests for fetch_all()."""

    def test_empty(self) -> None:
        report = fetch_all([], console=MockConsole())
        assert report.outcomes == ()

    def test_preserves_job_order(self) -> None:
        jobs = [_job(f"job{i}", Ok(bytes([i]))) for i in range(10)]
        report = fetch_all(jobs, console=MockConsole(), max_workers=4)
        assert [o.job.label for o in report.outcomes] == [f"job{i}" for i in range(10)]
        assert len(report.succeeded) == 10

    def test_runs_concurrently(self) -> None:
        barrier = threading.Barrier(3, timeout=5)

        def wait() -> Result[bytes, FetchFailure]:
            barrier.wait()
            return Ok(b"")

        jobs = [FetchJob(label=f"j{i}", kind="platform", run=wait) for i in range(3)]
        report = fetch_all(jobs, console=MockConsole(), max_workers=3)
        assert len(report.succeeded) == 3

    def test_waits_for_all_and_partitions(self) -> None:
        console = MockConsole()
        failure = FetchFailure("b.zip", "http_status", "Server Error", 500)
        report = fetch_all(
            [
                _job("a.zip", Ok(b"a")),
                _job("b.zip", Err(failure)),
                _job("c.zip", Ok(b"c")),
            ],
            console=console,
        )

        assert [o.job.label for o in report.succeeded] == ["a.zip", "c.zip"]
        assert report.failures() == (failure,)
        assert report.required_count == 3
        assert console.find("Failed to get archive b.zip")

    def test_optional_failures_are_skipped(self) -> None:
        console = MockConsole()
        failure = FetchFailure("corlibs", "not_found", "Not Found", 404)
        report = fetch_all(
            [_job("a.zip", Ok(b"a")), _job("corlibs", Err(failure), optional=True)],
            console=console,
        )

        assert report.failed == []
        assert len(report.skipped) == 1
        assert report.required_count == 1
        assert console.has_warning()
        assert not console.has_error()

    def test_logs_each_download(self) -> None:
        console = MockConsole()
        fetch_all([_job("a.zip", Ok(b"a"))], console=console)
        assert console.find("Downloading a.zip...")

    def test_raising_job_becomes_transport_failure(self) -> None:
        console = MockConsole()

        def explode() -> Result[bytes, FetchFailure]:
            raise RuntimeError("connection dropped mid-body")

        report = fetch_all(
            [
                _job("a.zip", Ok(b"a")),
                FetchJob(label="b.zip", kind="platform", run=explode),
                _job("c.zip", Ok(b"c")),
            ],
            console=console,
        )

        assert [o.job.label for o in report.succeeded] == ["a.zip", "c.zip"]
        assert report.failures() == (
            FetchFailure("b.zip", "transport", "connection dropped mid-body"),
        )
        assert console.find("Failed to get archive b.zip: transport: connection dropped mid-body")
