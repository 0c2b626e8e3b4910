"""End-to-end bundling run.

    IDLE -> RESOLVING_VERSIONS -> DECIDING_SKIP -> SKIPPED
                                              \\-> FETCHING -> MERGING -> WRITING -> DONE_LOCAL
                                                                              \\-> COMMITTING -> RELEASING -> DONE_REMOTE

Any failing step moves to FAILED and returns the error; nothing is retried.
Every state entered is appended to `PublishPipeline.history`.

Nothing touches the filesystem, git or the release API before the skip
decision, so an up-to-date project costs only the release lookups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from pb.bundle.archive import (
    Archive,
    ConflictPolicy,
    embed_filtered,
    embed_payload,
    merge,
    read_archive,
    write_archive,
)
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
from pb.bundle.fetcher import FetchJob, FetchReport, asset_job, fetch_all, url_job
from pb.bundle.locator import newest_release, select_asset, select_source_asset
from pb.bundle.metadata import (
    Metadata,
    create_metadata,
    load_metadata,
    save_metadata,
    source_repo_label,
    updated_sources,
)
from pb.bundle.notes import render_release_notes
from pb.bundle.version import Version, compound_version, is_newer, normalize
from pb.core.config import DatasetSpec, Manifest, RunConfig, SourceSpec, write_manifest_version
from pb.core.result import Err, Ok, Result
from pb.forge.github import ForgeClient, NotFound
from pb.forge.models import Release, RepoRef, parse_repo
from pb.git.repository import GitError, GitStatus
from pb.output.console import ConsoleProtocol
from pb.platform.files import ensure_dir, walk_files

__all__ = [
    "COMMIT_MESSAGE",
    "DEFAULT_UPLOAD_CONTENT_TYPE",
    "GitProtocol",
    "PipelineOutcome",
    "PipelineState",
    "PublishPipeline",
    "Resolution",
]

DEFAULT_UPLOAD_CONTENT_TYPE = "application/x-zip-compressed"
COMMIT_MESSAGE = "Update metadata"


class PipelineState(Enum):
    IDLE = "idle"
    RESOLVING_VERSIONS = "resolving_versions"
    DECIDING_SKIP = "deciding_skip"
    SKIPPED = "skipped"
    FETCHING = "fetching"
    MERGING = "merging"
    WRITING = "writing"
    DONE_LOCAL = "done_local"
    COMMITTING = "committing"
    RELEASING = "releasing"
    DONE_REMOTE = "done_remote"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {
        PipelineState.SKIPPED,
        PipelineState.DONE_LOCAL,
        PipelineState.DONE_REMOTE,
        PipelineState.FAILED,
    }
)


class GitProtocol(Protocol):
    """The working-copy operations used to commit metadata."""

    def status(self) -> Result[GitStatus, GitError]: ...

    def set_config(self, key: str, value: str) -> Result[None, GitError]: ...

    def add(self, paths: list[str]) -> Result[None, GitError]: ...

    def commit(self, message: str, paths: list[str]) -> Result[str, GitError]: ...

    def push(self) -> Result[None, GitError]: ...


@dataclass(frozen=True, slots=True)
class ResolvedSource:
    spec: SourceSpec
    repo: RepoRef
    release: Release


@dataclass(frozen=True, slots=True)
class Resolution:
    """Everything known once upstream releases have been looked up.

    Attributes:
        dependency_repo: Upstream loader repository
        dependency: Its latest release
        dependency_version: Normalized dependency tag
        sources: Latest release of each payload source, in manifest order
        previous: Metadata of the last published build
        updated: Recorded source URLs that have newer releases now
        payload_version: Payload version to build, bumped if `bumped`
        bumped: The payload version was raised automatically
        version: Compound version of the bundle to build
        recorded: Compound version of the last published build
    """

    dependency_repo: RepoRef
    dependency: Release
    dependency_version: Version
    sources: tuple[ResolvedSource, ...]
    previous: Metadata
    updated: tuple[str, ...]
    payload_version: str
    bumped: bool
    version: Version
    recorded: Version | None

    @property
    def releases(self) -> list[Release]:
        return [self.dependency, *(s.release for s in self.sources)]

    @property
    def tag_name(self) -> str:
        return f"v{self.version}"


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    """How a run ended.

    Attributes:
        state: Final state (SKIPPED, DONE_LOCAL, DONE_REMOTE, or
            DECIDING_SKIP for a dry run that would build)
        resolution: Versions and releases looked up
        archive_path: Written bundle, when one was written
        release: Published release, in CI mode
    """

    state: PipelineState
    resolution: Resolution
    archive_path: Path | None = None
    release: Release | None = None

    @property
    def version(self) -> Version:
        return self.resolution.version


def _initial_history() -> list[PipelineState]:
    return [PipelineState.IDLE]


@dataclass
class PublishPipeline:
    """One bundling run over a manifest.

    Usage:
        pipeline = PublishPipeline(manifest, config, forge, repo, console)
        match pipeline.run():
            case Ok(outcome):
                ...
            case Err(error):
                print_pipeline_error(error, console)
    """

    manifest: Manifest
    config: RunConfig
    forge: ForgeClient
    git: GitProtocol
    console: ConsoleProtocol
    state: PipelineState = PipelineState.IDLE
    history: list[PipelineState] = field(default_factory=_initial_history)

    def run(self, *, dry_run: bool = False) -> Result[PipelineOutcome, PipelineError]:
        """Run until a terminal state, or until the skip decision if `dry_run`."""
        if self.config.ci and not self.config.token:
            return self._fail(CredentialMissing())

        self._enter(PipelineState.RESOLVING_VERSIONS)
        resolved = self._resolve()
        if isinstance(resolved, Err):
            return self._fail(resolved.error)
        resolution = resolved.value

        self._enter(PipelineState.DECIDING_SKIP)
        self.console.info(f"Latest release version: {resolution.recorded or 'none'}")
        self.console.info(f"New version: {resolution.version}")
        if not is_newer(resolution.version, resolution.recorded):
            self.console.success("No updates since last check.")
            self._enter(PipelineState.SKIPPED)
            return Ok(PipelineOutcome(state=self.state, resolution=resolution))
        if dry_run:
            return Ok(PipelineOutcome(state=self.state, resolution=resolution))

        self._enter(PipelineState.FETCHING)
        fetched = self._fetch(resolution)
        if isinstance(fetched, Err):
            return self._fail(fetched.error)

        self._enter(PipelineState.MERGING)
        merged = self._merge(fetched.value)
        if isinstance(merged, Err):
            return self._fail(merged.error)

        self._enter(PipelineState.WRITING)
        written = self._write(merged.value)
        if isinstance(written, Err):
            return self._fail(written.error)
        archive_path = written.value

        if not self.config.ci:
            self._enter(PipelineState.DONE_LOCAL)
            return Ok(PipelineOutcome(state=self.state, resolution=resolution, archive_path=archive_path))

        self._enter(PipelineState.COMMITTING)
        committed = self._commit(resolution)
        if isinstance(committed, Err):
            return self._fail(committed.error)

        self._enter(PipelineState.RELEASING)
        released = self._release(resolution, committed.value)
        if isinstance(released, Err):
            return self._fail(released.error)

        self._enter(PipelineState.DONE_REMOTE)
        return Ok(
            PipelineOutcome(
                state=self.state,
                resolution=resolution,
                archive_path=archive_path,
                release=released.value,
            )
        )

    # -- transitions --------------------------------------------------------

    def _enter(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)

    def _fail(self, error: PipelineError) -> Err[PipelineError]:
        self._enter(PipelineState.FAILED)
        return Err(error)

    # -- steps --------------------------------------------------------------

    def _resolve(self) -> Result[Resolution, PipelineError]:
        dependency_repo = _repo_or_error(self.manifest.dependency)
        if isinstance(dependency_repo, Err):
            return dependency_repo
        dep_repo = dependency_repo.value

        self.console.header(f"Resolving {dep_repo.slug}")
        latest = self.forge.latest_release(dep_repo)
        if isinstance(latest, Err):
            return Err(ReleaseLookupFailed(repo=dep_repo.slug, error=latest.error))
        dependency = latest.value

        dependency_version = normalize(dependency.tag_name)
        if isinstance(dependency_version, Err):
            return dependency_version
        self.console.info(f"{dep_repo.slug}: {dependency.tag_name} ({dependency_version.value})")

        sources: list[ResolvedSource] = []
        for spec in self.manifest.sources:
            repo = _repo_or_error(spec.repo)
            if isinstance(repo, Err):
                return repo
            release = self._source_release(repo.value)
            if isinstance(release, Err):
                return release
            self.console.info(f"{repo.value.slug}: {release.value.tag_name}")
            sources.append(ResolvedSource(spec=spec, repo=repo.value, release=release.value))

        previous = load_metadata(self.config.resolve(self.config.metadata_path))
        releases = [dependency, *(s.release for s in sources)]
        updated = updated_sources(previous, releases)

        payload_version = self.manifest.version
        bumped = False
        if updated:
            self.console.info(f"Updated sources: {', '.join(source_repo_label(s) for s in updated)}")
            payload_only = any(not _is_repo(s, dep_repo) for s in updated)
            if payload_only and self.manifest.version == previous.payload:
                current = normalize(self.manifest.version)
                if isinstance(current, Err):
                    return current
                payload_version = str(current.value.bump_patch())
                bumped = True
                self.console.info(f"Payload version bumped to {payload_version}")

        payload = normalize(payload_version)
        if isinstance(payload, Err):
            return payload
        version = compound_version(dependency_version.value, payload.value)
        if isinstance(version, Err):
            return version

        return Ok(
            Resolution(
                dependency_repo=dep_repo,
                dependency=dependency,
                dependency_version=dependency_version.value,
                sources=tuple(sources),
                previous=previous,
                updated=tuple(updated),
                payload_version=payload_version,
                bumped=bumped,
                version=version.value,
                recorded=previous.compound(),
            )
        )

    def _source_release(self, repo: RepoRef) -> Result[Release, PipelineError]:
        """Latest release, or the newest listed one when only prereleases exist."""
        latest = self.forge.latest_release(repo)
        match latest:
            case Ok(release):
                return Ok(release)
            case Err(NotFound() as not_found):
                listed = self.forge.list_releases(repo)
                if isinstance(listed, Err):
                    return Err(ReleaseLookupFailed(repo=repo.slug, error=listed.error))
                newest = newest_release(listed.value)
                if newest is None:
                    return Err(ReleaseLookupFailed(repo=repo.slug, error=not_found))
                return Ok(newest)
            case Err(error):
                return Err(ReleaseLookupFailed(repo=repo.slug, error=error))

    def _jobs(self, resolution: Resolution) -> list[FetchJob]:
        dep = resolution.dependency
        dep_repo = resolution.dependency_repo
        jobs: list[FetchJob] = []
        for platform in self.manifest.platforms:
            asset = select_asset(dep.assets, platform, self.manifest.prefer_variant)
            jobs.append(
                asset_job(
                    self.forge,
                    dep_repo,
                    asset,
                    label=f"{dep_repo.name} {platform}",
                    kind="platform",
                    key=platform,
                )
            )
        for source in resolution.sources:
            asset = select_source_asset(source.release.assets, source.repo, source.spec.assets)
            jobs.append(
                asset_job(
                    self.forge,
                    source.repo,
                    asset,
                    label=f"{source.repo.slug} {source.release.tag_name}",
                    kind="source",
                    key=source.repo.slug,
                )
            )
        for dataset in self.manifest.datasets:
            jobs.append(
                url_job(
                    self.forge,
                    dataset.url,
                    label=dataset.name,
                    optional=dataset.optional,
                    key=dataset.name,
                )
            )
        return jobs

    def _fetch(self, resolution: Resolution) -> Result[FetchReport, PipelineError]:
        self.console.header(f"Fetching archives for {resolution.tag_name}")
        report = fetch_all(
            self._jobs(resolution),
            console=self.console,
            max_workers=self.config.max_workers,
        )
        failed = report.failures()
        if not failed:
            return Ok(report)
        if len(failed) == report.required_count:
            return Err(TotalFetchFailure(failures=failed))
        return Err(PartialFetchFailure(failures=failed, total=report.required_count))

    def _merge(self, report: FetchReport) -> Result[Archive, PipelineError]:
        self.console.header("Merging archives")
        archives: list[Archive] = []
        dataset_archives: list[tuple[DatasetSpec, Archive]] = []
        datasets = {d.name: d for d in self.manifest.datasets}

        for outcome in report.succeeded:
            if not isinstance(outcome.result, Ok):
                continue
            parsed = read_archive(outcome.result.value, outcome.job.label)
            if isinstance(parsed, Err):
                return Err(ArchiveInvalid(label=parsed.error.label, reason=parsed.error.message))
            if outcome.job.kind == "dataset":
                dataset_archives.append((datasets[outcome.job.key], parsed.value))
            else:
                archives.append(parsed.value)

        merged = merge(archives, ConflictPolicy(self.manifest.conflict_policy))
        self.console.info("Embedding payload in archive...")
        payload_dir = self.config.resolve(self.config.payload_dir)
        try:
            embed_payload(merged, payload_dir)
        except OSError as e:
            return Err(ReadFailed(path=Path(e.filename or payload_dir), reason=e.strerror or str(e)))
        for spec, archive in dataset_archives:
            self.console.info(f"Embedding {spec.name}...")
            embed_filtered(merged, archive, spec.prefix, spec.include)
        return Ok(merged)

    def _write(self, archive: Archive) -> Result[Path, PipelineError]:
        dist = self.config.resolve(self.config.dist_dir)
        path = dist / f"{self.manifest.name}.zip"
        try:
            ensure_dir(dist)
            write_archive(path, archive)
        except OSError as e:
            return Err(WriteFailed(path=path, reason=str(e)))
        self.console.success(f"Wrote {path} ({len(archive)} files)")
        return Ok(path)

    def _commit(self, resolution: Resolution) -> Result[str, PipelineError]:
        """Persist metadata (and a bumped manifest), then commit and push."""
        self.console.header("Committing metadata")
        metadata_path = self.config.resolve(self.config.metadata_path)
        metadata = create_metadata(
            resolution.dependency,
            [s.release for s in resolution.sources],
            resolution.payload_version,
        )
        saved = save_metadata(metadata_path, metadata)
        if isinstance(saved, Err):
            return Err(WriteFailed(path=metadata_path, reason=saved.error))

        manifest_path = self.config.resolve(self.config.manifest_path)
        if resolution.bumped:
            rewritten = write_manifest_version(manifest_path, resolution.payload_version)
            if isinstance(rewritten, Err):
                return Err(WriteFailed(path=manifest_path, reason=rewritten.error.message))

        status = self.git.status()
        if isinstance(status, Err):
            return Err(_git_failed(status.error))
        changed = status.value.changed_paths
        tracked_metadata = _find_changed(changed, metadata_path, self.config.workspace)
        if tracked_metadata is None:
            return Err(MetadataUnchanged(path=metadata_path))

        paths = [tracked_metadata]
        tracked_manifest = _find_changed(changed, manifest_path, self.config.workspace)
        if resolution.bumped and tracked_manifest is not None:
            paths.append(tracked_manifest)

        for key, value in (
            ("user.name", self.config.git_name),
            ("user.email", self.config.git_email),
            ("core.ignorecase", "false"),
        ):
            configured = self.git.set_config(key, value)
            if isinstance(configured, Err):
                return Err(_git_failed(configured.error))

        added = self.git.add(paths)
        if isinstance(added, Err):
            return Err(_git_failed(added.error))
        commit = self.git.commit(COMMIT_MESSAGE, paths)
        if isinstance(commit, Err):
            return Err(_git_failed(commit.error))
        pushed = self.git.push()
        if isinstance(pushed, Err):
            return Err(_git_failed(pushed.error))

        self.console.success(f"Committed {commit.value[:7]}")
        return Ok(commit.value)

    def _release(self, resolution: Resolution, commit: str) -> Result[Release, PipelineError]:
        own_repo = _repo_or_error(self.manifest.repo)
        if isinstance(own_repo, Err):
            return own_repo

        self.console.header(f"Creating release {resolution.tag_name}")
        created = self.forge.create_release(
            own_repo.value,
            tag_name=resolution.tag_name,
            target_commitish=commit,
            name=resolution.tag_name,
            body=render_release_notes(resolution.updated, resolution.releases),
        )
        if isinstance(created, Err):
            return Err(PublishFailed(step="create release", error=created.error))
        release = created.value

        self.console.info("Uploading assets...")
        for file in walk_files(self.config.resolve(self.config.dist_dir)):
            content_type = next(
                (a.content_type for a in resolution.dependency.assets if a.name == file.name),
                DEFAULT_UPLOAD_CONTENT_TYPE,
            )
            try:
                data = file.read_bytes()
            except OSError as e:
                return Err(ReadFailed(path=file, reason=e.strerror or str(e)))
            uploaded = self.forge.upload_asset(
                release,
                filename=file.name,
                content_type=content_type,
                data=data,
            )
            if isinstance(uploaded, Err):
                return Err(PublishFailed(step=f"upload {file.name}", error=uploaded.error))
            self.console.success(f"Uploaded {file.name}")

        self.console.success(f"Released {release.html_url}")
        return Ok(release)


def _repo_or_error(text: str) -> Result[RepoRef, PipelineError]:
    repo = parse_repo(text)
    if repo is None:
        return Err(ReleaseLookupFailed(repo=text, error=NotFound(url=text, message="not a GitHub repository")))
    return Ok(repo)


def _is_repo(url: str, repo: RepoRef) -> bool:
    parsed = parse_repo(url)
    return parsed is not None and parsed.matches(repo)


def _find_changed(changed: list[str], path: Path, workspace: Path) -> str | None:
    # git reports paths relative to the repository root, which is the workspace
    try:
        relative = path.relative_to(workspace).as_posix()
    except ValueError:
        return None
    return relative if relative in changed else None


def _git_failed(error: GitError) -> GitFailed:
    return GitFailed(command=error.command, message=error.message, returncode=error.returncode)
