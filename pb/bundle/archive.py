"""In-memory zip assembly.

An Archive is an ordered `path -> bytes` mapping. Source zips are read into
Archives, merged under a conflict policy, extended with the local payload
tree and dataset bundles, then serialized once.

Serialization is reproducible: entries keep insertion order and every entry
gets the same timestamp and permissions, so identical inputs produce
byte-identical zips.
"""

from __future__ import annotations

import io
import zipfile
import zlib
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from pb.core.result import Err, Ok, Result
from pb.platform.files import atomic_write_bytes, walk_files

__all__ = [
    "Archive",
    "ArchiveError",
    "ConflictPolicy",
    "embed_filtered",
    "embed_payload",
    "merge",
    "read_archive",
    "write_archive",
]

# ZIP cannot store timestamps before 1980
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_MODE = 0o644
_UNIX_SYSTEM = 3


class ConflictPolicy(StrEnum):
    """What happens when two source archives carry the same path."""

    OVERWRITE = "overwrite"  # last writer wins
    SKIP = "skip"  # first writer wins


@dataclass(frozen=True, slots=True)
class ArchiveError:
    label: str
    message: str


class Archive:
    """Ordered mapping of forward-slash paths to file contents."""

    def __init__(self, entries: Iterable[tuple[str, bytes]] = ()) -> None:
        self._entries: dict[str, bytes] = {}
        for path, data in entries:
            self.put(path, data)

    def put(self, path: str, data: bytes, *, overwrite: bool = True) -> bool:
        """Store `data` at `path`; returns False if skipped due to a conflict."""
        if not overwrite and path in self._entries:
            return False
        self._entries[path] = data
        return True

    def get(self, path: str) -> bytes | None:
        return self._entries.get(path)

    def paths(self) -> list[str]:
        return list(self._entries)

    def items(self) -> Iterator[tuple[str, bytes]]:
        return iter(self._entries.items())

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def to_bytes(self) -> bytes:
        """Serialize to a reproducible zip."""
        buffer = io.BytesIO()
        with ZipFile(buffer, "w", compression=ZIP_DEFLATED) as zf:
            for path, data in self._entries.items():
                info = ZipInfo(path, date_time=_FIXED_DATE_TIME)
                info.compress_type = ZIP_DEFLATED
                info.create_system = _UNIX_SYSTEM
                info.external_attr = _FILE_MODE << 16
                zf.writestr(info, data)
        return buffer.getvalue()


def read_archive(data: bytes, label: str) -> Result[Archive, ArchiveError]:
    """Load zip bytes into an Archive, dropping directory entries."""
    try:
        with ZipFile(io.BytesIO(data)) as zf:
            entries = [(info.filename, zf.read(info)) for info in zf.infolist() if not info.is_dir()]
    except (zipfile.BadZipFile, zlib.error, NotImplementedError, EOFError, OSError) as e:
        return Err(ArchiveError(label=label, message=f"not a valid zip archive: {e}"))
    return Ok(Archive(entries))


def merge(archives: Sequence[Archive], policy: ConflictPolicy = ConflictPolicy.OVERWRITE) -> Archive:
    """Combine archives in list order under `policy`."""
    merged = Archive()
    overwrite = policy is ConflictPolicy.OVERWRITE
    for archive in archives:
        for path, data in archive.items():
            merged.put(path, data, overwrite=overwrite)
    return merged


def embed_payload(into: Archive, payload_root: Path) -> Archive:
    """Add every file below `payload_root`, overwriting existing entries.

    A missing payload directory adds nothing.
    """
    for file in walk_files(payload_root):
        into.put(file.relative_to(payload_root).as_posix(), file.read_bytes())
    return into


def embed_filtered(
    into: Archive,
    source: Archive,
    destination_prefix: str,
    allowlist: Iterable[str] | None = None,
) -> Archive:
    """Copy entries of `source` below `destination_prefix`.

    Only entries whose top-level name is in `allowlist` are copied; an
    empty or missing allowlist copies everything.
    """
    allowed = frozenset(allowlist) if allowlist else None
    prefix = destination_prefix.strip("/")
    for path, data in source.items():
        if allowed is not None and path.split("/", 1)[0] not in allowed:
            continue
        into.put(f"{prefix}/{path}" if prefix else path, data)
    return into


def write_archive(path: Path, archive: Archive) -> Path:
    """Serialize `archive` to `path` atomically."""
    atomic_write_bytes(path, archive.to_bytes())
    return path
