"""Filesystem helpers."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

__all__ = ["atomic_write_bytes", "atomic_write_text", "ensure_dir", "walk_files"]


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write bytes to path atomically using temp file + replace.

    A reader never observes a half-written archive: either the previous
    file or the complete new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically."""
    atomic_write_bytes(path, content.encode(encoding))


def ensure_dir(path: Path) -> Path:
    """Create `path` (and parents) if missing; no-op if present."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def walk_files(root: Path) -> Iterator[Path]:
    """Yield every file under `root`, depth-first, in sorted order.

    A missing root yields nothing.
    """
    if not root.is_dir():
        return
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            yield from walk_files(entry)
        elif entry.is_file():
            yield entry
