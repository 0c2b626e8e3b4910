"""Bundle assembly: versions, asset selection, downloads, merging, publishing."""

from .archive import Archive, ConflictPolicy, merge, read_archive
from .metadata import Metadata, load_metadata, save_metadata
from .pipeline import PipelineOutcome, PipelineState, PublishPipeline
from .version import Version, compound_version, is_newer, normalize

__all__ = [
    "Archive",
    "ConflictPolicy",
    "Metadata",
    "PipelineOutcome",
    "PipelineState",
    "PublishPipeline",
    "Version",
    "compound_version",
    "is_newer",
    "load_metadata",
    "merge",
    "normalize",
    "read_archive",
    "save_metadata",
]
