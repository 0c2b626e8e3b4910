"""Core types: results, exit codes, configuration."""

from .config import ConfigError, Manifest, RunConfig, load_manifest
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "ConfigError",
    "Manifest",
    "RunConfig",
    "load_manifest",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
