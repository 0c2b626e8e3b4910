"""Exit codes for the bundler CLI.

The values are process exit codes and should remain stable:
- 0: Success, including "nothing changed, skipped"
- 1: User error (bad manifest, invalid arguments)
- 2: Environment error (missing credential, git not usable)
- 3: Build error (archive could not be assembled or written)
- 4: Network error (release lookup or download failed)
- 5: I/O error (metadata or output could not be written)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
