"""Error definitions for blockbuild.

Every pipeline-fatal condition is raised as a BlockbuildError subclass
carrying a stable code. Only the CLI catches these; it logs the message
and exits with status 1.
"""

# Error code constants
CONFIG_ERROR = "config_error"
PROCESS_ERROR = "process_error"
VCS_ERROR = "vcs_error"
FETCH_ERROR = "fetch_error"
EXTRACTION_ERROR = "extraction_error"
BUILD_ERROR = "build_failed"
PUBLISH_ERROR = "publish_failed"
SIGNING_ERROR = "signing_failed"
ARCHIVE_ERROR = "archive_failed"


class BlockbuildError(Exception):
    """Base error for fatal pipeline conditions."""

    default_code = "blockbuild_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        """Initialize BlockbuildError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ConfigError(BlockbuildError):
    """Raised when the build configuration is missing or invalid."""

    default_code = CONFIG_ERROR


class ProcessError(BlockbuildError):
    """Raised when an external process cannot be run or times out."""

    default_code = PROCESS_ERROR


class VcsError(BlockbuildError):
    """Raised when a version-control query fails."""

    default_code = VCS_ERROR


class FetchError(BlockbuildError):
    """Raised on transport errors while fetching prior-run state."""

    default_code = FETCH_ERROR


class ExtractionError(BlockbuildError):
    """Raised when the previous bundle cannot be extracted."""

    default_code = EXTRACTION_ERROR


class BuildError(BlockbuildError):
    """Raised when a module build fails."""

    default_code = BUILD_ERROR


class PublishError(BlockbuildError):
    """Raised when deploying a module to the Maven repository fails."""

    default_code = PUBLISH_ERROR


class SigningError(BlockbuildError):
    """Raised when any signing step fails."""

    default_code = SIGNING_ERROR


class ArchiveError(BlockbuildError):
    """Raised when the staging area cannot be packaged."""

    default_code = ARCHIVE_ERROR


__all__ = [
    "ARCHIVE_ERROR",
    "BUILD_ERROR",
    "CONFIG_ERROR",
    "EXTRACTION_ERROR",
    "FETCH_ERROR",
    "PROCESS_ERROR",
    "PUBLISH_ERROR",
    "SIGNING_ERROR",
    "VCS_ERROR",
    "ArchiveError",
    "BlockbuildError",
    "BuildError",
    "ConfigError",
    "ExtractionError",
    "FetchError",
    "ProcessError",
    "PublishError",
    "SigningError",
    "VcsError",
]
