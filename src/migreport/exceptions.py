"""Exception hierarchy for the migration report pipeline.

Pre-flight errors (``PathNotFoundError``, ``ConfigError``) and
``OrchestrationError`` abort the run.  ``IgnoreFileNotFound`` is downgraded
to a warning by the ignore loader.  ``PerFileTimeout`` and
``PerFileFailure`` describe a single file's upload and are recorded in the
job summary rather than propagated.
"""

from __future__ import annotations


class MigReportError(Exception):
    """Base class for all migreport errors."""


class PathNotFoundError(MigReportError):
    """Raised when the project root does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Project path does not exist: {path}")
        self.path = path


class ConfigError(MigReportError):
    """Raised when required configuration is missing or invalid."""


class IgnoreFileNotFound(MigReportError):
    """Raised when an explicit ignore-file override cannot be read."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Ignore file not found or unreadable: {path}")
        self.path = path


class OrchestrationError(MigReportError):
    """Raised when the job initiate or finalise call fails."""

    def __init__(self, phase: str, message: str) -> None:
        super().__init__(f"Job {phase} failed: {message}")
        self.phase = phase


class PerFileError(MigReportError):
    """Base class for errors scoped to a single file upload."""

    def __init__(self, relative_path: str, message: str) -> None:
        super().__init__(message)
        self.relative_path = relative_path


class PerFileTimeout(PerFileError):
    """A file upload exceeded its request timeout on every attempt."""


class PerFileFailure(PerFileError):
    """A file upload failed with an HTTP error or other exception."""
