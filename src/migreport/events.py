"""Discrete progress events emitted by the pipeline.

The core never writes to the console.  Discovery and the job orchestrator
call methods on a :class:`PipelineEvents` instance instead; the CLI passes
a Rich renderer (see :mod:`migreport.upload.progress`), tests pass a mock,
and library callers can subclass this no-op base.
"""

from __future__ import annotations

from enum import Enum

from migreport.models import FileRole


class JobPhase(str, Enum):
    """Lifecycle phases of a remote analysis job."""

    UNINITIALIZED = "uninitialized"
    INITIATED = "initiated"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


class PipelineEvents:
    """No-op event sink.  Override the methods you care about."""

    # Discovery

    def file_discovered(self, relative_path: str) -> None:
        pass

    def file_classified(self, relative_path: str, role: FileRole) -> None:
        pass

    # Job lifecycle

    def job_phase(self, phase: JobPhase, job_id: str | None) -> None:
        pass

    # Per-file upload

    def upload_started(self, relative_path: str) -> None:
        pass

    def file_retrying(self, relative_path: str, attempt: int, delay: float) -> None:
        pass

    def file_succeeded(self, relative_path: str) -> None:
        pass

    def file_timed_out(self, relative_path: str) -> None:
        pass

    def file_failed(self, relative_path: str, error: str) -> None:
        pass
