"""Data models and enums for the migration report pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class FileRole(str, Enum):
    """Structural role of a project file. Values are the wire strings."""

    COMPONENT = "Component"
    MIDDLEWARE = "Middleware"
    API_ROUTE = "API Route"
    PAGE = "Page"
    PLUGIN = "Plugin"
    CONFIG = "Config"
    PACKAGE = "Package"
    MODULE = "Module"


# Module is the classifier's fallback and is never sent for analysis.
DEFAULT_ROLES_OF_INTEREST: frozenset[FileRole] = frozenset(
    role for role in FileRole if role is not FileRole.MODULE
)


@dataclass(frozen=True, slots=True)
class FileRecord:
    """A discovered file selected for analysis."""

    absolute_path: str
    relative_path: str
    role: FileRole


@dataclass(frozen=True)
class ThrottleConfig:
    """Limits for the upload dispatcher.

    Attributes:
        max_concurrent: Maximum uploads in flight at once.
        interval_cap: Maximum upload starts within one ``interval_ms`` window.
        interval_ms: Length of the rolling rate window in milliseconds.
        timeout_ms: Per-request timeout for a single file upload.
    """

    max_concurrent: int = 2
    interval_cap: int = 5
    interval_ms: int = 20_000
    timeout_ms: int = 40_000

    def __post_init__(self) -> None:
        for name in ("max_concurrent", "interval_cap", "interval_ms", "timeout_ms"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


DEFAULT_THROTTLE = ThrottleConfig()


@dataclass(frozen=True)
class RetrySettings:
    """Backoff parameters for the per-file analyse call."""

    retries: int = 4
    min_delay_ms: int = 1_000
    max_delay_ms: int = 30_000
    jitter_ms: int = 500

    def __post_init__(self) -> None:
        if self.retries < 1:
            raise ValueError(f"retries must be at least 1, got {self.retries!r}")
        if self.min_delay_ms < 0 or self.max_delay_ms < self.min_delay_ms:
            raise ValueError(
                f"invalid delay bounds: min={self.min_delay_ms} max={self.max_delay_ms}"
            )
        if self.jitter_ms < 0:
            raise ValueError(f"jitter_ms must not be negative, got {self.jitter_ms!r}")


class OutcomeKind(str, Enum):
    """Result category of one file's upload attempt sequence."""

    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AnalysisOutcome:
    """Settled result for a single file upload."""

    relative_path: str
    kind: OutcomeKind
    message: str | None = None

    @classmethod
    def success(cls, relative_path: str) -> AnalysisOutcome:
        return cls(relative_path, OutcomeKind.SUCCESS)

    @classmethod
    def timed_out(cls, relative_path: str) -> AnalysisOutcome:
        return cls(relative_path, OutcomeKind.TIMED_OUT)

    @classmethod
    def failed(cls, relative_path: str, message: str) -> AnalysisOutcome:
        return cls(relative_path, OutcomeKind.FAILED, message)


@dataclass(frozen=True, slots=True)
class FailedFile:
    """A file whose upload failed, with the captured error message."""

    relative_path: str
    error_message: str


@dataclass
class JobState:
    """Mutable bookkeeping for one remote analysis job.

    Outcomes are recorded by relative path as upload tasks settle, in
    whatever order they complete. Once the job is finalised the state is
    sealed and further recording raises ``RuntimeError``.
    """

    job_id: str
    total_files: int
    start_time: float = field(default_factory=time.monotonic)
    completed: int = 0
    timed_out: list[str] = field(default_factory=list)
    failed: list[FailedFile] = field(default_factory=list)
    _sealed: bool = field(default=False, repr=False)

    def record(self, outcome: AnalysisOutcome) -> None:
        """Apply one settled outcome to the counters."""
        if self._sealed:
            raise RuntimeError(f"Job {self.job_id} is finalised; state is read-only")
        if outcome.kind is OutcomeKind.SUCCESS:
            self.completed += 1
        elif outcome.kind is OutcomeKind.TIMED_OUT:
            self.timed_out.append(outcome.relative_path)
        else:
            self.failed.append(
                FailedFile(outcome.relative_path, outcome.message or "Unknown error")
            )

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def settled_count(self) -> int:
        return self.completed + len(self.timed_out) + len(self.failed)

    @property
    def is_settled(self) -> bool:
        """True once every file has exactly one recorded outcome."""
        return self.settled_count == self.total_files

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


@dataclass(frozen=True)
class ReportLocations:
    """URLs returned by the finalise endpoint."""

    report_url: str
    pdf_url: str
    llm_prompt_url: str


@dataclass(frozen=True)
class JobSummary:
    """Read-only result of a completed analysis job."""

    job_id: str
    total_files: int
    completed: int
    timed_out: tuple[str, ...]
    failed: tuple[FailedFile, ...]
    reports: ReportLocations
    elapsed_seconds: float

    @classmethod
    def from_state(cls, state: JobState, reports: ReportLocations) -> JobSummary:
        return cls(
            job_id=state.job_id,
            total_files=state.total_files,
            completed=state.completed,
            timed_out=tuple(state.timed_out),
            failed=tuple(state.failed),
            reports=reports,
            elapsed_seconds=state.elapsed_seconds,
        )
