"""Content SDK migration report: project discovery and analysis job upload."""

__version__ = "0.1.0"

from migreport.models import (
    AnalysisOutcome,
    FileRecord,
    FileRole,
    JobState,
    JobSummary,
    OutcomeKind,
    ReportLocations,
    RetrySettings,
    ThrottleConfig,
)

__all__ = [
    "AnalysisOutcome",
    "FileRecord",
    "FileRole",
    "JobState",
    "JobSummary",
    "OutcomeKind",
    "ReportLocations",
    "RetrySettings",
    "ThrottleConfig",
    "__version__",
]
