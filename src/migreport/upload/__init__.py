"""Throttled upload pipeline for the migration analysis service.

Public API
----------
.. autoclass:: AnalysisServiceClient
.. autoclass:: IntervalRateLimiter
.. autoclass:: JobLifecycleSM
.. autoclass:: JobOrchestrator
.. autoclass:: RetryPolicy
.. autoclass:: ThrottledDispatcher
.. autoclass:: UploadProgressTracker
"""

from migreport.upload.client import AnalysisServiceClient
from migreport.upload.dispatcher import ThrottledDispatcher
from migreport.upload.fsm import JobLifecycleSM, create_job_fsm
from migreport.upload.orchestrator import JobOrchestrator
from migreport.upload.progress import UploadProgressTracker
from migreport.upload.rate_limiter import IntervalRateLimiter
from migreport.upload.retry import RetryPolicy, is_retryable, parse_retry_after

__all__ = [
    "AnalysisServiceClient",
    "IntervalRateLimiter",
    "JobLifecycleSM",
    "JobOrchestrator",
    "RetryPolicy",
    "ThrottledDispatcher",
    "UploadProgressTracker",
    "create_job_fsm",
    "is_retryable",
    "parse_retry_after",
]
