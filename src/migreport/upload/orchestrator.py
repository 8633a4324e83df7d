"""Job orchestrator for the remote migration analysis protocol.

Composes the upload primitives (service client, throttled dispatcher,
retry policy, job FSM) into the three-phase job:

1. **Initiate** -- single-shot; failure aborts the run.
2. **Upload** -- one dispatcher task per file, each wrapped in the retry
   policy.  Every task resolves to an :class:`AnalysisOutcome`; a file's
   permanent failure never cancels its siblings.
3. **Finalise** -- called exactly once, after the dispatcher is idle,
   however many files failed; failure aborts the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from functools import partial
from pathlib import Path

import httpx

from migreport.config import ServiceConfig
from migreport.events import JobPhase, PipelineEvents
from migreport.exceptions import OrchestrationError, PerFileFailure, PerFileTimeout
from migreport.models import (
    AnalysisOutcome,
    FileRecord,
    JobState,
    JobSummary,
    ReportLocations,
)
from migreport.upload.client import AnalysisServiceClient
from migreport.upload.dispatcher import ThrottledDispatcher
from migreport.upload.fsm import create_job_fsm
from migreport.upload.retry import RetryPolicy, describe_error

logger = logging.getLogger(__name__)


def read_source(path: str) -> str:
    """Read a project file as UTF-8, replacing undecodable bytes."""
    return Path(path).read_text(encoding="utf-8", errors="replace")


class JobOrchestrator:
    """Runs one analysis job over a list of discovered files.

    Usage::

        async with AnalysisServiceClient(config) as client:
            orchestrator = JobOrchestrator(client, config, events=progress)
            summary = await orchestrator.run(records)

    Args:
        client: Service client for the three endpoints.
        config: Service configuration (throttle and retry settings).
        dispatcher: Optional dispatcher; built from ``config.throttle``
            when omitted.
        retry_policy: Optional retry policy; built from ``config.retry``
            when omitted.
        events: Optional progress event sink.
    """

    def __init__(
        self,
        client: AnalysisServiceClient,
        config: ServiceConfig,
        dispatcher: ThrottledDispatcher | None = None,
        retry_policy: RetryPolicy | None = None,
        events: PipelineEvents | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._dispatcher = dispatcher or ThrottledDispatcher(config.throttle)
        self._retry = retry_policy or RetryPolicy(config.retry)
        self._events = events or PipelineEvents()
        self._fsm = create_job_fsm()
        self.state: JobState | None = None

    @property
    def phase(self) -> JobPhase:
        return JobPhase(self._fsm.current_state.value)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(self, files: Sequence[FileRecord]) -> JobSummary:
        """Execute initiate -> upload -> finalise for *files*.

        Returns:
            Summary with per-outcome tallies and report locations.

        Raises:
            OrchestrationError: If initiate or finalise fails.
        """
        job_id = await self._initiate()
        state = JobState(job_id=job_id, total_files=len(files))
        self.state = state

        self._transition(self._fsm.start_upload, JobPhase.UPLOADING)
        logger.info("Uploading %d files for job %s", len(files), job_id)

        results = await self._dispatcher.run(
            [partial(self._upload_file, job_id, record) for record in files]
        )
        for record, result in zip(files, results):
            if isinstance(result, BaseException):
                # Only reachable if a task escaped its own error handling.
                logger.error("Upload task for %s raised: %r", record.relative_path, result)
                state.record(AnalysisOutcome.failed(record.relative_path, repr(result)))

        if not state.is_settled:
            logger.error(
                "Job %s settled %d of %d files", job_id, state.settled_count, state.total_files
            )

        logger.info(
            "Upload phase done: %d succeeded, %d timed out, %d failed of %d",
            state.completed,
            len(state.timed_out),
            len(state.failed),
            state.total_files,
        )

        reports = await self._finalise(job_id)
        state.seal()
        self._transition(self._fsm.finish, JobPhase.COMPLETE)
        return JobSummary.from_state(state, reports)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _initiate(self) -> str:
        self._events.job_phase(JobPhase.UNINITIALIZED, None)
        try:
            job_id = await self._client.initiate_job()
        except Exception as exc:
            self._abort(None)
            raise OrchestrationError("initiate", describe_error(exc)) from exc
        self._transition(self._fsm.initiate, JobPhase.INITIATED, job_id)
        return job_id

    async def _finalise(self, job_id: str) -> ReportLocations:
        self._transition(self._fsm.start_finalize, JobPhase.FINALIZING, job_id)
        try:
            return await self._client.finalise_job(job_id)
        except Exception as exc:
            self._abort(job_id)
            raise OrchestrationError("finalise", describe_error(exc)) from exc

    def _transition(
        self, event: Callable[[], object], phase: JobPhase, job_id: str | None = None
    ) -> None:
        event()
        self._events.job_phase(phase, job_id or (self.state.job_id if self.state else None))

    def _abort(self, job_id: str | None) -> None:
        previous = self.phase
        self._fsm.fail()
        logger.error("Job %s failed while %s", job_id or "<none>", previous.value)
        self._events.job_phase(JobPhase.FAILED, job_id)

    # ------------------------------------------------------------------
    # Single file upload
    # ------------------------------------------------------------------

    async def _upload_file(self, job_id: str, record: FileRecord) -> AnalysisOutcome:
        """Upload one file and record its outcome.  Never raises ``Exception``."""
        path = record.relative_path
        self._events.upload_started(path)

        try:
            await self._analyse(job_id, record)
        except PerFileTimeout:
            outcome = AnalysisOutcome.timed_out(path)
            logger.warning("Timed out analysing %s", path)
            self._events.file_timed_out(path)
        except PerFileFailure as exc:
            outcome = AnalysisOutcome.failed(path, str(exc))
            logger.error("Failed to analyse %s: %s", path, exc)
            self._events.file_failed(path, str(exc))
        else:
            outcome = AnalysisOutcome.success(path)
            self._events.file_succeeded(path)

        assert self.state is not None
        self.state.record(outcome)
        return outcome

    async def _analyse(self, job_id: str, record: FileRecord) -> None:
        path = record.relative_path
        try:
            contents = await asyncio.to_thread(read_source, record.absolute_path)
        except OSError as exc:
            raise PerFileFailure(path, f"Could not read file: {exc}") from exc

        try:
            await self._retry.call(
                self._client.analyse_file,
                job_id,
                record,
                contents,
                label=path,
                on_retry=partial(self._events.file_retrying, path),
            )
        except httpx.TimeoutException as exc:
            raise PerFileTimeout(path, describe_error(exc)) from exc
        except Exception as exc:
            raise PerFileFailure(path, describe_error(exc)) from exc
