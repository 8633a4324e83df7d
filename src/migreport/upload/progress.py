"""Rich progress display for the analysis job.

Renders :class:`~migreport.events.PipelineEvents` as a single progress bar
advancing once per settled file, with a status column showing the current
job phase or the most recent file event.
"""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from migreport.events import JobPhase, PipelineEvents


class UploadProgressTracker(PipelineEvents):
    """Rich progress tracker for one analysis job.

    Usage::

        with UploadProgressTracker(total_files=42) as tracker:
            orchestrator = JobOrchestrator(client, config, events=tracker)
            await orchestrator.run(records)
    """

    def __init__(self, total_files: int, console: Console | None = None) -> None:
        self._total_files = total_files
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            TextColumn("{task.fields[status]}", style="dim"),
            console=console,
        )
        self._task: TaskID | None = None
        self._stats: dict[str, int] = {
            "succeeded": 0,
            "timed_out": 0,
            "failed": 0,
            "retries": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._progress.start()
        self._task = self._progress.add_task(
            "[green]Analysis", total=self._total_files, status="starting..."
        )

    def stop(self) -> None:
        self._progress.stop()

    def __enter__(self) -> UploadProgressTracker:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def job_phase(self, phase: JobPhase, job_id: str | None) -> None:
        suffix = f" ({job_id})" if job_id else ""
        self._set_status(f"{phase.value}{suffix}")

    def file_retrying(self, relative_path: str, attempt: int, delay: float) -> None:
        self._stats["retries"] += 1
        self._set_status(
            f"[yellow]retry {attempt}[/yellow] {_truncate_path(relative_path)} in {delay:.1f}s"
        )

    def file_succeeded(self, relative_path: str) -> None:
        self._stats["succeeded"] += 1
        self._advance(_truncate_path(relative_path))

    def file_timed_out(self, relative_path: str) -> None:
        self._stats["timed_out"] += 1
        self._advance(f"[yellow]TIMEOUT[/yellow] {_truncate_path(relative_path)}")

    def file_failed(self, relative_path: str, error: str) -> None:
        self._stats["failed"] += 1
        self._advance(f"[red]FAIL[/red] {_truncate_path(relative_path)}")

    @property
    def stats(self) -> dict[str, int]:
        """Return a copy of the current statistics."""
        return dict(self._stats)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _advance(self, status: str) -> None:
        if self._task is not None:
            self._progress.advance(self._task, 1)
            self._progress.update(self._task, status=status)

    def _set_status(self, status: str) -> None:
        if self._task is not None:
            self._progress.update(self._task, status=status)


def _truncate_path(file_path: str, max_len: int = 40) -> str:
    """Truncate a file path for display, keeping the filename."""
    if len(file_path) <= max_len:
        return file_path
    name = file_path.rsplit("/", 1)[-1]
    if len(name) > max_len - 3:
        return "..." + name[-(max_len - 3) :]
    return "..." + file_path[-(max_len - 3) :]
