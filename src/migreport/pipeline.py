"""End-to-end analysis pipeline: pre-flight, discovery, job orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from migreport.config import ServiceConfig
from migreport.discovery.engine import DiscoveryResult, FileDiscoveryEngine
from migreport.discovery.ignore import IgnoreRuleSet
from migreport.events import PipelineEvents
from migreport.exceptions import PathNotFoundError
from migreport.models import FileRecord, JobSummary
from migreport.upload.client import AnalysisServiceClient
from migreport.upload.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of :func:`analyse_codebase`.

    ``summary`` is ``None`` when no job was run: in what-if mode, or when
    discovery selected no files.
    """

    discovery: DiscoveryResult
    ignore_source: str
    summary: JobSummary | None = None


def discover_project(
    project_root: str | Path,
    config: ServiceConfig,
    ignore_path: str | Path | None = None,
    events: PipelineEvents | None = None,
) -> tuple[DiscoveryResult, IgnoreRuleSet]:
    """Pre-flight check the project root, load ignore rules and discover files.

    Raises:
        PathNotFoundError: If *project_root* does not exist.
    """
    root = Path(project_root).expanduser()
    if not root.is_dir():
        raise PathNotFoundError(str(project_root))

    rules = IgnoreRuleSet.load(root, ignore_path)
    logger.debug("Using %r", rules)
    engine = FileDiscoveryEngine(root, rules, config.roles_of_interest, events)
    return engine.discover_with_stats(), rules


async def run_analysis_job(
    records: list[FileRecord],
    config: ServiceConfig,
    events: PipelineEvents | None = None,
    client: AnalysisServiceClient | None = None,
) -> JobSummary:
    """Run initiate -> upload -> finalise for *records*.

    A client created here is closed before returning.

    Raises:
        OrchestrationError: If initiate or finalise fails.
    """
    owns_client = client is None
    client = client or AnalysisServiceClient(config)
    try:
        orchestrator = JobOrchestrator(client, config, events=events)
        return await orchestrator.run(records)
    finally:
        if owns_client:
            await client.close()


async def analyse_codebase(
    project_root: str | Path,
    config: ServiceConfig,
    ignore_path: str | Path | None = None,
    events: PipelineEvents | None = None,
    client: AnalysisServiceClient | None = None,
) -> PipelineResult:
    """Discover a project's files and, unless in what-if mode, analyse them.

    Args:
        project_root: Root directory of the JSS project.
        config: Service configuration.
        ignore_path: Optional ignore file overriding the project's
            ``.gitignore``.
        events: Optional progress event sink for discovery and upload.
        client: Optional service client (tests inject one).
    """
    discovery, rules = discover_project(project_root, config, ignore_path, events)
    result = PipelineResult(discovery=discovery, ignore_source=rules.source)

    if config.what_if:
        logger.info(
            "What-if mode: %d files would be analysed; no requests sent",
            discovery.selected_count,
        )
        return result

    if not discovery.records:
        logger.warning("No files selected for analysis; not starting a job")
        return result

    result.summary = await run_analysis_job(discovery.records, config, events, client)
    return result
