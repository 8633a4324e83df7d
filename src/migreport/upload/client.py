"""HTTP client for the remote migration analysis service.

Three endpoints, all relative to the configured service host:

* ``GET  jobs-initiate``                -> ``{"jobId": ...}``
* ``POST jobs/{jobId}/analyse-file``    body ``{filePath, fileType, fileContents}``
* ``POST jobs/{jobId}/finalise``        -> ``{reportUrl, pdfUrl, llmPromptUrl}``

Every request carries the subscription-key header.  Non-2xx responses
raise :class:`httpx.HTTPStatusError` and timeouts raise
:class:`httpx.TimeoutException`; callers decide what is retryable.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from migreport.config import ServiceConfig, build_service_url
from migreport.models import FileRecord, ReportLocations

logger = logging.getLogger(__name__)


class AnalysisServiceClient:
    """Async wrapper around the analysis service endpoints.

    Usage::

        async with AnalysisServiceClient(config) as client:
            job_id = await client.initiate_job()
            await client.analyse_file(job_id, record, contents)
            reports = await client.finalise_job(job_id)

    Args:
        config: Service configuration (host, key, timeouts).
        http_client: Optional pre-built ``httpx.AsyncClient`` (tests pass
            one with a ``MockTransport``).  A client created here is closed
            by :meth:`close`; a supplied one is left to its owner.
    """

    def __init__(
        self,
        config: ServiceConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = http_client or httpx.AsyncClient(
            timeout=config.throttle.timeout_seconds
        )
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def initiate_job(self) -> str:
        """Start a new analysis job and return its ID."""
        response = await self._request("GET", "jobs-initiate")
        data = _json_object(response)
        job_id = data.get("jobId")
        if not job_id:
            raise ValueError(f"jobs-initiate response has no jobId: {data!r}")
        logger.info("Initiated job %s", job_id)
        return str(job_id)

    async def analyse_file(self, job_id: str, record: FileRecord, contents: str) -> None:
        """Submit one file's contents for analysis."""
        payload = {
            "filePath": record.relative_path,
            "fileType": record.role.value,
            "fileContents": contents,
        }
        await self._request(
            "POST",
            f"jobs/{job_id}/analyse-file",
            json=payload,
            timeout=self._config.throttle.timeout_seconds,
        )
        logger.debug("Analysed %s (%s)", record.relative_path, record.role.value)

    async def finalise_job(self, job_id: str) -> ReportLocations:
        """Finalise the job and return the generated report locations."""
        response = await self._request(
            "POST",
            f"jobs/{job_id}/finalise",
            timeout=self._config.finalize_timeout_seconds,
        )
        data = _json_object(response)
        missing = [k for k in ("reportUrl", "pdfUrl", "llmPromptUrl") if not data.get(k)]
        if missing:
            raise ValueError(f"finalise response missing {', '.join(missing)}: {data!r}")
        logger.info("Finalised job %s", job_id)
        return ReportLocations(
            report_url=data["reportUrl"],
            pdf_url=data["pdfUrl"],
            llm_prompt_url=data["llmPromptUrl"],
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AnalysisServiceClient:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        route: str,
        *,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        url = build_service_url(self._config, route)
        kwargs: dict[str, Any] = {"headers": self._config.auth_headers()}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout

        response = await self._client.request(method, url, **kwargs)
        if response.is_error:
            logger.debug(
                "%s %s -> HTTP %d", method, route, response.status_code
            )
        response.raise_for_status()
        return response


def _json_object(response: httpx.Response) -> dict[str, Any]:
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
