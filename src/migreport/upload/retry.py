"""Retry policy for per-file analyse calls.

Built on tenacity's :class:`~tenacity.AsyncRetrying`:

* request timeouts and HTTP 408, 429 and 5xx responses are retried;
* any other failure is fatal and re-raised after the first attempt;
* a ``Retry-After`` header (delta seconds or HTTP date) is honoured
  exactly; otherwise the wait is exponential from ``min_delay_ms``,
  capped at ``max_delay_ms``, plus up to ``jitter_ms`` of random jitter
  so throttled tasks do not retry in lockstep.

Job initiate and finalise are single-shot and do not use this policy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from migreport.models import RetrySettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429})


def is_retryable(exc: BaseException) -> bool:
    """Classify a failed analyse call as retryable or fatal."""
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status in RETRYABLE_STATUS_CODES or 500 <= status < 600
    return False


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Convert a ``Retry-After`` header value to seconds.

    Returns:
        Seconds to wait (never negative), or ``None`` if the value is
        missing or unparseable.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        return max(float(value), 0.0)
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.debug("Unparseable Retry-After header: %r", value)
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max((when - now).total_seconds(), 0.0)


def retry_after_from(exc: BaseException | None) -> float | None:
    """Extract the server's retry hint from an HTTP error, if any."""
    if isinstance(exc, httpx.HTTPStatusError):
        return parse_retry_after(exc.response.headers.get("retry-after"))
    return None


class wait_retry_after(wait_base):
    """Wait strategy that prefers the server's ``Retry-After`` hint.

    Falls back to *fallback* when the last failure carries no hint.
    """

    def __init__(self, fallback: wait_base) -> None:
        self.fallback = fallback

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        hint = retry_after_from(exc)
        if hint is not None:
            return hint
        return self.fallback(retry_state)


class RetryPolicy:
    """Runs an async operation with bounded, backed-off retries.

    Usage::

        policy = RetryPolicy(RetrySettings(retries=4))
        await policy.call(client.analyse_file, job_id, record, contents,
                          label=record.relative_path)

    Args:
        settings: Attempt count and delay bounds.
        sleep: Async sleep function (injectable for tests).
    """

    def __init__(
        self,
        settings: RetrySettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self._sleep = sleep

    def _wait(self) -> wait_base:
        s = self.settings
        backoff = wait_exponential(
            multiplier=s.min_delay_ms / 1000.0,
            max=s.max_delay_ms / 1000.0,
        ) + wait_random(0, s.jitter_ms / 1000.0)
        return wait_retry_after(backoff)

    async def call(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        label: str = "",
        on_retry: Callable[[int, float], None] | None = None,
        **kwargs: Any,
    ) -> T:
        """Call *operation* until it succeeds, fails fatally, or runs out of attempts.

        Args:
            operation: Coroutine function to call.
            label: Name used in log messages (usually the file path).
            on_retry: Called with ``(attempt_number, delay_seconds)`` before
                each backoff sleep.

        Raises:
            The last exception raised by *operation*.
        """

        def _before_sleep(retry_state: RetryCallState) -> None:
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Attempt %d/%d for %s failed (%s); retrying in %.2fs",
                retry_state.attempt_number,
                self.settings.retries,
                label or getattr(operation, "__name__", "operation"),
                describe_error(exc),
                delay,
            )
            if on_retry is not None:
                on_retry(retry_state.attempt_number, delay)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.retries),
            wait=self._wait(),
            retry=retry_if_exception(is_retryable),
            before_sleep=_before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(operation, *args, **kwargs)


def describe_error(exc: BaseException | None) -> str:
    """Short human-readable description of an HTTP-layer failure."""
    if exc is None:
        return "unknown error"
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        detail = response.reason_phrase or ""
        try:
            body = response.text.strip()
        except (httpx.ResponseNotRead, UnicodeDecodeError):
            body = ""
        if body:
            detail = f"{detail}: {body[:200]}" if detail else body[:200]
        return f"HTTP {response.status_code} {detail}".strip()
    if isinstance(exc, httpx.TimeoutException):
        return f"request timed out ({type(exc).__name__})"
    return str(exc) or type(exc).__name__
