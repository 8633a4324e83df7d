"""Tests for the per-file retry policy and error classification."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from migreport.models import RetrySettings
from migreport.upload.retry import (
    RetryPolicy,
    describe_error,
    is_retryable,
    parse_retry_after,
)


def status_error(status, headers=None, body=b""):
    request = httpx.Request("POST", "https://svc.example.net/jobs/j/analyse-file")
    response = httpx.Response(status, headers=headers, content=body, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)

    return _sleep


class TestIsRetryable:
    """Transient versus fatal failures."""

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_transient_statuses(self, status):
        assert is_retryable(status_error(status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422])
    def test_fatal_statuses(self, status):
        assert not is_retryable(status_error(status))

    def test_timeouts_retryable(self):
        assert is_retryable(httpx.ReadTimeout("slow"))
        assert is_retryable(httpx.ConnectTimeout("slow"))

    def test_other_errors_fatal(self):
        """Connection refusals and programming errors are not retried."""
        assert not is_retryable(httpx.ConnectError("refused"))
        assert not is_retryable(ValueError("bad"))


class TestParseRetryAfter:
    """Retry-After header parsing."""

    def test_delta_seconds(self):
        assert parse_retry_after("5") == 5.0
        assert parse_retry_after(" 2.5 ") == 2.5

    def test_http_date(self):
        """An HTTP date is converted to seconds from now."""
        now = datetime(2015, 10, 21, 7, 27, 30, tzinfo=timezone.utc)
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT", now=now) == 30.0

    def test_past_date_is_zero(self):
        now = datetime(2015, 10, 21, 8, 0, 0, tzinfo=timezone.utc)
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT", now=now) == 0.0

    def test_negative_delta_clamped(self):
        assert parse_retry_after("-3") == 0.0

    @pytest.mark.parametrize("value", [None, "", "   ", "soon"])
    def test_missing_or_invalid(self, value):
        assert parse_retry_after(value) is None


class TestRetryPolicy:
    """Attempt counting and wait selection."""

    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self, sleeps, fake_sleep):
        """Two 429s with Retry-After: 3 are retried after exactly 3s each."""
        operation = AsyncMock(
            side_effect=[
                status_error(429, {"Retry-After": "3"}),
                status_error(429, {"Retry-After": "3"}),
                "ok",
            ]
        )
        on_retry = []
        policy = RetryPolicy(RetrySettings(retries=4), sleep=fake_sleep)

        result = await policy.call(
            operation, "job", label="a.ts", on_retry=lambda n, d: on_retry.append((n, d))
        )

        assert result == "ok"
        assert operation.await_count == 3
        assert sleeps == [3.0, 3.0]
        assert on_retry == [(1, 3.0), (2, 3.0)]

    @pytest.mark.asyncio
    async def test_fatal_status_not_retried(self, sleeps, fake_sleep):
        """A 404 is raised after one attempt."""
        operation = AsyncMock(side_effect=status_error(404))
        policy = RetryPolicy(RetrySettings(retries=4), sleep=fake_sleep)

        with pytest.raises(httpx.HTTPStatusError):
            await policy.call(operation)

        assert operation.await_count == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_attempts_capped(self, sleeps, fake_sleep):
        """retries is the total attempt count; the last error is re-raised."""
        operation = AsyncMock(side_effect=status_error(503))
        policy = RetryPolicy(RetrySettings(retries=3, jitter_ms=0), sleep=fake_sleep)

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await policy.call(operation)

        assert exc_info.value.response.status_code == 503
        assert operation.await_count == 3
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_exponential_backoff_capped(self, sleeps, fake_sleep):
        """Without a hint, waits double from min_delay up to max_delay."""
        operation = AsyncMock(side_effect=status_error(500))
        settings = RetrySettings(retries=5, min_delay_ms=1000, max_delay_ms=4000, jitter_ms=0)
        policy = RetryPolicy(settings, sleep=fake_sleep)

        with pytest.raises(httpx.HTTPStatusError):
            await policy.call(operation)

        assert sleeps == [1.0, 2.0, 4.0, 4.0]

    @pytest.mark.asyncio
    async def test_jitter_bounded(self, sleeps, fake_sleep):
        """Jitter adds at most jitter_ms to the base delay."""
        operation = AsyncMock(side_effect=[httpx.ReadTimeout("slow"), "ok"])
        settings = RetrySettings(retries=2, min_delay_ms=1000, max_delay_ms=30_000, jitter_ms=500)
        policy = RetryPolicy(settings, sleep=fake_sleep)

        assert await policy.call(operation) == "ok"
        assert len(sleeps) == 1
        assert 1.0 <= sleeps[0] <= 1.5

    @pytest.mark.asyncio
    async def test_timeout_then_success(self, sleeps, fake_sleep):
        """A request timeout is retried."""
        operation = AsyncMock(side_effect=[httpx.ReadTimeout("slow"), "ok"])
        policy = RetryPolicy(RetrySettings(retries=2, jitter_ms=0), sleep=fake_sleep)

        assert await policy.call(operation) == "ok"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_arguments_passed_through(self, fake_sleep):
        """Positional and keyword arguments reach the operation."""
        operation = AsyncMock(return_value=None)
        policy = RetryPolicy(RetrySettings(), sleep=fake_sleep)

        await policy.call(operation, "job-1", "record", contents="x", label="a.ts")

        operation.assert_awaited_once_with("job-1", "record", contents="x")


class TestDescribeError:
    """Human-readable failure messages."""

    def test_status_with_body(self):
        message = describe_error(status_error(400, body=b"fileContents is required"))
        assert message == "HTTP 400 Bad Request: fileContents is required"

    def test_status_without_body(self):
        assert describe_error(status_error(404)) == "HTTP 404 Not Found"

    def test_body_truncated(self):
        message = describe_error(status_error(500, body=b"x" * 500))
        assert len(message) < 250

    def test_timeout(self):
        assert "timed out" in describe_error(httpx.ReadTimeout("slow"))

    def test_plain_exception(self):
        assert describe_error(ValueError("bad payload")) == "bad payload"
