"""Bounded-concurrency, rate-windowed task dispatcher.

Two independent gates must both admit a task before it starts:

* an ``asyncio.Semaphore`` capping tasks in flight (``max_concurrent``);
* an :class:`IntervalRateLimiter` capping starts per rolling window
  (``interval_cap`` per ``interval_ms``).

Admission is serialised through one ``asyncio.Lock`` (FIFO in CPython), so
tasks start in submission order.  ``run()`` returns only once every task
has settled; the orchestrator relies on that before finalising a job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from migreport.models import ThrottleConfig
from migreport.upload.rate_limiter import IntervalRateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[T]]


class ThrottledDispatcher:
    """Runs one coroutine per task factory under the throttle limits.

    Usage::

        dispatcher = ThrottledDispatcher(ThrottleConfig(max_concurrent=2))
        outcomes = await dispatcher.run([lambda: upload(f) for f in files])

    Task factories should not raise; the orchestrator wraps every upload so
    it resolves to an outcome.  If one does raise, the exception is
    returned in that task's result slot rather than cancelling siblings.
    """

    def __init__(
        self,
        throttle: ThrottleConfig,
        rate_limiter: IntervalRateLimiter | None = None,
    ) -> None:
        self._throttle = throttle
        self._semaphore = asyncio.Semaphore(throttle.max_concurrent)
        self._admission = asyncio.Lock()
        self._rate_limiter = rate_limiter or IntervalRateLimiter(
            throttle.interval_cap, throttle.interval_seconds
        )
        self._pending = 0
        self._running = 0

    @property
    def pending(self) -> int:
        """Tasks submitted but not yet started."""
        return self._pending

    @property
    def running(self) -> int:
        """Tasks currently executing."""
        return self._running

    @property
    def is_idle(self) -> bool:
        return self._pending == 0 and self._running == 0

    async def run(self, factories: Sequence[TaskFactory[T]]) -> list[T | BaseException]:
        """Execute every factory and wait until all have settled.

        Returns:
            Results in submission order.
        """
        if not factories:
            return []

        logger.info(
            "Dispatching %d tasks (max_concurrent=%d, %d per %.1fs)",
            len(factories),
            self._throttle.max_concurrent,
            self._throttle.interval_cap,
            self._throttle.interval_seconds,
        )
        self._pending += len(factories)
        results = await asyncio.gather(
            *(self._run_one(index, factory) for index, factory in enumerate(factories)),
            return_exceptions=True,
        )
        logger.debug("Dispatcher idle after %d tasks", len(results))
        return list(results)

    async def _run_one(self, index: int, factory: TaskFactory[T]) -> T:
        async with self._admission:
            await self._semaphore.acquire()
            try:
                await self._rate_limiter.acquire()
            except BaseException:
                self._semaphore.release()
                self._pending -= 1
                raise
            self._pending -= 1
            self._running += 1
            logger.debug("Task %d started (%d running)", index, self._running)

        try:
            return await factory()
        finally:
            self._running -= 1
            self._semaphore.release()
