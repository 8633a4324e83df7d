"""Rolling-window admission gate for upload starts.

The analysis service enforces a requests-per-window ceiling independently
of its connection ceiling.  A semaphore alone cannot express that when
individual requests are slow, so the dispatcher pairs its semaphore with
this limiter: at most ``cap`` acquisitions are admitted within any
``interval`` seconds.
"""

from __future__ import annotations

import asyncio
import collections
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class IntervalRateLimiter:
    """Sliding-window limiter admitting at most *cap* starts per *interval*.

    Start timestamps are kept in a deque; an acquisition waits until the
    oldest start in the window ages out.  Callers serialise acquisitions
    themselves (the dispatcher holds a FIFO admission lock), so waiters are
    admitted in submission order.

    Args:
        cap: Maximum admissions per window.
        interval: Window length in seconds.
        clock: Monotonic time source (injectable for tests).
        sleep: Async sleep function (injectable for tests).
    """

    def __init__(
        self,
        cap: int,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if cap <= 0:
            raise ValueError(f"cap must be positive, got {cap!r}")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._cap = cap
        self._interval = interval
        self._clock = clock
        self._sleep = sleep
        self._starts: collections.deque[float] = collections.deque()

    async def acquire(self) -> None:
        """Wait until a start is allowed, then record it."""
        while True:
            now = self._clock()
            self._evict(now)
            if len(self._starts) < self._cap:
                self._starts.append(now)
                return

            delay = self._starts[0] + self._interval - now
            logger.debug(
                "Rate window full (%d/%d), waiting %.2fs",
                len(self._starts),
                self._cap,
                delay,
            )
            await self._sleep(max(delay, 0.0))

    def _evict(self, now: float) -> None:
        horizon = now - self._interval
        while self._starts and self._starts[0] <= horizon:
            self._starts.popleft()

    @property
    def in_window(self) -> int:
        """Number of starts inside the current window."""
        self._evict(self._clock())
        return len(self._starts)
