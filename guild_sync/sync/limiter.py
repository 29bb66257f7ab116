"""Async job scheduler enforcing the upstream API's rate limits.

Three constraints apply to every scheduled job:
- reservoir: at most `reservoir` job starts per refresh interval; the
  budget refills completely once the interval has elapsed
- max_concurrent: at most this many jobs in flight at once
- min_time: at least this many seconds between two job starts

Usage:
    limiter = RateLimiter(reservoir=36000, refresh_interval=3600.0,
                          max_concurrent=20, min_time=0.01)
    data = await limiter.schedule("guild-eu-argent-dawn-foo", fetch)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, TypeVar

from guild_sync.config.settings import LimiterConfig
from guild_sync.sync.logger import logger

T = TypeVar("T")


class RateLimiter:
    """Reservoir + concurrency + spacing limiter for coroutine jobs."""

    def __init__(
        self,
        reservoir: int,
        refresh_interval: float,
        max_concurrent: int,
        min_time: float,
    ) -> None:
        self.reservoir = reservoir
        self.refresh_interval = refresh_interval
        self.max_concurrent = max_concurrent
        self.min_time = min_time

        self.remaining = reservoir
        self.running = 0
        self._window_start: float | None = None
        self._last_start: float | None = None
        self._slots = asyncio.Semaphore(max_concurrent)
        self._start_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: LimiterConfig) -> "RateLimiter":
        return cls(
            reservoir=config.reservoir,
            refresh_interval=config.reservoir_refresh_interval,
            max_concurrent=config.max_concurrent,
            min_time=config.min_time_ms / 1000.0,
        )

    async def schedule(
        self,
        job_id: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        """Run `fn(*args)` once the limits allow it and return its result.

        Exceptions raised by the job propagate unchanged.
        """
        async with self._slots:
            await self._wait_for_start()
            self.running += 1
            logger.job(job_id, "executing", self.running)
            try:
                return await fn(*args)
            finally:
                self.running -= 1
                logger.job(job_id, "done", self.running)

    async def _wait_for_start(self) -> None:
        # Starts are serialized so spacing and reservoir accounting are exact
        async with self._start_lock:
            now = time.monotonic()
            if self._window_start is None:
                self._window_start = now
            elif now - self._window_start >= self.refresh_interval:
                self._refill(now)

            if self.remaining <= 0:
                wait = self._window_start + self.refresh_interval - now
                logger.warning(
                    f"Hourly request budget exhausted. Waiting {wait:.0f}s for refill..."
                )
                await asyncio.sleep(max(wait, 0.0))
                self._refill(time.monotonic())

            if self._last_start is not None and self.min_time > 0:
                gap = self._last_start + self.min_time - time.monotonic()
                if gap > 0:
                    await asyncio.sleep(gap)

            self._last_start = time.monotonic()
            self.remaining -= 1

    def _refill(self, now: float) -> None:
        self.remaining = self.reservoir
        self._window_start = now
