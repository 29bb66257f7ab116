"""Unit tests for guild_sync.sync.limiter."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from guild_sync.config.settings import LimiterConfig
from guild_sync.sync.limiter import RateLimiter


def _make_limiter(**overrides) -> RateLimiter:
    params = {
        "reservoir": 100,
        "refresh_interval": 3600.0,
        "max_concurrent": 5,
        "min_time": 0.0,
    }
    params.update(overrides)
    return RateLimiter(**params)


class TestRateLimiter:
    """Tests for RateLimiter.schedule."""

    @pytest.mark.asyncio
    async def test_returns_job_result(self):
        limiter = _make_limiter()

        async def job(x):
            return x * 2

        assert await limiter.schedule("job", job, 21) == 42
        assert limiter.remaining == 99
        assert limiter.running == 0

    @pytest.mark.asyncio
    async def test_job_exception_propagates_and_frees_slot(self):
        limiter = _make_limiter()

        async def job():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await limiter.schedule("job", job)

        assert limiter.running == 0

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        limiter = _make_limiter(max_concurrent=2)
        peak = 0

        async def job():
            nonlocal peak
            peak = max(peak, limiter.running)
            await asyncio.sleep(0.01)

        await asyncio.gather(*(limiter.schedule(f"job-{i}", job) for i in range(6)))

        assert peak == 2

    @pytest.mark.asyncio
    @patch("guild_sync.sync.limiter.asyncio.sleep", new_callable=AsyncMock)
    async def test_exhausted_reservoir_waits_for_refill(self, mock_sleep):
        limiter = _make_limiter(reservoir=2)

        async def job():
            return None

        for i in range(3):
            await limiter.schedule(f"job-{i}", job)

        mock_sleep.assert_awaited_once()
        assert 0 < mock_sleep.call_args[0][0] <= 3600.0
        assert limiter.remaining == 1

    @pytest.mark.asyncio
    @patch("guild_sync.sync.limiter.asyncio.sleep", new_callable=AsyncMock)
    async def test_min_time_spaces_starts(self, mock_sleep):
        limiter = _make_limiter(min_time=5.0)

        async def job():
            return None

        await limiter.schedule("first", job)
        await limiter.schedule("second", job)

        mock_sleep.assert_awaited_once()
        assert 4.0 < mock_sleep.call_args[0][0] <= 5.0

    def test_from_config_converts_milliseconds(self):
        limiter = RateLimiter.from_config(LimiterConfig(min_time_ms=250, max_concurrent=3))

        assert limiter.min_time == 0.25
        assert limiter.max_concurrent == 3
        assert limiter.reservoir == 36000
