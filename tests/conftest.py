"""Shared fixtures for guild-sync tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from guild_sync.config.settings import BattleNetConfig, LimiterConfig
from factories import roster_entry


@pytest.fixture
def sample_roster() -> dict:
    """Two-member roster: a guild master and an officer on realm r1."""
    return {
        "guild": {"id": 555, "name": "Test Guild"},
        "members": [
            roster_entry("Char1", "r1", 0),
            roster_entry("Char2", "r1", 1, class_name="Mage"),
        ],
    }


@pytest.fixture
def battlenet_config() -> BattleNetConfig:
    return BattleNetConfig(client_id="id", client_secret="secret")


@pytest.fixture
def limiter_config() -> LimiterConfig:
    # No spacing so tests never sleep between starts
    return LimiterConfig(min_time_ms=0)


@pytest.fixture
def mock_session() -> AsyncMock:
    """AsyncSession stand-in whose begin_nested() works as an async context."""
    session = AsyncMock()
    session.add = MagicMock()
    nested = MagicMock()
    nested.__aenter__ = AsyncMock(return_value=None)
    nested.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=nested)
    return session
