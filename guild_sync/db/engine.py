"""Database engine configuration.

Provides centralized database engine and session management.

Usage:
    from guild_sync.db.engine import get_engine, get_async_session, transaction

    # Get engine (cached per database_url)
    engine = get_engine()  # Uses settings.database_url
    engine = get_engine("postgresql+asyncpg://...")  # Custom URL

    # Get session factory
    AsyncSession = get_async_session()
    async with AsyncSession() as session:
        async with transaction(session):
            ...
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from guild_sync.config.settings import get_settings
from guild_sync.db.instrumentation import instrument_slow_checkouts


# Engine cache: database_url -> engine
_engine_cache: dict[str, AsyncEngine] = {}


def get_engine(
    database_url: str | None = None,
    slow_checkout_seconds: float | None = None,
) -> AsyncEngine:
    """Get or create an async database engine.

    Engines are cached by database_url to avoid creating multiple
    connection pools for the same database.

    Args:
        database_url: Database connection URL. If None, uses the URL
                     from application settings.
        slow_checkout_seconds: Warn when a pooled connection is held longer
                     than this. If None, uses the value from settings.

    Returns:
        AsyncEngine instance (cached).
    """
    if database_url is None:
        database_url = get_settings().database_url

    if database_url not in _engine_cache:
        if slow_checkout_seconds is None:
            slow_checkout_seconds = get_settings().sync.slow_checkout_seconds
        engine = create_async_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,  # Verify connections before use
        )
        instrument_slow_checkouts(engine, slow_checkout_seconds)
        _engine_cache[database_url] = engine

    return _engine_cache[database_url]


@lru_cache(maxsize=8)
def get_async_session(
    database_url: str | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Get a session factory for the given database URL.

    Session factories are cached to ensure consistent configuration.

    Args:
        database_url: Database connection URL. If None, uses settings.

    Returns:
        async_sessionmaker instance for creating sessions.
    """
    engine = get_engine(database_url)
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run the enclosed statements as one unit of work.

    Commits on normal exit and rolls back on any exception, which is
    re-raised. The session's connection is released either way.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise


async def dispose_engines() -> None:
    """Dispose all cached engines.

    Call this during application shutdown to properly close
    all database connections.
    """
    for engine in _engine_cache.values():
        await engine.dispose()
    _engine_cache.clear()
    get_async_session.cache_clear()
