"""Guild repository for database operations."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.models import Guild
from guild_sync.utils.time import utcnow


async def find_stale_guilds(
    session: AsyncSession,
    stale_after_hours: int = 24,
    limit: int = 50,
    now: datetime | None = None,
) -> list[Guild]:
    """Find guilds due for a sync pass.

    A guild is stale when it was never synced or its last_updated is older
    than the threshold. Excluded guilds are never returned.

    Args:
        session: Database session
        stale_after_hours: Age after which a guild is considered stale
        limit: Maximum number of guilds to return
        now: Reference time (defaults to the current UTC time)

    Returns:
        Guilds ordered oldest first, never-synced guilds first of all
    """
    cutoff = (now or utcnow()) - timedelta(hours=stale_after_hours)
    stmt = (
        select(Guild)
        .where(
            or_(Guild.last_updated.is_(None), Guild.last_updated < cutoff),
            Guild.exclude_from_sync.is_(False),
        )
        .order_by(Guild.last_updated.asc().nulls_first())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_guild(session: AsyncSession, guild_id: int) -> Guild | None:
    """Get a guild by local id."""
    return await session.get(Guild, guild_id)


async def find_guild_by_upstream_id(
    session: AsyncSession, bnet_guild_id: int
) -> Guild | None:
    """Find the local guild for an upstream (Battle.net) guild id."""
    result = await session.execute(
        select(Guild).where(Guild.bnet_guild_id == bnet_guild_id)
    )
    return result.scalar_one_or_none()


async def find_guild_by_identity(
    session: AsyncSession, name: str, realm: str, region: str
) -> Guild | None:
    """Find a guild by its (name, realm, region) natural key."""
    result = await session.execute(
        select(Guild).where(
            Guild.name == name,
            Guild.realm == realm,
            Guild.region == region,
        )
    )
    return result.scalar_one_or_none()


async def create_guild(
    session: AsyncSession,
    name: str,
    realm: str,
    region: str,
    bnet_guild_id: int | None = None,
) -> Guild:
    """Insert a guild that has not been synced yet.

    Both sync timestamps stay NULL so the next pass selects it first.
    """
    guild = Guild(
        name=name,
        realm=realm,
        region=region,
        bnet_guild_id=bnet_guild_id,
        last_updated=None,
        last_roster_sync=None,
        exclude_from_sync=False,
    )
    session.add(guild)
    await session.flush()
    return guild


async def update_guild(
    session: AsyncSession, guild_id: int, payload: dict[str, Any]
) -> None:
    """Apply a partial update to a guild row.

    Args:
        session: Database session
        guild_id: Local guild id
        payload: Column name -> new value
    """
    if not payload:
        return
    stmt = (
        update(Guild)
        .where(Guild.id == guild_id)
        .values(**payload)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)
