"""Guild rank repository for database operations."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.models import GuildRank


async def get_guild_ranks(session: AsyncSession, guild_id: int) -> list[GuildRank]:
    """Get all rank rows for a guild, ordered by rank id."""
    result = await session.execute(
        select(GuildRank)
        .where(GuildRank.guild_id == guild_id)
        .order_by(GuildRank.rank_id)
    )
    return list(result.scalars().all())


async def upsert_guild_rank(
    session: AsyncSession, guild_id: int, rank_id: int, rank_name: str
) -> GuildRank:
    """Create a rank unless (guild_id, rank_id) already exists.

    An existing row keeps its name and count; the conflict branch is a
    no-op update so that RETURNING still yields the row.

    Returns:
        The stored rank row
    """
    stmt = (
        pg_insert(GuildRank)
        .values(guild_id=guild_id, rank_id=rank_id, rank_name=rank_name, member_count=0)
        .on_conflict_do_update(
            index_elements=["guild_id", "rank_id"],
            set_={"rank_name": GuildRank.__table__.c.rank_name},
        )
        .returning(GuildRank)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one()


async def set_rank_member_count(
    session: AsyncSession, guild_id: int, rank_id: int, member_count: int
) -> None:
    """Store the member count for one rank."""
    stmt = (
        update(GuildRank)
        .where(GuildRank.guild_id == guild_id, GuildRank.rank_id == rank_id)
        .values(member_count=member_count)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)
