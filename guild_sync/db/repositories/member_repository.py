"""Guild member repository for bulk database operations.

Handles the membership table writes of a roster reconciliation:
- Bulk insert of new members (no-op on conflict)
- Row-by-row updates of matched members
- Soft deletion of departed members
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from guild_sync.db.models import GuildMember
from guild_sync.utils.time import utcnow


async def get_current_members(
    session: AsyncSession, guild_id: int
) -> list[GuildMember]:
    """Get current (not departed) members of a guild with their characters loaded."""
    stmt = (
        select(GuildMember)
        .options(joinedload(GuildMember.character))
        .where(GuildMember.guild_id == guild_id, GuildMember.left_at.is_(None))
        .order_by(GuildMember.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_current_membership(
    session: AsyncSession, guild_id: int, character_id: int
) -> GuildMember | None:
    """Get the current membership row of a character in a guild, if any."""
    result = await session.execute(
        select(GuildMember).where(
            GuildMember.guild_id == guild_id,
            GuildMember.character_id == character_id,
            GuildMember.left_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def bulk_create_members(
    session: AsyncSession, rows: list[dict[str, Any]]
) -> None:
    """Bulk insert membership rows (on conflict do nothing).

    A concurrent pass may already have inserted the same current
    (guild_id, character_id) pair; that row is left untouched.

    Args:
        session: Database session
        rows: Column values per new member
    """
    if not rows:
        return

    stmt = (
        pg_insert(GuildMember)
        .values(rows)
        .on_conflict_do_nothing(
            index_elements=["guild_id", "character_id"],
            index_where=GuildMember.left_at.is_(None),
        )
    )
    await session.execute(stmt)


async def bulk_update_members(
    session: AsyncSession, updates: list[dict[str, Any]]
) -> None:
    """Apply per-member updates one statement at a time.

    Args:
        session: Database session
        updates: Dicts with an "id" key plus the columns to set
    """
    for values in updates:
        values = dict(values)
        member_id = values.pop("id")
        if not values:
            continue
        stmt = (
            update(GuildMember)
            .where(GuildMember.id == member_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)


async def bulk_delete_members(session: AsyncSession, member_ids: list[int]) -> None:
    """Soft-delete members that left the guild.

    Sets left_at and clears is_available; the row stays for history and a
    later rejoin creates a fresh current row.
    """
    if not member_ids:
        return

    stmt = (
        update(GuildMember)
        .where(GuildMember.id.in_(member_ids), GuildMember.left_at.is_(None))
        .values(left_at=utcnow(), is_available=False)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def update_member(
    session: AsyncSession, member_id: int, values: dict[str, Any]
) -> None:
    """Apply a partial update to one membership row."""
    await bulk_update_members(session, [{"id": member_id, **values}])
