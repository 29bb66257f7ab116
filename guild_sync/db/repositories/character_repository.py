"""Character repository for database operations."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable

from sqlalchemy import func, or_, select, tuple_, update
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.models import Character
from guild_sync.utils.time import utcnow


async def find_stale_characters(
    session: AsyncSession,
    stale_after_hours: int = 24,
    limit: int = 50,
    now: datetime | None = None,
) -> list[Character]:
    """Find available characters due for a sync pass.

    Args:
        session: Database session
        stale_after_hours: Age after which a character is considered stale
        limit: Maximum number of characters to return
        now: Reference time (defaults to the current UTC time)

    Returns:
        Characters ordered by last_synced_at, never-synced first
    """
    cutoff = (now or utcnow()) - timedelta(hours=stale_after_hours)
    stmt = (
        select(Character)
        .where(
            or_(
                Character.last_synced_at.is_(None),
                Character.last_synced_at < cutoff,
            ),
            Character.is_available.is_(True),
        )
        .order_by(Character.last_synced_at.asc().nulls_first())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_character(session: AsyncSession, character_id: int) -> Character | None:
    """Get a character by local id."""
    return await session.get(Character, character_id)


async def find_characters_by_name_realm_pairs(
    session: AsyncSession, pairs: Iterable[tuple[str, str]]
) -> list[Character]:
    """Look up characters for many (name, realm) pairs in one query.

    Matching is case-insensitive on both name and realm.

    Args:
        session: Database session
        pairs: (name, realm slug) pairs

    Returns:
        Matching characters (order unspecified)
    """
    keys = {(name.lower(), realm.lower()) for name, realm in pairs}
    if not keys:
        return []

    stmt = select(Character).where(
        tuple_(func.lower(Character.name), func.lower(Character.realm)).in_(
            list(keys)
        )
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_character(session: AsyncSession, data: dict[str, Any]) -> Character:
    """Insert a character and return it with its generated id.

    Args:
        session: Database session
        data: Column values (attribute names, e.g. character_class)
    """
    character = Character(**data)
    session.add(character)
    await session.flush()
    return character


async def update_character(
    session: AsyncSession, character_id: int, payload: dict[str, Any]
) -> None:
    """Apply a partial update to a character row."""
    if not payload:
        return
    stmt = (
        update(Character)
        .where(Character.id == character_id)
        .values(**payload)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)
