"""User repository for database operations."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.models import Character, User


async def find_user_by_character_name_realm(
    session: AsyncSession, name: str, realm: str
) -> User | None:
    """Find the user owning a character, matching name and realm case-insensitively."""
    stmt = (
        select(User)
        .join(Character, Character.user_id == User.id)
        .where(
            func.lower(Character.name) == name.lower(),
            func.lower(Character.realm) == realm.lower(),
        )
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
