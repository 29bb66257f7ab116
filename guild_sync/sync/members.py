"""Membership table sync for one guild.

Loads local state, runs the pure roster diff and applies it inside a
single transaction so a partial membership write is never visible.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.engine import transaction
from guild_sync.db.repositories import (
    bulk_create_members,
    bulk_delete_members,
    bulk_update_members,
    create_character,
    find_characters_by_name_realm_pairs,
    get_current_members,
)
from guild_sync.sync.errors import DatabaseError
from guild_sync.sync.logger import logger
from guild_sync.sync.reconciler import (
    ExistingMember,
    MemberKey,
    RosterDiff,
    index_roster,
    members_for_created_characters,
    reconcile_roster,
)


@dataclass
class MembershipSyncResult:
    """Counts of the membership changes applied."""

    characters_created: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0


async def _load_existing_members(
    session: AsyncSession, guild_id: int
) -> dict[MemberKey, ExistingMember]:
    existing: dict[MemberKey, ExistingMember] = {}
    for member in await get_current_members(session, guild_id):
        realm = member.character.realm if member.character else None
        if not member.character_name or not realm:
            logger.warning(
                f"Skipping member {member.id} of guild {guild_id}: "
                "missing name or realm for matching"
            )
            continue
        existing[MemberKey.of(member.character_name, realm)] = ExistingMember(
            id=member.id, character_id=member.character_id, rank=member.rank
        )
    return existing


async def _create_characters(
    session: AsyncSession, diff: RosterDiff
) -> dict[MemberKey, int]:
    """Insert missing characters; one failing insert does not stop the others."""
    created: dict[MemberKey, int] = {}
    for character in diff.characters_to_create:
        try:
            async with session.begin_nested():
                row = await create_character(session, character.as_row())
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to create character {character.name}-{character.realm}: {e}"
            )
            continue
        created[character.key] = row.id
        logger.debug(f"Created character {character.name}-{character.realm} ({row.id})")
    return created


async def sync_guild_members_table(
    session: AsyncSession,
    guild_id: int,
    roster: dict[str, Any],
    region: str,
) -> MembershipSyncResult:
    """Reconcile guild_members for one guild against a fetched roster.

    Args:
        session: Database session (committed on success, rolled back on error)
        guild_id: Local guild id
        roster: Roster document with a "members" list
        region: Region for characters created from the roster

    Returns:
        MembershipSyncResult with the applied counts

    Raises:
        DatabaseError: If the transaction fails; nothing is applied.
    """
    roster_by_key = index_roster(roster)
    result = MembershipSyncResult()

    try:
        async with transaction(session):
            existing_by_key = await _load_existing_members(session, guild_id)
            characters = await find_characters_by_name_realm_pairs(session, roster_by_key)
            character_ids_by_key = {MemberKey.of(c.name, c.realm): c.id for c in characters}

            diff = reconcile_roster(
                roster_by_key, existing_by_key, character_ids_by_key, region
            )
            adding = len(diff.members_to_add) + len(diff.characters_to_create)
            logger.info(
                f"Guild {guild_id}: {adding} "
                f"to add, {len(diff.members_to_update)} to update, "
                f"{len(diff.member_ids_to_remove)} to remove"
            )

            created_ids = await _create_characters(session, diff)
            to_add = diff.members_to_add + members_for_created_characters(
                diff, created_ids, roster_by_key
            )

            await bulk_create_members(session, [m.as_row(guild_id) for m in to_add])
            await bulk_update_members(
                session, [u.as_row() for u in diff.members_to_update]
            )
            await bulk_delete_members(session, diff.member_ids_to_remove)

            result.characters_created = len(created_ids)
            result.added = len(to_add)
            result.updated = len(diff.members_to_update)
            result.removed = len(diff.member_ids_to_remove)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Membership sync failed for guild {guild_id}: {e}") from e

    return result
