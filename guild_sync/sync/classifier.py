"""Main/alt classification of a guild's current members.

Members are grouped by owning user when known, otherwise by toy-collection
fingerprint; exactly one member of each group is labelled Main and the
others are Alts pointing at it. Members with neither owner nor fingerprint
are Mains of their own.

Usage:
    classified = await get_classified_guild_members(session, guild_id)
    for entry in classified:
        print(entry.member.character_name, entry.classification.value)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.models import GuildMember
from guild_sync.db.repositories import get_current_members


class Classification(str, Enum):
    MAIN = "Main"
    ALT = "Alt"


@dataclass(frozen=True)
class ClassifiedMember:
    """A member annotated with its group and classification."""

    member: GuildMember
    classification: Classification
    # user id, toy hash, or None for an ungrouped member
    group_key: Any
    # None for Mains
    main_character_id: int | None = None


def _sort_key(member: GuildMember) -> tuple[int, str, int]:
    name = member.character_name or member.character.name
    return (member.rank, name.lower(), member.character_id)


def _label_group(
    members: list[GuildMember], group_key: Any, main: GuildMember
) -> list[ClassifiedMember]:
    labelled = [ClassifiedMember(main, Classification.MAIN, group_key)]
    for member in members:
        if member is main:
            continue
        labelled.append(
            ClassifiedMember(
                member, Classification.ALT, group_key, main.character_id
            )
        )
    return labelled


def classify_members(members: Iterable[GuildMember]) -> list[ClassifiedMember]:
    """Classify members as Main or Alt.

    Owner groups prefer a member flagged is_main in this guild; when there
    is none (or for fingerprint groups) the first member by (rank, name) is Main.
    Several explicit mains in one group resolve to the first of them by the
    same ordering.

    The result does not depend on the input order: owner groups come first
    (by user id), then fingerprint groups (by hash), then ungrouped members,
    each group Main first and Alts in (rank, name) order.

    Args:
        members: Current guild members with their characters loaded

    Returns:
        One ClassifiedMember per input member
    """
    by_user: dict[int, list[GuildMember]] = {}
    by_hash: dict[str, list[GuildMember]] = {}
    ungrouped: list[GuildMember] = []

    for member in members:
        character = member.character
        if character.user_id is not None:
            by_user.setdefault(character.user_id, []).append(member)
        elif character.toy_hash:
            by_hash.setdefault(character.toy_hash, []).append(member)
        else:
            ungrouped.append(member)

    classified: list[ClassifiedMember] = []

    for user_id in sorted(by_user):
        group = sorted(by_user[user_id], key=_sort_key)
        explicit = [m for m in group if m.is_main]
        main = explicit[0] if explicit else group[0]
        classified.extend(_label_group(group, user_id, main))

    for toy_hash in sorted(by_hash):
        group = sorted(by_hash[toy_hash], key=_sort_key)
        classified.extend(_label_group(group, toy_hash, group[0]))

    for member in sorted(ungrouped, key=_sort_key):
        classified.append(ClassifiedMember(member, Classification.MAIN, None))

    return classified


async def get_classified_guild_members(
    session: AsyncSession, guild_id: int
) -> list[ClassifiedMember]:
    """Load a guild's current members and classify them."""
    return classify_members(await get_current_members(session, guild_id))
