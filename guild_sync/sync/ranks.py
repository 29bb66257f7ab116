"""Rank table reconciliation for one guild.

Ranks are created on first sighting and never deleted. Each create and
each count update is committed on its own: a failing rank is logged and
the rest still go through, and the next pass heals whatever was missed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.repositories import (
    get_guild_ranks,
    set_rank_member_count,
    upsert_guild_rank,
)
from guild_sync.sync.logger import logger

GUILD_MASTER_RANK = 0


@dataclass
class RankSyncResult:
    created: int = 0
    counts_updated: int = 0
    failed: int = 0


def default_rank_name(rank_id: int) -> str:
    """Name given to a rank until someone renames it."""
    return "Guild Master" if rank_id == GUILD_MASTER_RANK else f"Rank {rank_id}"


def count_ranks(roster: dict[str, Any]) -> dict[int, int]:
    """Member count per rank present in the roster, ordered by rank.

    Entries without an integer rank are logged and not counted.
    """
    counts: Counter[int] = Counter()
    for member in roster.get("members", []):
        rank = member.get("rank") if isinstance(member, dict) else None
        if not isinstance(rank, int):
            logger.warning(f"Skipping roster entry without a rank: {member!r}")
            continue
        counts[rank] += 1
    return dict(sorted(counts.items()))


async def _apply(
    session: AsyncSession, description: str, op: Callable[[], Awaitable[Any]]
) -> tuple[bool, Any]:
    """Run one statement and commit it; on failure roll back and log."""
    try:
        value = await op()
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to {description}: {e}")
        return False, None
    return True, value


async def reconcile_ranks(
    session: AsyncSession, guild_id: int, roster: dict[str, Any]
) -> RankSyncResult:
    """Ensure every roster rank has a row and its member_count is current.

    Ranks that exist locally but are gone from the roster have their count
    set to 0. Counts are only written when they differ, so an unchanged
    roster issues no writes.

    Args:
        session: Database session
        guild_id: Local guild id
        roster: Roster document with a "members" list

    Returns:
        RankSyncResult with created / updated / failed counts
    """
    result = RankSyncResult()
    counts = count_ranks(roster)
    stored_ranks = await get_guild_ranks(session, guild_id)
    stored = {rank.rank_id: rank.member_count for rank in stored_ranks}

    for rank_id, count in counts.items():
        if rank_id not in stored:
            name = default_rank_name(rank_id)
            ok, row = await _apply(
                session,
                f"create rank {rank_id} for guild {guild_id}",
                lambda: upsert_guild_rank(session, guild_id, rank_id, name),
            )
            if not ok:
                result.failed += 1
                continue
            result.created += 1
            stored[rank_id] = row.member_count

        if stored[rank_id] != count:
            ok, _ = await _apply(
                session,
                f"update member count of rank {rank_id} for guild {guild_id}",
                lambda: set_rank_member_count(session, guild_id, rank_id, count),
            )
            if ok:
                result.counts_updated += 1
            else:
                result.failed += 1

    for rank_id, stored_count in stored.items():
        if rank_id in counts or stored_count == 0:
            continue
        logger.debug(f"Rank {rank_id} of guild {guild_id} no longer in roster")
        ok, _ = await _apply(
            session,
            f"reset member count of rank {rank_id} for guild {guild_id}",
            lambda: set_rank_member_count(session, guild_id, rank_id, 0),
        )
        if ok:
            result.counts_updated += 1
        else:
            result.failed += 1

    return result
