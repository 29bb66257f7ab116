"""Per-guild sync: fetch, core field update, membership and rank reconciliation.

Steps run strictly in order and all read the single roster fetched in the
first step. Any failure is caught here, logged with the stage it happened
in, and reported in the result; it never propagates to the run loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.models import Guild
from guild_sync.db.repositories import find_user_by_character_name_realm, update_guild
from guild_sync.sync.client import BattleNetClient
from guild_sync.sync.errors import DatabaseError, UpstreamError
from guild_sync.sync.logger import logger
from guild_sync.sync.members import MembershipSyncResult, sync_guild_members_table
from guild_sync.sync.ranks import GUILD_MASTER_RANK, RankSyncResult, reconcile_ranks
from guild_sync.sync.reconciler import entry_name, entry_realm
from guild_sync.utils.slug import create_slug
from guild_sync.utils.time import utcnow


@dataclass
class GuildSyncResult:
    """Outcome of syncing one guild."""

    guild_id: int
    synced: bool = False
    excluded: bool = False
    failed_stage: str | None = None
    members: MembershipSyncResult | None = None
    ranks: RankSyncResult | None = None


def find_guild_master(roster: dict[str, Any]) -> dict[str, Any] | None:
    """Return the first roster entry holding the leader rank, if any."""
    for member in roster.get("members", []):
        if member.get("rank") == GUILD_MASTER_RANK:
            return member
    return None


async def resolve_leader_id(
    session: AsyncSession, guild: Guild, roster: dict[str, Any]
) -> int | None:
    """Find the local user owning the rank-0 character.

    A failed lookup is logged and treated as "no leader"; a previously
    stored leader is not trusted.
    """
    master = find_guild_master(roster)
    if master is None:
        logger.info(f"No rank 0 member in roster of {guild.name}")
        return None

    name, realm = entry_name(master), entry_realm(master)
    try:
        user = await find_user_by_character_name_realm(session, name, realm)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Leader lookup failed for {name}-{realm} ({guild.name}): {e}")
        return None

    if user is None:
        logger.info(f"No local user owns guild master {name}-{realm}")
        return None
    return user.id


async def build_guild_update(
    session: AsyncSession,
    guild: Guild,
    metadata: dict[str, Any],
    roster: dict[str, Any],
) -> dict[str, Any]:
    """Build the core field update for a guild from fresh upstream data.

    Args:
        session: Database session (used for the leader lookup)
        guild: Local guild row
        metadata: Guild metadata document
        roster: Guild roster document

    Returns:
        Column name -> value payload for update_guild()
    """
    now = utcnow()
    return {
        "guild_data_json": metadata,
        "roster_json": roster,
        "bnet_guild_id": metadata.get("id"),
        "member_count": len(roster.get("members", [])),
        "last_updated": now,
        "last_roster_sync": now,
        "leader_id": await resolve_leader_id(session, guild, roster),
    }


async def _exclude(session: AsyncSession, guild: Guild, what: str) -> None:
    await update_guild(session, guild.id, {"exclude_from_sync": True})
    await session.commit()
    logger.warning(f"Guild {guild.name} ({guild.id}): {what} not found; excluded from sync")


async def sync_guild(
    client: BattleNetClient, session: AsyncSession, guild: Guild
) -> GuildSyncResult:
    """Sync one guild end to end.

    Args:
        client: Battle.net gateway
        session: Database session
        guild: Guild to sync

    Returns:
        GuildSyncResult; synced is False when any stage failed
    """
    result = GuildSyncResult(guild_id=guild.id)
    realm_slug = create_slug(guild.realm)
    name_slug = create_slug(guild.name)
    stage = "fetch"

    logger.guild_start(guild.id, guild.name, guild.realm, guild.region)

    try:
        try:
            metadata = await client.fetch_guild_metadata(guild.region, realm_slug, name_slug)
        except UpstreamError as e:
            if e.status_code == 404:
                await _exclude(session, guild, "guild")
                result.excluded = True
                return result
            raise

        try:
            roster = await client.fetch_guild_roster(guild.region, realm_slug, name_slug)
        except UpstreamError as e:
            if e.status_code == 404:
                await _exclude(session, guild, "roster")
                result.excluded = True
                return result
            raise

        stage = "core"
        payload = await build_guild_update(session, guild, metadata, roster)
        try:
            await update_guild(session, guild.id, payload)
            await session.commit()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Guild update failed: {e}") from e

        stage = "members"
        result.members = await sync_guild_members_table(
            session, guild.id, roster, guild.region
        )

        stage = "ranks"
        result.ranks = await reconcile_ranks(session, guild.id, roster)
    except Exception as e:
        await session.rollback()
        result.failed_stage = stage
        logger.item_failed("guild", guild.id, guild.name, stage, e)
        return result

    result.synced = True
    with logger.block(f"{guild.name} ({realm_slug})") as block:
        block.field("members", payload["member_count"])
        block.field("leader", payload["leader_id"] or "unknown")
        block.result(
            f"{result.members.added} added, {result.members.updated} refreshed, "
            f"{result.members.removed} removed, {result.ranks.created} new ranks"
        )
    return result
