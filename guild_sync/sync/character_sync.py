"""Per-character sync: enhanced profile fetch and persistence.

A character that no longer exists upstream is skipped, not failed; the
row is left exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guild_sync.db.models import Character, Guild
from guild_sync.db.repositories import (
    create_guild,
    find_guild_by_identity,
    find_guild_by_upstream_id,
    get_current_membership,
    update_character,
    update_guild,
    update_member,
)
from guild_sync.sync.client import BattleNetClient
from guild_sync.sync.logger import logger
from guild_sync.sync.toy_hash import compute_toy_hash
from guild_sync.utils.slug import create_slug
from guild_sync.utils.time import utcnow

SYNCED = "synced"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class CharacterSyncResult:
    character_id: int
    status: str
    reason: str | None = None


def character_class_name(enhanced: dict[str, Any], fallback: str) -> str:
    playable_class = enhanced.get("character_class")
    if isinstance(playable_class, dict) and playable_class.get("name"):
        return playable_class["name"]
    return fallback


async def ensure_guild_stub(
    session: AsyncSession, upstream_guild: dict[str, Any], region: str
) -> None:
    """Create a never-synced guild row for a guild only known upstream.

    If a guild with the same identity exists without an upstream id, the id
    is filled in instead. Failures are logged and otherwise ignored.
    """
    bnet_guild_id = upstream_guild.get("id")
    name = upstream_guild.get("name")
    realm = (upstream_guild.get("realm") or {}).get("name")
    if not (bnet_guild_id and name and realm):
        return

    try:
        async with session.begin_nested():
            existing = await find_guild_by_identity(session, name, realm, region)
            if existing is None:
                await create_guild(session, name, realm, region, bnet_guild_id)
                logger.info(f"Queued new guild {name}-{realm} ({region}) for sync")
            elif existing.bnet_guild_id is None:
                await update_guild(session, existing.id, {"bnet_guild_id": bnet_guild_id})
    except SQLAlchemyError as e:
        logger.error(f"Could not create guild stub for {name}-{realm}: {e}")


async def build_character_update(
    client: BattleNetClient,
    session: AsyncSession,
    character: Character,
    enhanced: dict[str, Any],
) -> tuple[dict[str, Any], Guild | None]:
    """Build the update payload for a character from its enhanced profile.

    Args:
        client: Battle.net gateway (used for the toy fingerprint)
        session: Database session (used for the guild lookup)
        character: Local character row
        enhanced: Enhanced character document

    Returns:
        Tuple of (payload for update_character(), linked local guild or None)
    """
    payload: dict[str, Any] = {
        "bnet_character_id": enhanced.get("id"),
        "level": enhanced.get("level") or character.level,
        "character_class": character_class_name(enhanced, character.character_class),
        "profile_json": enhanced,
        "equipment_json": enhanced.get("equipment"),
        "professions_json": (enhanced.get("professions") or {}).get("primaries", []),
        "is_available": True,
        "last_synced_at": utcnow(),
    }
    if enhanced.get("mythicKeystone") is not None:
        payload["mythic_profile_json"] = enhanced["mythicKeystone"]

    # Upstream calls finish before the session checks out a connection
    if character.user_id is None:
        toy_hash = await compute_toy_hash(
            client, character.region, create_slug(character.realm), character.name
        )
        if toy_hash is not None:
            payload["toy_hash"] = toy_hash

    local_guild = None
    upstream_guild = enhanced.get("guild")
    if upstream_guild and upstream_guild.get("id"):
        try:
            local_guild = await find_guild_by_upstream_id(session, upstream_guild["id"])
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Guild lookup failed for {character.name}: {e}")
        else:
            if local_guild is not None:
                payload["guild_id"] = local_guild.id
                payload["region"] = local_guild.region
            else:
                await ensure_guild_stub(session, upstream_guild, character.region)

    return payload, local_guild


async def _refresh_membership(
    session: AsyncSession, guild: Guild, character: Character, payload: dict[str, Any]
) -> None:
    try:
        member = await get_current_membership(session, guild.id, character.id)
        if member is None:
            return
        await update_member(
            session,
            member.id,
            {
                "character_name": character.name,
                "character_class": payload["character_class"],
            },
        )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Could not refresh membership of {character.name} in {guild.name}: {e}")


async def sync_character(
    client: BattleNetClient,
    session: AsyncSession,
    character: Character,
    regions: set[str] | None = None,
) -> CharacterSyncResult:
    """Sync one character.

    Args:
        client: Battle.net gateway
        session: Database session
        character: Character to sync
        regions: Known region keys (defaults to the client's configured regions)

    Returns:
        CharacterSyncResult with status synced, skipped or failed
    """
    known = regions if regions is not None else set(client.config.regions)
    region = (character.region or "").lower()
    if region not in known:
        logger.warning(
            f"Skipping character {character.name} ({character.id}): "
            f"unknown region {character.region!r}"
        )
        return CharacterSyncResult(character.id, SKIPPED, "unknown region")

    stage = "fetch"
    try:
        enhanced = await client.fetch_enhanced_character(
            region, create_slug(character.realm), character.name.lower()
        )
        if enhanced is None:
            logger.info(f"Character {character.name}-{character.realm} not found upstream")
            return CharacterSyncResult(character.id, SKIPPED, "not found")

        stage = "update"
        payload, local_guild = await build_character_update(
            client, session, character, enhanced
        )
        await update_character(session, character.id, payload)
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.item_failed("character", character.id, character.name, stage, e)
        return CharacterSyncResult(character.id, FAILED, f"{stage}: {e}")

    if local_guild is not None:
        await _refresh_membership(session, local_guild, character, payload)

    logger.debug(f"Synced character {character.name}-{character.realm}")
    return CharacterSyncResult(character.id, SYNCED)
