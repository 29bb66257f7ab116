"""Main orchestration for the guild sync pipeline.

Selects stale guilds and characters, syncs each one in isolation and keeps
runs from overlapping.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable

from guild_sync.config.settings import AppSettings, load_config
from guild_sync.core import BaseOrchestrator
from guild_sync.db.engine import dispose_engines, get_async_session, get_engine
from guild_sync.db.models import Character, Guild
from guild_sync.db.repositories import (
    find_stale_characters,
    find_stale_guilds,
    get_character,
    get_guild,
)
from guild_sync.sync.character_sync import FAILED, SKIPPED, SYNCED, sync_character
from guild_sync.sync.classifier import get_classified_guild_members
from guild_sync.sync.client import BattleNetClient
from guild_sync.sync.guild_sync import sync_guild
from guild_sync.sync.limiter import RateLimiter
from guild_sync.sync.logger import logger


class SyncState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class SyncOrchestrator(BaseOrchestrator):
    """Orchestrates sync passes over stale guilds and characters.

    run_sync() is the only owner of the IDLE/RUNNING transition; a call made
    while a pass is running returns immediately without touching anything.
    """

    def __init__(
        self,
        settings: AppSettings,
        client_factory: Callable[[], BattleNetClient] | None = None,
    ) -> None:
        super().__init__(settings.database_url, settings.sync.slow_checkout_seconds)
        self.settings = settings
        # One limiter for the process so the hourly budget spans passes
        self.limiter = RateLimiter.from_config(settings.limiter)
        self.client_factory = client_factory or self._default_client
        self.state = SyncState.IDLE
        self._state_lock = asyncio.Lock()
        self._reset_stats()

    def _default_client(self) -> BattleNetClient:
        return BattleNetClient(
            config=self.settings.battlenet,
            limiter_config=self.settings.limiter,
            limiter=self.limiter,
            refresh_margin=self.settings.sync.token_refresh_margin_seconds,
        )

    def _reset_stats(self) -> None:
        self.guilds_synced = 0
        self.guilds_excluded = 0
        self.guilds_failed = 0
        self.characters_synced = 0
        self.characters_skipped = 0
        self.characters_failed = 0

    async def run_sync(
        self,
        guild_id: int | None = None,
        character_id: int | None = None,
    ) -> bool:
        """Run one sync pass unless one is already running.

        Returns:
            True if a pass ran, False if it was skipped
        """
        async with self._state_lock:
            if self.state is SyncState.RUNNING:
                logger.info("Sync process already running. Skipping new run.")
                return False
            self.state = SyncState.RUNNING

        try:
            self._reset_stats()
            await self.run(guild_id=guild_id, character_id=character_id)
        finally:
            self.state = SyncState.IDLE
        return True

    async def _run_pipeline(
        self,
        guild_id: int | None = None,
        character_id: int | None = None,
    ) -> None:
        """Execute one sync pass."""
        guilds, characters = await self._select_work(guild_id, character_id)
        logger.info(
            f"Found {len(guilds)} guilds and {len(characters)} characters to sync"
        )
        if not guilds and not characters:
            return

        async with self.client_factory() as client:
            for guild in guilds:
                await self._sync_guild(client, guild)
            for character in characters:
                await self._sync_character(client, character)

    def _log_summary(self, elapsed: float) -> None:
        """Log the final sync summary."""
        logger.summary(
            guilds_synced=self.guilds_synced,
            guilds_excluded=self.guilds_excluded,
            guilds_failed=self.guilds_failed,
            characters_synced=self.characters_synced,
            characters_skipped=self.characters_skipped,
            characters_failed=self.characters_failed,
            elapsed=elapsed,
        )

    async def _select_work(
        self, guild_id: int | None, character_id: int | None
    ) -> tuple[list[Guild], list[Character]]:
        """Pick the guilds and characters for this pass."""
        sync_config = self.settings.sync
        async with self.async_session() as session:
            if guild_id is None and character_id is None:
                guilds = await find_stale_guilds(
                    session, sync_config.stale_after_hours, sync_config.batch_size
                )
                characters = await find_stale_characters(
                    session, sync_config.stale_after_hours, sync_config.batch_size
                )
                return guilds, characters

            guilds, characters = [], []
            if guild_id is not None:
                guild = await get_guild(session, guild_id)
                if guild is None:
                    logger.warning(f"Guild {guild_id} not found")
                else:
                    guilds.append(guild)
            if character_id is not None:
                character = await get_character(session, character_id)
                if character is None:
                    logger.warning(f"Character {character_id} not found")
                else:
                    characters.append(character)
            return guilds, characters

    async def _sync_guild(self, client: BattleNetClient, guild: Guild) -> None:
        async with self.async_session() as session:
            try:
                result = await sync_guild(client, session, guild)
            except Exception as e:
                self.guilds_failed += 1
                logger.item_failed("guild", guild.id, guild.name, "unexpected", e)
                return

        if result.synced:
            self.guilds_synced += 1
        elif result.excluded:
            self.guilds_excluded += 1
        else:
            self.guilds_failed += 1

    async def _sync_character(
        self, client: BattleNetClient, character: Character
    ) -> None:
        async with self.async_session() as session:
            try:
                result = await sync_character(client, session, character)
            except Exception as e:
                self.characters_failed += 1
                logger.item_failed(
                    "character", character.id, character.name, "unexpected", e
                )
                return

        if result.status == SYNCED:
            self.characters_synced += 1
        elif result.status == SKIPPED:
            self.characters_skipped += 1
        elif result.status == FAILED:
            self.characters_failed += 1


async def run_sync(
    config_path: str = "config.json",
    guild_id: int | None = None,
    character_id: int | None = None,
    loop_interval: float | None = None,
) -> None:
    """Entry point for running the sync pipeline.

    Args:
        config_path: Path to config.json
        guild_id: Only sync this guild
        character_id: Only sync this character
        loop_interval: Repeat every this many seconds instead of running once
    """
    settings = load_config(config_path)
    orchestrator = SyncOrchestrator(settings)
    try:
        while True:
            await orchestrator.run_sync(guild_id=guild_id, character_id=character_id)
            if not loop_interval:
                break
            logger.info(f"Next sync pass in {loop_interval:.0f}s")
            await asyncio.sleep(loop_interval)
    finally:
        await dispose_engines()


async def classify_guild(config_path: str, guild_id: int) -> None:
    """Print the main/alt classification of a guild's current members."""
    settings = load_config(config_path)
    get_engine(settings.database_url, settings.sync.slow_checkout_seconds)
    session_factory = get_async_session(settings.database_url)
    try:
        async with session_factory() as session:
            classified = await get_classified_guild_members(session, guild_id)
    finally:
        await dispose_engines()

    logger.table(
        f"Guild {guild_id}: {len(classified)} members",
        ["Character", "Rank", "Class", "Classification", "Group", "Main ID"],
        [
            (
                entry.member.character_name or entry.member.character.name,
                entry.member.rank,
                entry.member.character_class,
                entry.classification.value,
                str(entry.group_key)[:12] if entry.group_key is not None else None,
                entry.main_character_id,
            )
            for entry in classified
        ],
    )
