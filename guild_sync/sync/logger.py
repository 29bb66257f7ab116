"""Rich-based logging utilities for the guild sync pipeline.

Adds sync-specific output (rate limits, per-item failures, run summary) on
top of BasePipelineLogger.
"""

from __future__ import annotations

from typing import Any

from guild_sync.utils.pipeline_logger import BasePipelineLogger


class SyncLogger(BasePipelineLogger):
    """Logger for guild and character sync passes."""

    def __init__(self) -> None:
        super().__init__(__name__)

    # -------------------------------------------------------------------------
    # Gateway: Rate Limiting & Jobs
    # -------------------------------------------------------------------------

    def rate_limit(self, job_id: str, wait: float) -> None:
        """Log a throttling response and the wait before the single retry."""
        self._logger.warning(f"Rate limited on {job_id}. Retrying in {wait:.2f}s...")

    def job(self, job_id: str, state: str, running: int) -> None:
        """Log a scheduler job transition at debug level."""
        self._logger.debug(f"Job {job_id} {state} ({running} running)")

    # -------------------------------------------------------------------------
    # Guilds & Characters
    # -------------------------------------------------------------------------

    def guild_start(self, guild_id: int, name: str, realm: str, region: str) -> None:
        """Print a rule introducing a guild sync."""
        self.console.print()
        self.console.rule(f"[bold cyan]{name}[/bold cyan]", style="cyan")
        self.console.print(f"[dim]Guild ID: {guild_id} | {realm} ({region})[/dim]")

    def item_failed(
        self,
        kind: str,
        item_id: int,
        name: str,
        stage: str,
        error: BaseException,
    ) -> None:
        """Log a per-item failure with identifying context."""
        self._logger.error(
            f"{kind.capitalize()} sync failed [id={item_id} name={name} "
            f"stage={stage}]: {type(error).__name__}: {error}"
        )

    # -------------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------------

    def summary(
        self,
        guilds_synced: int = 0,
        guilds_excluded: int = 0,
        guilds_failed: int = 0,
        characters_synced: int = 0,
        characters_skipped: int = 0,
        characters_failed: int = 0,
        elapsed: float = 0.0,
        **kwargs: Any,
    ) -> None:
        """Print final sync summary."""
        self.print_summary(
            "Sync",
            elapsed=elapsed,
            stats={
                "Guilds synced": guilds_synced,
                "Characters synced": characters_synced,
            },
            extra_sections={
                "Not synced": {
                    "Guilds excluded": guilds_excluded,
                    "Guilds failed": guilds_failed,
                    "Characters skipped": characters_skipped,
                    "Characters failed": characters_failed,
                }
            },
            style="cyan",
        )


# Global logger instance
logger = SyncLogger()
