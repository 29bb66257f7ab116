"""CLI entry point for guild_sync.sync.

Usage:
    python -m guild_sync.sync                       # Sync all stale guilds and characters
    python -m guild_sync.sync --guild-id 12         # Sync one guild
    python -m guild_sync.sync --character-id 34     # Sync one character
    python -m guild_sync.sync --loop-interval 3600  # Run a pass every hour
    python -m guild_sync.sync --classify 12         # Print main/alt classification
    python -m guild_sync.sync --debug               # Show debug info
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from guild_sync.sync.logger import logger
from guild_sync.sync.run import classify_guild, run_sync
from guild_sync.utils.logging import setup_logging


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Battle.net Guild Sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m guild_sync.sync
      Sync every guild and character that is due

  python -m guild_sync.sync --guild-id 12
      Sync only the guild with local id 12

  python -m guild_sync.sync --loop-interval 3600
      Keep running, one pass per hour

  python -m guild_sync.sync --classify 12
      Show which members of guild 12 are mains and which are alts
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config.json",
        help="Path to config.json (default: config.json)",
    )
    parser.add_argument(
        "--guild-id",
        type=int,
        help="Sync only this guild ID",
    )
    parser.add_argument(
        "--character-id",
        type=int,
        help="Sync only this character ID",
    )
    parser.add_argument(
        "--loop-interval",
        type=float,
        help="Repeat the sync every N seconds",
    )
    parser.add_argument(
        "--classify",
        type=int,
        metavar="GUILD_ID",
        help="Print the main/alt classification of a guild and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (DEBUG level)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with third-party library logs",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Optional file to write logs to",
    )

    args = parser.parse_args()

    if args.debug:
        log_level = logging.DEBUG
        debug_third_party = True
    elif args.verbose:
        log_level = logging.DEBUG
        debug_third_party = False
    else:
        log_level = logging.INFO
        debug_third_party = False

    setup_logging(
        level=log_level,
        log_file=args.log_file,
        debug_third_party=debug_third_party,
    )

    try:
        if args.classify is not None:
            asyncio.run(classify_guild(args.config, args.classify))
            return

        logger.info("Starting guild sync")
        asyncio.run(
            run_sync(
                config_path=args.config,
                guild_id=args.guild_id,
                character_id=args.character_id,
                loop_interval=args.loop_interval,
            )
        )
        logger.success("Sync complete!")
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise


if __name__ == "__main__":
    main()
