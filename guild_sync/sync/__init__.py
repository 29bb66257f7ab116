"""Battle.net Guild Sync Pipeline.

This package keeps guilds, their rosters and ranks, and character profiles
in the local database in step with the Battle.net profile API.

Usage:
    python -m guild_sync.sync                    # Sync everything that is stale
    python -m guild_sync.sync --guild-id X       # Sync one guild
    python -m guild_sync.sync --character-id X   # Sync one character
    python -m guild_sync.sync --classify X       # Show mains and alts of a guild
"""
