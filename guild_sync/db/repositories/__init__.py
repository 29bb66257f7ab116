"""Repository layer for database operations.

Provides clean separation between data access and sync logic.
All queries and upserts used by the sync pipeline are centralized here.
"""

from guild_sync.db.repositories.character_repository import (
    create_character,
    find_characters_by_name_realm_pairs,
    find_stale_characters,
    get_character,
    update_character,
)
from guild_sync.db.repositories.guild_repository import (
    create_guild,
    find_guild_by_identity,
    find_guild_by_upstream_id,
    find_stale_guilds,
    get_guild,
    update_guild,
)
from guild_sync.db.repositories.member_repository import (
    bulk_create_members,
    bulk_delete_members,
    bulk_update_members,
    get_current_members,
    get_current_membership,
    update_member,
)
from guild_sync.db.repositories.rank_repository import (
    get_guild_ranks,
    set_rank_member_count,
    upsert_guild_rank,
)
from guild_sync.db.repositories.user_repository import (
    find_user_by_character_name_realm,
)

__all__ = [
    "create_character",
    "find_characters_by_name_realm_pairs",
    "find_stale_characters",
    "get_character",
    "update_character",
    "create_guild",
    "find_guild_by_identity",
    "find_guild_by_upstream_id",
    "find_stale_guilds",
    "get_guild",
    "update_guild",
    "bulk_create_members",
    "bulk_delete_members",
    "bulk_update_members",
    "get_current_members",
    "get_current_membership",
    "update_member",
    "get_guild_ranks",
    "set_rank_member_count",
    "upsert_guild_rank",
    "find_user_by_character_name_realm",
]
