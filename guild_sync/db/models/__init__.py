"""Guild Sync Database Models.

All models use SQLAlchemy 2.0 syntax with PostgreSQL dialect.
"""

from guild_sync.db.base import Base
from guild_sync.db.models.character import Character
from guild_sync.db.models.guild import Guild
from guild_sync.db.models.guild_member import GuildMember
from guild_sync.db.models.guild_rank import GuildRank
from guild_sync.db.models.user import User

__all__ = [
    "Base",
    "Character",
    "Guild",
    "GuildMember",
    "GuildRank",
    "User",
]
