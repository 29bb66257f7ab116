"""Guild ORM model.

A Guild row is created lazily on first observation (by onboarding, or as a
stub when a synced character reports an unknown guild) and mutated in place
on every sync pass.

Design principles:
- (name, realm, region) is the natural identity; bnet_guild_id becomes a
  second unique key once the guild has been fetched upstream
- Raw upstream documents are cached as JSONB snapshots
- last_updated drives staleness selection (NULL = never synced)
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guild_sync.db.base import Base, BnetId, TZDateTime, utcnow

if TYPE_CHECKING:
    from guild_sync.db.models.guild_member import GuildMember
    from guild_sync.db.models.guild_rank import GuildRank


class Guild(Base):
    """
    Guild entity.

    LATEST-STATE SNAPSHOT: guild_data_json and roster_json hold the most
    recent upstream documents; no history is kept.
    """

    __tablename__ = "guilds"

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    realm: Mapped[str] = mapped_column(String(255), nullable=False)
    region: Mapped[str] = mapped_column(String(8), nullable=False)

    # Upstream guild id. NULL until the first successful metadata fetch.
    bnet_guild_id: Mapped[int | None] = mapped_column(
        BnetId, nullable=True, unique=True
    )

    # -------------------------------------------------------------------------
    # Leadership
    # -------------------------------------------------------------------------

    # User owning the rank-0 character. SET NULL so deleting a user
    # never blocks a guild row.
    leader_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    guild_data_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    roster_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # -------------------------------------------------------------------------
    # Sync bookkeeping
    # -------------------------------------------------------------------------

    last_updated: Mapped[datetime | None] = mapped_column(TZDateTime, nullable=True)
    last_roster_sync: Mapped[datetime | None] = mapped_column(
        TZDateTime, nullable=True
    )

    # Set when upstream reports the guild as gone (404)
    exclude_from_sync: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    created_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------

    members: Mapped[list["GuildMember"]] = relationship(
        "GuildMember", back_populates="guild", cascade="all, delete-orphan"
    )
    ranks: Mapped[list["GuildRank"]] = relationship(
        "GuildRank", back_populates="guild", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("name", "realm", "region", name="uq_guilds_identity"),
        # Stale selection: oldest first
        Index("ix_guilds_last_updated", "last_updated"),
        Index("ix_guilds_leader_id", "leader_id"),
    )

    def __repr__(self) -> str:
        return f"<Guild(id={self.id}, name='{self.name}', realm='{self.realm}')>"
