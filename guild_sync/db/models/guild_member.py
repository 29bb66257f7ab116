"""GuildMember ORM model.

Join of Guild and Character carrying the roster rank. Departures are soft
deletes (left_at set), so only rows with left_at IS NULL are current, and
the (guild_id, character_id) uniqueness applies to current rows only.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guild_sync.db.base import Base, TZDateTime, utcnow

if TYPE_CHECKING:
    from guild_sync.db.models.character import Character
    from guild_sync.db.models.guild import Guild


class GuildMember(Base):
    """Membership of one character in one guild."""

    __tablename__ = "guild_members"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    guild_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("guilds.id", ondelete="CASCADE"), nullable=False
    )
    character_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False
    )

    # 0 is the guild leader
    rank: Mapped[int] = mapped_column(Integer, nullable=False)

    # Denormalized from the character for roster views
    character_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    character_class: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Main flag scoped to this guild
    is_main: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Raw roster entry from the last sync
    member_data_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    joined_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow
    )
    left_at: Mapped[datetime | None] = mapped_column(TZDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    guild: Mapped["Guild"] = relationship("Guild", back_populates="members")
    character: Mapped["Character"] = relationship("Character")

    __table_args__ = (
        Index(
            "uq_guild_members_current",
            "guild_id",
            "character_id",
            unique=True,
            postgresql_where=text("left_at IS NULL"),
        ),
        Index("ix_guild_members_character_id", "character_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<GuildMember(id={self.id}, guild_id={self.guild_id}, "
            f"character_id={self.character_id}, rank={self.rank})>"
        )
