"""GuildRank ORM model."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guild_sync.db.base import Base, TZDateTime, utcnow

if TYPE_CHECKING:
    from guild_sync.db.models.guild import Guild


class GuildRank(Base):
    """
    Named rank within a guild.

    Created on first sighting of a rank value in a roster and never deleted;
    member_count is recomputed on every pass.
    """

    __tablename__ = "guild_ranks"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    guild_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("guilds.id", ondelete="CASCADE"), nullable=False
    )
    rank_id: Mapped[int] = mapped_column(Integer, nullable=False)
    rank_name: Mapped[str] = mapped_column(String(64), nullable=False)
    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    guild: Mapped["Guild"] = relationship("Guild", back_populates="ranks")

    __table_args__ = (
        UniqueConstraint("guild_id", "rank_id", name="uq_guild_ranks_guild_rank"),
    )

    def __repr__(self) -> str:
        return (
            f"<GuildRank(guild_id={self.guild_id}, rank_id={self.rank_id}, "
            f"name='{self.rank_name}')>"
        )
