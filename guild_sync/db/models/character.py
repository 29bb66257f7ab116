"""Character ORM model.

Characters may be unowned (user_id NULL). For those, toy_hash holds a
fingerprint of the character's toy collection so that alts of the same
unknown player can be grouped together.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guild_sync.db.base import Base, BnetId, TZDateTime, utcnow

if TYPE_CHECKING:
    from guild_sync.db.models.user import User


class Character(Base):
    """
    Character entity.

    Enhanced profile data is cached as JSONB and refreshed by character sync.
    """

    __tablename__ = "characters"

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    # Realm slug as reported in rosters
    realm: Mapped[str] = mapped_column(String(255), nullable=False)
    region: Mapped[str | None] = mapped_column(String(8), nullable=True)

    bnet_character_id: Mapped[int | None] = mapped_column(BnetId, nullable=True)

    # -------------------------------------------------------------------------
    # Ownership & linkage
    # -------------------------------------------------------------------------

    user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    guild_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("guilds.id", ondelete="SET NULL"), nullable=True
    )

    # Global per-user main flag
    is_main: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Fingerprint used only when user_id is NULL
    toy_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # -------------------------------------------------------------------------
    # Game data
    # -------------------------------------------------------------------------

    # "class" is a Python keyword
    character_class: Mapped[str] = mapped_column(
        "class", String(32), nullable=False, default="Unknown"
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="DPS")

    profile_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    equipment_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    mythic_profile_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    # List of primary professions
    professions_json: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    # -------------------------------------------------------------------------
    # Sync bookkeeping
    # -------------------------------------------------------------------------

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(TZDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    user: Mapped["User | None"] = relationship("User", back_populates="characters")

    __table_args__ = (
        # Case-insensitive (name, realm) lookups from roster reconciliation
        Index(
            "ix_characters_name_realm_lower", text("lower(name)"), text("lower(realm)")
        ),
        Index("ix_characters_user_id", "user_id"),
        Index("ix_characters_last_synced_at", "last_synced_at"),
        Index("ix_characters_toy_hash", "toy_hash"),
    )

    def __repr__(self) -> str:
        return f"<Character(id={self.id}, name='{self.name}', realm='{self.realm}')>"
