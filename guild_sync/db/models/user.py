"""User ORM model.

A User is a local authentication identity. Users own zero or more
Characters; guild leadership is resolved to a User through the character
holding rank 0 in the guild roster.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guild_sync.db.base import Base, BnetId, TZDateTime, utcnow

if TYPE_CHECKING:
    from guild_sync.db.models.character import Character


class User(Base):
    """Local account that may own characters."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    # Battle.net account id and tag, as obtained at login
    bnet_id: Mapped[int | None] = mapped_column(BnetId, nullable=True, unique=True)
    battletag: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    characters: Mapped[list["Character"]] = relationship(
        "Character", back_populates="user"
    )

    __table_args__ = (Index("ix_users_battletag", "battletag"),)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, battletag='{self.battletag}')>"
