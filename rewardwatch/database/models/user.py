"""
Registered Discord user model.
Pure schema only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from rewardwatch.core.database.base import Base, IdMixin, TimestampMixin

if TYPE_CHECKING:
    from .tracked_reward import TrackedReward


class User(Base, IdMixin, TimestampMixin):
    """
    Registered user row.

    - discord_id (unique Discord snowflake)
    - language (upper-cased language code, default EN)
    - tracked_rewards (deleted with the user)
    """

    __tablename__ = "users"

    discord_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
        index=True,
    )

    language: Mapped[str] = mapped_column(String(8), nullable=False, default="EN")

    tracked_rewards: Mapped[List["TrackedReward"]] = relationship(
        "TrackedReward",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("language")
    def _upper_language(self, key: str, value: str) -> str:
        return (value or "EN").upper()

    def __repr__(self) -> str:
        return f"<User id={self.id} discord_id={self.discord_id}>"
