"""
One reward id watched by one user.
Pure schema only; state transitions live in modules.tracking.state_machine.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rewardwatch.core.database.base import Base, IdMixin, TimestampMixin, UTCDateTime

if TYPE_CHECKING:
    from .user import User


class TrackedReward(Base, IdMixin, TimestampMixin):
    """
    Tracked reward row.

    - user_id (FK to users)
    - reward_id (upstream reward id)
    - is_missing (last sweep could not find the reward or its campaign)
    - available_since (start of the current availability window)
    - last_notified (when the user was last told it is available)
    """

    __tablename__ = "tracked_rewards"
    __table_args__ = (UniqueConstraint("user_id", "reward_id"),)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    reward_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    is_missing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    available_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    last_notified: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="tracked_rewards")

    def __repr__(self) -> str:
        return (
            f"<TrackedReward user_id={self.user_id} reward_id={self.reward_id} "
            f"missing={self.is_missing}>"
        )
