"""
Database Models Package
========================

SQLAlchemy ORM models for RewardWatch. Schema only, no business logic; all
models use Mapped[] syntax with mapped_column() and the shared mixins.
"""

from rewardwatch.core.database.base import Base

from .tracked_reward import TrackedReward
from .user import User

__all__ = ["Base", "User", "TrackedReward"]
