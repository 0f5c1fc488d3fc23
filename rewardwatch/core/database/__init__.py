from rewardwatch.core.database.base import Base, IdMixin, TimestampMixin, UTCDateTime
from rewardwatch.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "UTCDateTime",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
