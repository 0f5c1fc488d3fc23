from rewardwatch.modules.shared.base_repository import BaseRepository
from rewardwatch.modules.shared.exceptions import (
    InvalidInputError,
    NoCampaignError,
    RewardWatchDomainException,
    UserNotRegisteredError,
)

__all__ = [
    "BaseRepository",
    "RewardWatchDomainException",
    "UserNotRegisteredError",
    "InvalidInputError",
    "NoCampaignError",
]
