"""
Upstream rewards API: wire models, HTTP client, status classification and
the bounded-parallelism fetch dispatcher.
"""

from rewardwatch.modules.rewards.classifier import classify_outcome, classify_status
from rewardwatch.modules.rewards.client import RewardsClient
from rewardwatch.modules.rewards.dispatcher import FetchDispatcher, RewardSource
from rewardwatch.modules.rewards.models import (
    Campaign,
    CampaignId,
    Reward,
    RewardId,
    RewardResult,
    RewardStatus,
)

__all__ = [
    "Campaign",
    "CampaignId",
    "Reward",
    "RewardId",
    "RewardResult",
    "RewardStatus",
    "RewardsClient",
    "RewardSource",
    "FetchDispatcher",
    "classify_status",
    "classify_outcome",
]
