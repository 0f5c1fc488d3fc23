from rewardwatch.modules.tracking.repository import TrackedRewardRepository, UserRepository
from rewardwatch.modules.tracking.service import AddOutcome, TrackedOverview, TrackingService
from rewardwatch.modules.tracking.state_machine import (
    TrackingDecision,
    TrackingState,
    apply_to,
    evaluate,
    needs_campaign_lookup,
)

__all__ = [
    "UserRepository",
    "TrackedRewardRepository",
    "TrackingService",
    "AddOutcome",
    "TrackedOverview",
    "TrackingState",
    "TrackingDecision",
    "evaluate",
    "apply_to",
    "needs_campaign_lookup",
]
