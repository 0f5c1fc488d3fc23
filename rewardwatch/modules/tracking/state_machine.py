"""
Per-(user, reward) availability and notification state machine.

Purpose
-------
Decide, from the previous persisted tracking state and one freshly classified
fetch result, what the new state is and which notifications must fire. The
function is pure: time is injected and nothing is persisted or sent here.

States
------
MISSING
    Status is not FOUND, or the reward has no usable campaign (NO_CAMPAIGN).
    The reward is reported once, on the transition into this state.
    `last_notified` is left alone. `available_since` is cleared only when the
    reward was found with no free slots; otherwise it is left alone too.
PRESENT_UNAVAILABLE
    FOUND with no free slots. The availability window (if any) is closed by
    clearing `available_since`.
PRESENT_AVAILABLE
    FOUND with free slots. The window opens at the first sweep that sees it.
    A notification fires only when the window opened after the last
    notification, so each window notifies exactly once.

RATE_LIMIT carries no information and leaves the state untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from rewardwatch.modules.rewards.models import RewardResult, RewardStatus

if TYPE_CHECKING:
    from rewardwatch.database.models import TrackedReward


@dataclass(frozen=True)
class TrackingState:
    is_missing: bool = False
    available_since: Optional[datetime] = None
    last_notified: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: "TrackedReward") -> "TrackingState":
        return cls(
            is_missing=bool(record.is_missing),
            available_since=record.available_since,
            last_notified=record.last_notified,
        )


@dataclass(frozen=True)
class TrackingDecision:
    previous: TrackingState
    state: TrackingState
    result: RewardResult
    notify_available: bool = False
    report_missing: bool = False
    skipped: bool = False

    @property
    def changed(self) -> bool:
        return self.state != self.previous


def needs_campaign_lookup(result: RewardResult) -> bool:
    """Only available rewards with a campaign reference need their campaign fetched."""
    return (
        result.status is RewardStatus.FOUND
        and result.reward is not None
        and result.reward.campaign_id != 0
        and result.is_available()
    )


def effective_result(result: RewardResult, campaign_resolved: Optional[bool]) -> RewardResult:
    """Apply the NO_CAMPAIGN reclassification to a FOUND result."""
    if result.status is not RewardStatus.FOUND or result.reward is None:
        return result
    if result.reward.campaign_id == 0:
        return result.with_status(RewardStatus.NO_CAMPAIGN)
    if result.is_available() and campaign_resolved is False:
        return result.with_status(RewardStatus.NO_CAMPAIGN)
    return result


def evaluate(
    previous: TrackingState,
    result: RewardResult,
    *,
    campaign_resolved: Optional[bool],
    now: datetime,
) -> TrackingDecision:
    """
    Compute the next tracking state.

    Args:
        previous: State as persisted before this sweep
        result: Classified fetch result for the reward
        campaign_resolved: Outcome of the campaign lookup, or None when no
            lookup was attempted (see `needs_campaign_lookup`)
        now: Timestamp recorded for opened windows and notifications
    """
    if result.status is RewardStatus.RATE_LIMIT:
        return TrackingDecision(previous, previous, result, skipped=True)

    effective = effective_result(result, campaign_resolved)

    if effective.status is not RewardStatus.FOUND:
        state = previous
        # a present but full reward closes the window even without a campaign
        if effective.reward is not None and not effective.is_available():
            state = replace(state, available_since=None)
        if previous.is_missing:
            return TrackingDecision(previous, state, effective)
        return TrackingDecision(
            previous,
            replace(state, is_missing=True),
            effective,
            report_missing=True,
        )

    state = replace(previous, is_missing=False)

    if not effective.is_available():
        return TrackingDecision(previous, replace(state, available_since=None), effective)

    available_since = state.available_since or now
    notify = state.last_notified is None or available_since > state.last_notified
    state = replace(
        state,
        available_since=available_since,
        last_notified=now if notify else state.last_notified,
    )
    return TrackingDecision(previous, state, effective, notify_available=notify)


def apply_to(record: "TrackedReward", state: TrackingState) -> None:
    record.is_missing = state.is_missing
    record.available_since = state.available_since
    record.last_notified = state.last_notified
