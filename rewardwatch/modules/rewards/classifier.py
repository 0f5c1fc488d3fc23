"""
Transport outcome to `RewardStatus` classification.

Pure functions; no I/O, no logging. NO_CAMPAIGN is never produced here: it
needs a second (campaign) lookup and is applied by the tracking state machine.
"""

from __future__ import annotations

from typing import Optional

from rewardwatch.core.exceptions import ResponseCodeError
from rewardwatch.modules.rewards.models import Reward, RewardStatus

_STATUS_TABLE = {
    403: RewardStatus.FORBIDDEN,
    404: RewardStatus.NOT_FOUND,
    429: RewardStatus.RATE_LIMIT,
    500: RewardStatus.INTERNAL_SERVER_ERROR,
    502: RewardStatus.GATEWAY_ERROR,
    504: RewardStatus.GATEWAY_ERROR,
}


def classify_status(status_code: int) -> RewardStatus:
    if 200 <= status_code < 300:
        return RewardStatus.FOUND
    return _STATUS_TABLE.get(status_code, RewardStatus.UNKNOWN)


def classify_outcome(
    reward: Optional[Reward], error: Optional[BaseException]
) -> Optional[RewardStatus]:
    """
    Classify one lookup.

    Returns None for infrastructure errors (connection failures, timeouts,
    undecodable payloads); the caller drops such ids from the result stream.
    """
    if error is None:
        return RewardStatus.FOUND if reward is not None else None
    if isinstance(error, ResponseCodeError):
        status = classify_status(error.status_code)
        # a success code without a decoded reward carries nothing usable
        return RewardStatus.UNKNOWN if status is RewardStatus.FOUND else status
    return None
