"""
Update job: one full sweep over every registered user.

Purpose
-------
For each user, refresh every tracked reward from upstream, run the tracking
state machine over the results, send the resulting notifications and persist
the new tracking state.

Execution Model
---------------
- One task per user, run with `asyncio.gather(..., return_exceptions=True)`.
  Users are independent: one user's failure rolls back that user's
  transaction only.
- Each user's sweep runs inside one `DatabaseService.get_transaction()`, so the
  writes for one user never interleave.
- Lookups use `force_refresh=True`; every sweep asks upstream and refreshes
  the caches that the bot commands read through.
- Per-user fetch parallelism is bounded by the dispatcher, but the number of
  concurrent users is not. Total in-flight upstream requests can reach
  users x max_parallelism.

Notification rules
------------------
- An "available" notification that fails to deliver leaves `last_notified`
  at its previous value, so the next sweep tries again.
- The aggregated "missing" notification is sent once per user per sweep, only
  when it has entries. If it fails to deliver, those rewards are not marked
  missing, so they are reported again next sweep.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from rewardwatch.core.database.service import DatabaseService
from rewardwatch.core.exceptions import NotificationDeliveryError
from rewardwatch.core.logging.logger import LogContext, get_logger
from rewardwatch.database.models import TrackedReward, User
from rewardwatch.modules.notifications.notifier import Notifier
from rewardwatch.modules.rewards.dispatcher import FetchDispatcher
from rewardwatch.modules.rewards.models import Campaign, RewardResult
from rewardwatch.modules.tracking.repository import TrackedRewardRepository, UserRepository
from rewardwatch.modules.tracking.state_machine import (
    TrackingState,
    apply_to,
    evaluate,
    needs_campaign_lookup,
)

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserSweepResult:
    rewards_checked: int = 0
    available_sent: int = 0
    available_failed: int = 0
    missing_reported: int = 0
    missing_sent: bool = False
    rate_limited: int = 0


@dataclass
class SweepReport:
    users_processed: int = 0
    users_failed: int = 0
    rewards_checked: int = 0
    available_notifications: int = 0
    missing_notifications: int = 0
    rate_limited: int = 0
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    def add(self, result: UserSweepResult) -> None:
        self.users_processed += 1
        self.rewards_checked += result.rewards_checked
        self.available_notifications += result.available_sent
        self.missing_notifications += int(result.missing_sent)
        self.rate_limited += result.rate_limited

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or utcnow()
        return (end - self.started_at).total_seconds()

    def as_log_extra(self) -> Dict[str, object]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        data["duration_seconds"] = round(self.duration_seconds, 3)
        return data


class UpdateJob:
    def __init__(
        self,
        dispatcher: FetchDispatcher,
        notifier: Notifier,
        users: Optional[UserRepository] = None,
        tracked: Optional[TrackedRewardRepository] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.users = users or UserRepository()
        self.tracked = tracked or TrackedRewardRepository()
        self._clock = clock

    async def run_sweep(self, stop_event: Optional[asyncio.Event] = None) -> SweepReport:
        report = SweepReport()
        logger.info("Checking for available rewards")

        async with DatabaseService.get_session() as session:
            users = await self.users.list_all(session)

        outcomes = await asyncio.gather(
            *(self.sweep_user(user, stop_event) for user in users),
            return_exceptions=True,
        )

        for user, outcome in zip(users, outcomes):
            if isinstance(outcome, BaseException):
                report.users_failed += 1
                if not isinstance(outcome, asyncio.CancelledError):
                    logger.error(
                        "Update sweep failed for user; rolled back",
                        extra={
                            "discord_id": user.discord_id,
                            "error": str(outcome),
                            "error_type": type(outcome).__name__,
                        },
                        exc_info=outcome,
                    )
                continue
            report.add(outcome)

        report.finished_at = utcnow()
        logger.info("Update sweep complete", extra=report.as_log_extra())
        return report

    async def sweep_user(
        self, user: User, stop_event: Optional[asyncio.Event] = None
    ) -> UserSweepResult:
        async with LogContext(user_id=user.discord_id, operation="update_sweep"):
            async with DatabaseService.get_transaction() as session:
                rows = await self.tracked.list_for_user(session, user.id)
                return await self._sweep_rows(user, rows, stop_event)

    async def _sweep_rows(
        self,
        user: User,
        rows: List[TrackedReward],
        stop_event: Optional[asyncio.Event],
    ) -> UserSweepResult:
        outcome = UserSweepResult()
        by_reward: Dict[int, TrackedReward] = {row.reward_id: row for row in rows}
        missing: List[RewardResult] = []
        missing_rows: List[TrackedReward] = []

        if not by_reward:
            return outcome

        async for result in self.dispatcher.fetch_many(
            list(by_reward), force_refresh=True, cancel=stop_event
        ):
            row = by_reward.get(result.id)
            if row is None:
                logger.warning(
                    "Could not find tracked reward for result",
                    extra={"reward_id": result.id, "user_pk": user.id},
                )
                continue

            outcome.rewards_checked += 1

            campaign: Optional[Campaign] = None
            campaign_resolved: Optional[bool] = None
            if needs_campaign_lookup(result):
                assert result.reward is not None
                campaign = await self.dispatcher.fetch_campaign(result.reward.campaign_id)
                campaign_resolved = campaign is not None

            previous = TrackingState.from_record(row)
            decision = evaluate(
                previous, result, campaign_resolved=campaign_resolved, now=self._clock()
            )

            if decision.skipped:
                outcome.rate_limited += 1
                logger.info("Rate limited; leaving reward untouched", extra={"reward_id": result.id})
                continue

            state = decision.state
            if decision.notify_available:
                assert campaign is not None
                try:
                    await self.notifier.notify_available(user, decision.result, campaign)
                    outcome.available_sent += 1
                except NotificationDeliveryError:
                    outcome.available_failed += 1
                    state = replace(state, last_notified=previous.last_notified)

            if decision.report_missing:
                missing.append(decision.result)
                missing_rows.append(row)
                logger.info(
                    "Reward missing",
                    extra={"reward_id": result.id, "status": decision.result.status.code},
                )

            apply_to(row, state)

        if missing:
            outcome.missing_reported = len(missing)
            try:
                await self.notifier.notify_missing(user, missing)
                outcome.missing_sent = True
            except NotificationDeliveryError:
                for row in missing_rows:
                    row.is_missing = False

        return outcome
