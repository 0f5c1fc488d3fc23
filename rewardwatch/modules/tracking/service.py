"""
Tracking service: the business logic behind the bot commands.

Purpose
-------
Register users and manage the set of reward ids each user tracks. Reads go
through the fetch dispatcher's caches; writes happen in one transaction per
command.

Responsibilities
----------------
- register / look up users by Discord id
- add ids (only those the upstream API confirms exist)
- remove ids
- build the grouped overview for `list`, including the "missing" entries
- reset notification state so still-available rewards notify again

Non-Responsibilities
--------------------
- Discord formatting (ui.embeds)
- Periodic checking and notifications (modules.updates)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from rewardwatch.core.database.service import DatabaseService
from rewardwatch.core.logging.logger import get_logger
from rewardwatch.database.models import User
from rewardwatch.modules.rewards.dispatcher import FetchDispatcher
from rewardwatch.modules.rewards.models import (
    Campaign,
    CampaignId,
    RewardResult,
    RewardStatus,
)
from rewardwatch.modules.shared.exceptions import UserNotRegisteredError
from rewardwatch.modules.shared.validators import exclude, require_ids
from rewardwatch.modules.tracking.repository import TrackedRewardRepository, UserRepository
from rewardwatch.ui.embeds import CampaignGroup

logger = get_logger(__name__)


@dataclass
class AddOutcome:
    requested: List[int] = field(default_factory=list)
    already_tracked: List[int] = field(default_factory=list)
    added: List[int] = field(default_factory=list)
    rejected: List[int] = field(default_factory=list)


@dataclass
class TrackedOverview:
    groups: List[CampaignGroup] = field(default_factory=list)
    missing: List[RewardResult] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.groups and not self.missing


class TrackingService:
    def __init__(
        self,
        dispatcher: FetchDispatcher,
        users: Optional[UserRepository] = None,
        tracked: Optional[TrackedRewardRepository] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.users = users or UserRepository()
        self.tracked = tracked or TrackedRewardRepository()

    # ========================================================================
    # Users
    # ========================================================================

    async def register(self, discord_id: int) -> Tuple[User, bool]:
        """Return ``(user, created)``; an existing user is returned unchanged."""
        async with DatabaseService.get_transaction() as session:
            user = await self.users.find_by_discord_id(session, discord_id)
            if user is not None:
                return user, False
            return await self.users.create(session, discord_id), True

    async def _require_user(self, session: AsyncSession, discord_id: int) -> User:
        user = await self.users.find_by_discord_id(session, discord_id)
        if user is None:
            raise UserNotRegisteredError(discord_id)
        return user

    # ========================================================================
    # Commands
    # ========================================================================

    async def add_rewards(self, discord_id: int, raw_ids: str) -> AddOutcome:
        outcome = AddOutcome(requested=require_ids(raw_ids))

        async with DatabaseService.get_session() as session:
            user = await self._require_user(session, discord_id)
            existing = [row.reward_id for row in await self.tracked.list_for_user(session, user.id)]

        candidates = exclude(outcome.requested, existing)
        outcome.already_tracked = [i for i in outcome.requested if i not in candidates]
        if not candidates:
            return outcome

        results = await self.dispatcher.collect(candidates)
        confirmed = {result.id for result in results if result.is_present()}
        outcome.added = [i for i in candidates if i in confirmed]
        outcome.rejected = [i for i in candidates if i not in confirmed]

        if outcome.added:
            async with DatabaseService.get_transaction() as session:
                user = await self._require_user(session, discord_id)
                self.tracked.track(session, user.id, outcome.added)

        logger.info(
            "Rewards added",
            extra={
                "discord_id": discord_id,
                "added": outcome.added,
                "rejected": outcome.rejected,
                "already_tracked": outcome.already_tracked,
            },
        )
        return outcome

    async def remove_rewards(self, discord_id: int, raw_ids: str) -> List[int]:
        ids = require_ids(raw_ids)
        async with DatabaseService.get_transaction() as session:
            user = await self._require_user(session, discord_id)
            tracked_ids = {row.reward_id for row in await self.tracked.list_for_user(session, user.id)}
            removed = [i for i in ids if i in tracked_ids]
            await self.tracked.delete_for_user(session, user.id, removed)

        logger.info("Rewards removed", extra={"discord_id": discord_id, "removed": removed})
        return removed

    async def list_rewards(self, discord_id: int) -> TrackedOverview:
        async with DatabaseService.get_session() as session:
            user = await self._require_user(session, discord_id)
            reward_ids = [row.reward_id for row in await self.tracked.list_for_user(session, user.id)]

        overview = TrackedOverview()
        if not reward_ids:
            return overview

        groups: Dict[CampaignId, CampaignGroup] = {}
        campaigns: Dict[CampaignId, Optional[Campaign]] = {}

        async for result in self.dispatcher.fetch_many(reward_ids):
            if not result.is_present():
                overview.missing.append(result)
                continue

            assert result.reward is not None
            campaign_id = result.reward.campaign_id
            if campaign_id == 0:
                overview.missing.append(result.with_status(RewardStatus.NO_CAMPAIGN))
                continue

            if campaign_id not in campaigns:
                campaigns[campaign_id] = await self.dispatcher.fetch_campaign(campaign_id)
            campaign = campaigns[campaign_id]
            if campaign is None:
                overview.missing.append(result.with_status(RewardStatus.NO_CAMPAIGN))
                continue

            groups.setdefault(campaign_id, CampaignGroup(campaign=campaign)).rewards.append(
                result.reward
            )

        for group in groups.values():
            group.rewards.sort(key=lambda r: (r.amount_cents, r.id))
        overview.groups = sorted(groups.values(), key=lambda g: (g.campaign.name.lower(), g.campaign.id))
        overview.missing.sort(key=lambda r: r.id)
        return overview

    async def reset_notifications(self, discord_id: int) -> int:
        async with DatabaseService.get_transaction() as session:
            user = await self._require_user(session, discord_id)
            updated = await self.tracked.reset_notifications(session, user.id)

        logger.info(
            "Notifications reset",
            extra={"discord_id": discord_id, "rewards": updated},
        )
        return updated
