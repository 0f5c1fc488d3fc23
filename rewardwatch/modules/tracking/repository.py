"""
Repositories for users and their tracked rewards.

Pure data access over the async session handed in by the caller. No commits;
`DatabaseService.get_transaction()` owns the transaction boundary.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from rewardwatch.core.logging.logger import get_logger
from rewardwatch.database.models import TrackedReward, User
from rewardwatch.modules.shared.base_repository import BaseRepository

logger = get_logger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self) -> None:
        super().__init__(User, logger)

    async def find_by_discord_id(self, session: AsyncSession, discord_id: int) -> Optional[User]:
        return await self.find_one_where(session, User.discord_id == discord_id)

    async def create(self, session: AsyncSession, discord_id: int, language: str = "EN") -> User:
        user = self.add(session, User(discord_id=discord_id, language=language))
        await self.flush(session)
        logger.info("User registered", extra={"discord_id": discord_id, "user_pk": user.id})
        return user

    async def list_all(self, session: AsyncSession) -> List[User]:
        return await self.find_many_where(session, order_by=User.id)


class TrackedRewardRepository(BaseRepository[TrackedReward]):
    def __init__(self) -> None:
        super().__init__(TrackedReward, logger)

    async def list_for_user(self, session: AsyncSession, user_id: int) -> List[TrackedReward]:
        return await self.find_many_where(
            session,
            TrackedReward.user_id == user_id,
            order_by=TrackedReward.reward_id,
        )

    async def find(
        self, session: AsyncSession, user_id: int, reward_id: int
    ) -> Optional[TrackedReward]:
        return await self.find_one_where(
            session,
            TrackedReward.user_id == user_id,
            TrackedReward.reward_id == reward_id,
        )

    def track(self, session: AsyncSession, user_id: int, reward_ids: Iterable[int]) -> List[TrackedReward]:
        rows = [TrackedReward(user_id=user_id, reward_id=reward_id) for reward_id in reward_ids]
        return self.add_many(session, rows)

    async def delete_for_user(
        self, session: AsyncSession, user_id: int, reward_ids: Iterable[int]
    ) -> int:
        ids = list(reward_ids)
        if not ids:
            return 0
        result = await session.execute(
            delete(TrackedReward).where(
                TrackedReward.user_id == user_id,
                TrackedReward.reward_id.in_(ids),
            )
        )
        deleted = result.rowcount or 0
        logger.debug(
            "Tracked rewards deleted",
            extra={"user_pk": user_id, "requested": len(ids), "deleted": deleted},
        )
        return deleted

    async def reset_notifications(self, session: AsyncSession, user_id: int) -> int:
        result = await session.execute(
            update(TrackedReward)
            .where(TrackedReward.user_id == user_id)
            .values(last_notified=None)
        )
        updated = result.rowcount or 0
        logger.debug(
            "Notification state reset",
            extra={"user_pk": user_id, "updated": updated},
        )
        return updated
