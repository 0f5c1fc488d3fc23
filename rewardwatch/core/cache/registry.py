"""
Owner of the two process-wide read-through caches.

The startup routine builds one `CacheRegistry`, starts both sweepers on the
shared stop event, and passes the registry (or its caches) by reference to the
fetch dispatcher. There are no module-level cache singletons.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Callable, Dict

from rewardwatch.core.cache.ttl_cache import (
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    DEFAULT_TTL_SECONDS,
    TTLCache,
)
from rewardwatch.core.logging.logger import get_logger

if TYPE_CHECKING:
    from rewardwatch.modules.rewards.models import Campaign, CampaignId, Reward, RewardId

logger = get_logger(__name__)


class CacheRegistry:
    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rewards: TTLCache["RewardId", "Reward"] = TTLCache(
            "RewardsCache", ttl=ttl, sweep_interval=sweep_interval, clock=clock
        )
        self.campaigns: TTLCache["CampaignId", "Campaign"] = TTLCache(
            "CampaignsCache", ttl=ttl, sweep_interval=sweep_interval, clock=clock
        )

    def start(self, stop_event: asyncio.Event) -> None:
        self.rewards.start(stop_event)
        self.campaigns.start(stop_event)
        logger.info(
            "Cache sweepers started",
            extra={
                "ttl_seconds": self.rewards.ttl,
                "sweep_interval_seconds": self.rewards.sweep_interval,
            },
        )

    async def wait_stopped(self) -> None:
        """Wait for both sweepers to exit after the stop event fires."""
        await asyncio.gather(self.rewards.wait_stopped(), self.campaigns.wait_stopped())

    async def stop(self) -> None:
        await self.rewards.stop()
        await self.campaigns.stop()
        logger.info("Cache sweepers stopped", extra=self.summary())

    def summary(self) -> Dict[str, Any]:
        return {
            self.rewards.name: {"size": len(self.rewards), **self.rewards.stats.as_dict()},
            self.campaigns.name: {"size": len(self.campaigns), **self.campaigns.stats.as_dict()},
        }
