"""
Notification transport.

Purpose
-------
Deliver "reward available" and "rewards missing" messages to a user. The
update job depends only on the `Notifier` protocol; `DiscordNotifier` is the
production implementation that sends direct messages through the bot.

Error contract
--------------
Any delivery failure is logged and re-raised as `NotificationDeliveryError`.
The update job then keeps the previous `last_notified`, so the next sweep
tries again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, Sequence

import discord

from rewardwatch.core.exceptions import NotificationDeliveryError
from rewardwatch.core.logging.logger import get_logger
from rewardwatch.ui.embeds import EmbedFactory

if TYPE_CHECKING:
    from rewardwatch.database.models import User
    from rewardwatch.modules.rewards.models import Campaign, RewardResult

logger = get_logger(__name__)


class Notifier(Protocol):
    async def notify_available(
        self, user: "User", result: "RewardResult", campaign: "Campaign"
    ) -> None: ...

    async def notify_missing(self, user: "User", results: Sequence["RewardResult"]) -> None: ...


class DiscordNotifier:
    def __init__(self, client: discord.Client, base_url: Optional[str] = None) -> None:
        self.client = client
        self.base_url = base_url

    async def notify_available(
        self, user: "User", result: "RewardResult", campaign: "Campaign"
    ) -> None:
        if result.reward is None:
            raise ValueError(f"available notification for {result.id} needs a reward")
        embed = EmbedFactory.reward_available(result.reward, campaign, base_url=self.base_url)
        await self._send(user.discord_id, "reward_available", embed)
        logger.info(
            "Availability notification sent",
            extra={"discord_id": user.discord_id, "reward_id": result.id},
        )

    async def notify_missing(self, user: "User", results: Sequence["RewardResult"]) -> None:
        if not results:
            return
        embed = EmbedFactory.rewards_missing(results)
        await self._send(user.discord_id, "rewards_missing", embed)
        logger.info(
            "Missing rewards notification sent",
            extra={
                "discord_id": user.discord_id,
                "reward_ids": [r.id for r in results],
            },
        )

    async def _send(self, discord_id: int, kind: str, embed: discord.Embed) -> None:
        try:
            recipient = self.client.get_user(discord_id) or await self.client.fetch_user(discord_id)
            await recipient.send(embed=embed)
        except discord.HTTPException as exc:
            logger.warning(
                "Notification delivery failed",
                extra={
                    "discord_id": discord_id,
                    "kind": kind,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise NotificationDeliveryError(discord_id, kind, exc) from exc
