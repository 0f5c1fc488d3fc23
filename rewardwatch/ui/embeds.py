"""
Embed factory for RewardWatch messages.

Features:
- Consistent colors and footer
- Automatic Discord limit enforcement
- Builders for the three notification shapes: reward available, rewards
  missing, and the tracked-rewards overview

Usage:
    >>> from rewardwatch.ui.embeds import EmbedFactory
    >>> embed = EmbedFactory.success("Tracking", "Now tracking `10206990`")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional, Sequence

import discord

from rewardwatch.core.config.config import Config
from rewardwatch.ui.formatters import (
    EMBED_DESCRIPTION_LIMIT,
    EMBED_FIELD_NAME_LIMIT,
    EMBED_FIELD_VALUE_LIMIT,
    EMBED_FOOTER_LIMIT,
    EMBED_MAX_FIELDS,
    EMBED_TITLE_LIMIT,
    EMOJI_BELL,
    EMOJI_WARNING,
    escape,
    join_lines,
    truncate,
)

if TYPE_CHECKING:
    from rewardwatch.modules.rewards.models import Campaign, Reward, RewardResult


class EmbedColor:
    DEFAULT = 0x5865F2
    SUCCESS = 0x57F287
    ERROR = 0xED4245
    WARNING = 0xFEE75C
    INFO = 0x3498DB
    AVAILABLE = 0xF96854


@dataclass
class CampaignGroup:
    """Rewards of one campaign, as shown by the `list` command."""

    campaign: "Campaign"
    rewards: List["Reward"] = field(default_factory=list)


class EmbedFactory:
    """Factory for standardized embeds. Every embed carries a timestamp."""

    @staticmethod
    def _base_embed(
        title: str,
        description: str,
        color: int,
        footer: Optional[str] = None,
        url: Optional[str] = None,
    ) -> discord.Embed:
        embed = discord.Embed(
            title=truncate(title, EMBED_TITLE_LIMIT),
            description=truncate(description, EMBED_DESCRIPTION_LIMIT),
            color=color,
            url=url or None,
            timestamp=datetime.now(timezone.utc),
        )
        embed.set_footer(text=truncate(footer or f"{Config.BOT_NAME} v{Config.BOT_VERSION}", EMBED_FOOTER_LIMIT))
        return embed

    # =========================================================================
    # CORE TYPES
    # =========================================================================

    @staticmethod
    def success(title: str, description: str) -> discord.Embed:
        return EmbedFactory._base_embed(title, description, EmbedColor.SUCCESS)

    @staticmethod
    def error(title: str, description: str, help_text: Optional[str] = None) -> discord.Embed:
        desc = description
        if help_text:
            desc += f"\n\n**Help:** {help_text}"
        return EmbedFactory._base_embed(title, desc, EmbedColor.ERROR)

    @staticmethod
    def warning(title: str, description: str) -> discord.Embed:
        return EmbedFactory._base_embed(title, description, EmbedColor.WARNING)

    @staticmethod
    def info(title: str, description: str) -> discord.Embed:
        return EmbedFactory._base_embed(title, description, EmbedColor.INFO)

    # =========================================================================
    # REWARD NOTIFICATIONS
    # =========================================================================

    @staticmethod
    def reward_available(
        reward: "Reward",
        campaign: "Campaign",
        base_url: Optional[str] = None,
    ) -> discord.Embed:
        """A tracked reward has free slots."""
        checkout_url = reward.full_url(base_url or Config.API_BASE_URL)
        title = f"{EMOJI_BELL} {reward.title or f'Reward {reward.id}'} is available"
        description = (
            f"A slot opened up for **{escape(reward.title)}** "
            f"by [{escape(campaign.name)}]({campaign.url})."
        )

        embed = EmbedFactory._base_embed(title, description, EmbedColor.AVAILABLE, url=checkout_url)
        embed.add_field(name="Price", value=reward.formatted_amount(), inline=True)
        if reward.user_limit > 0:
            embed.add_field(
                name="Remaining",
                value=f"{reward.remaining} / {reward.user_limit}",
                inline=True,
            )
        else:
            embed.add_field(name="Remaining", value=str(reward.remaining), inline=True)
        embed.add_field(name="Checkout", value=f"[Pledge now]({checkout_url})", inline=False)

        if reward.image_url:
            embed.set_thumbnail(url=reward.image_url)
        elif campaign.image_url:
            embed.set_thumbnail(url=campaign.image_url)
        return embed

    @staticmethod
    def rewards_missing(results: Sequence["RewardResult"]) -> discord.Embed:
        """Rewards that could not be found or resolved, one line each with a reason."""
        lines = []
        for result in results:
            label = f"`{result.id}`"
            if result.reward is not None and result.reward.title:
                label += f" ({escape(result.reward.title)})"
            lines.append(f"• {label}: {result.status.reason}")

        description = (
            "These tracked rewards are currently missing or erroring:\n"
            + join_lines(lines, EMBED_DESCRIPTION_LIMIT - 80)
        )
        return EmbedFactory._base_embed(
            f"{EMOJI_WARNING} Rewards missing", description, EmbedColor.WARNING
        )

    @staticmethod
    def tracked_list(groups: Sequence[CampaignGroup], base_url: Optional[str] = None) -> discord.Embed:
        """Overview of everything a user tracks, one field per campaign."""
        if not groups:
            return EmbedFactory.info("Tracked rewards", "You are not tracking any rewards yet.")

        total = sum(len(group.rewards) for group in groups)
        embed = EmbedFactory._base_embed(
            "Tracked rewards",
            f"Tracking **{total}** reward(s) across **{len(groups)}** campaign(s).",
            EmbedColor.INFO,
        )

        for group in groups[:EMBED_MAX_FIELDS]:
            lines = []
            for reward in group.rewards:
                marker = "🟢" if reward.is_available() else "⚪"
                lines.append(
                    f"{marker} [{escape(reward.title) or reward.id}]"
                    f"({reward.full_url(base_url or Config.API_BASE_URL)}) "
                    f"`{reward.id}` {reward.formatted_amount()}"
                )
            embed.add_field(
                name=truncate(group.campaign.name or f"Campaign {group.campaign.id}", EMBED_FIELD_NAME_LIMIT),
                value=join_lines(lines, EMBED_FIELD_VALUE_LIMIT),
                inline=False,
            )

        if len(groups) > EMBED_MAX_FIELDS:
            embed.set_footer(text=f"{len(groups) - EMBED_MAX_FIELDS} more campaign(s) not shown")
        return embed
