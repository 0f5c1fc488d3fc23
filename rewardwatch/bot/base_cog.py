"""
Base Discord Cog for RewardWatch

Purpose
-------
Common plumbing for feature cogs: standardized embed replies, a safe send
path and command-usage logging with Discord context.

Non-Responsibilities
--------------------
- Business logic (delegated to the service layer)
- Database access (services own their transactions)
"""

from __future__ import annotations

from typing import Optional

import discord
from discord.ext import commands

from rewardwatch.core.logging.logger import get_logger
from rewardwatch.ui.embeds import EmbedFactory


class BaseCog(commands.Cog):
    """Parent class for all feature cogs (prefix commands only)."""

    def __init__(self, bot: commands.Bot, cog_name: str):
        self.bot = bot
        self.cog_name = cog_name
        self.logger = get_logger(cog_name)

    # ========================================================================
    # USER FEEDBACK UTILITIES
    # ========================================================================

    async def send_error(
        self,
        ctx: commands.Context,
        title: str,
        description: str,
        help_text: Optional[str] = None,
    ) -> None:
        await self._safe_send(ctx, EmbedFactory.error(title, description, help_text=help_text))

    async def send_success(self, ctx: commands.Context, title: str, description: str) -> None:
        await self._safe_send(ctx, EmbedFactory.success(title, description))

    async def send_info(self, ctx: commands.Context, title: str, description: str) -> None:
        await self._safe_send(ctx, EmbedFactory.info(title, description))

    async def send_warning(self, ctx: commands.Context, title: str, description: str) -> None:
        await self._safe_send(ctx, EmbedFactory.warning(title, description))

    async def _safe_send(self, ctx: commands.Context, embed: discord.Embed) -> None:
        """Reply with an embed; a failed send is logged, never raised."""
        try:
            await ctx.send(embed=embed)
        except discord.HTTPException as e:
            self.logger.error(
                f"Failed to send embed in {self.cog_name}: {e}",
                extra={"discord_id": ctx.author.id, "status": getattr(e, "status", None)},
            )

    # ========================================================================
    # LOGGING UTILITIES
    # ========================================================================

    def log_command_use(self, command_name: str, user_id: int, **kwargs) -> None:
        self.logger.info(
            f"Command {command_name} used",
            extra={"discord_id": user_id, "cog": self.cog_name, **kwargs},
        )

    def log_cog_error(
        self, operation: str, error: BaseException, user_id: Optional[int] = None, **kwargs
    ) -> None:
        self.logger.error(
            f"Error in {self.cog_name}.{operation}: {error}",
            extra={
                "cog": self.cog_name,
                "operation_name": operation,
                "discord_id": user_id,
                "error_type": type(error).__name__,
                **kwargs,
            },
            exc_info=error,
        )
