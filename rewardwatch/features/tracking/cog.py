"""
Reward tracking commands.

Thin Discord surface over `TrackingService`: parse the invocation, call the
service, render the outcome with `EmbedFactory`. Domain exceptions raised by
the service are converted to embeds in `cog_command_error`.

Commands
--------
start                Register the invoking user
add <ids>            Track one or more reward ids
remove <ids>         Stop tracking reward ids
list                 Show tracked rewards grouped by campaign
reset_notifications  Re-arm "available" notifications for all tracked rewards
privacy              Show what is stored about the caller
"""

from __future__ import annotations

from discord.ext import commands

from rewardwatch.bot.base_cog import BaseCog
from rewardwatch.core.exceptions import RewardWatchInfrastructureException
from rewardwatch.core.logging.logger import LogContext
from rewardwatch.modules.shared.exceptions import (
    InvalidInputError,
    RewardWatchDomainException,
    UserNotRegisteredError,
)
from rewardwatch.modules.tracking.service import TrackingService
from rewardwatch.ui.embeds import EmbedFactory
from rewardwatch.ui.formatters import EMOJI_CHECK, format_id_list

PRIVACY_TEXT = (
    "This bot stores the following data about you:\n"
    "1. Your Discord user id (`{discord_id}`), so it can send you messages.\n"
    "2. Your language setting.\n"
    "3. The ids of the rewards you track. These are checked periodically "
    "and can be linked to a campaign and its creator.\n\n"
    "Nothing else is stored. Use `remove` to stop tracking rewards."
)


class TrackingCog(BaseCog):
    """Commands for managing tracked rewards."""

    def __init__(self, bot: commands.Bot, service: TrackingService):
        super().__init__(bot, self.__class__.__name__)
        self.service = service

    # ========================================================================
    # COMMANDS
    # ========================================================================

    @commands.command(name="start", aliases=["register"])
    async def start(self, ctx: commands.Context):
        """Register with the bot."""
        self.log_command_use("start", ctx.author.id)
        async with LogContext(user_id=ctx.author.id, command="start"):
            _, created = await self.service.register(ctx.author.id)

        if created:
            await self.send_success(
                ctx,
                "Welcome!",
                "You are now registered. Use `add <ids>` to track rewards; "
                "you will get a direct message when one of them has free slots.",
            )
        else:
            await self.send_info(ctx, "Welcome back!", "You are already registered.")

    @commands.command(name="add", aliases=["track"])
    async def add(self, ctx: commands.Context, *, ids: str = ""):
        """Track reward ids, separated by commas or spaces."""
        self.log_command_use("add", ctx.author.id, raw=ids)
        async with LogContext(user_id=ctx.author.id, command="add"):
            outcome = await self.service.add_rewards(ctx.author.id, ids)

        lines = []
        if outcome.added:
            lines.append(f"{EMOJI_CHECK} Now tracking: {format_id_list(outcome.added)}")
        if outcome.already_tracked:
            lines.append(f"Already tracked: {format_id_list(outcome.already_tracked)}")
        if outcome.rejected:
            lines.append(f"Could not be found: {format_id_list(outcome.rejected)}")

        if outcome.added:
            await self.send_success(ctx, "Rewards added", "\n".join(lines))
        elif outcome.rejected:
            await self.send_warning(ctx, "Nothing added", "\n".join(lines))
        else:
            await self.send_info(ctx, "Nothing new", "\n".join(lines))

    @commands.command(name="remove", aliases=["untrack"])
    async def remove(self, ctx: commands.Context, *, ids: str = ""):
        """Stop tracking reward ids."""
        self.log_command_use("remove", ctx.author.id, raw=ids)
        async with LogContext(user_id=ctx.author.id, command="remove"):
            removed = await self.service.remove_rewards(ctx.author.id, ids)

        if removed:
            await self.send_success(ctx, "Rewards removed", f"Removed: {format_id_list(removed)}")
        else:
            await self.send_info(ctx, "Nothing removed", "None of these rewards were tracked.")

    @commands.command(name="list", aliases=["ls"])
    async def list_(self, ctx: commands.Context):
        """List tracked rewards grouped by campaign."""
        self.log_command_use("list", ctx.author.id)
        async with LogContext(user_id=ctx.author.id, command="list"):
            overview = await self.service.list_rewards(ctx.author.id)

        if overview.groups or not overview.missing:
            await self._safe_send(ctx, EmbedFactory.tracked_list(overview.groups))
        if overview.missing:
            await self._safe_send(ctx, EmbedFactory.rewards_missing(overview.missing))

    @commands.command(name="reset_notifications", aliases=["reset"])
    async def reset_notifications(self, ctx: commands.Context):
        """Get notified again for rewards that are still available."""
        self.log_command_use("reset_notifications", ctx.author.id)
        async with LogContext(user_id=ctx.author.id, command="reset_notifications"):
            count = await self.service.reset_notifications(ctx.author.id)

        await self.send_success(
            ctx,
            "Notifications reset",
            f"Reset {count} tracked reward(s). Available rewards will be announced "
            "again on the next check.",
        )

    @commands.command(name="privacy")
    async def privacy(self, ctx: commands.Context):
        """Show what the bot stores about you."""
        await self.send_info(ctx, "Privacy", PRIVACY_TEXT.format(discord_id=ctx.author.id))

    # ========================================================================
    # ERROR HANDLING
    # ========================================================================

    async def cog_command_error(self, ctx: commands.Context, error: Exception):
        original = getattr(error, "original", error)

        if isinstance(original, UserNotRegisteredError):
            await self.send_error(ctx, "Not Registered", original.message)
        elif isinstance(original, InvalidInputError):
            await self.send_error(ctx, "Invalid Input", original.message)
        elif isinstance(original, RewardWatchDomainException):
            await self.send_error(ctx, "Error", original.message)
        elif isinstance(original, RewardWatchInfrastructureException):
            self.log_cog_error(ctx.command.name if ctx.command else "unknown", original, ctx.author.id)
            await self.send_error(
                ctx,
                "Temporarily unavailable",
                "The bot could not complete this request right now.",
                help_text="Please try again in a few minutes.",
            )
        elif isinstance(error, commands.CommandInvokeError):
            self.log_cog_error(ctx.command.name if ctx.command else "unknown", original, ctx.author.id)
            await self.send_error(
                ctx,
                "Unexpected Error",
                "Something went wrong while processing your command.",
                help_text="The issue has been logged.",
            )
        else:
            # framework errors fall through to the bot-level handler
            return

        # mark handled so the global handler stays quiet
        ctx.error_handled = True


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(TrackingCog(bot, bot.tracking_service))
