"""
RewardWatch Discord Bot

Handles Discord integration: prefix handling, cog loading, the creator-only
gate and bot-level error handling. The background update scheduler is started
from `setup_hook`, once the client can deliver direct messages.

Architecture:
- Discord integration and command handling in WatchBot
- Business logic in services passed in by the bootstrap (`rewardwatch.main`)
- Infrastructure lifecycle owned by the bootstrap, not the bot
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import discord
from discord.ext import commands

from rewardwatch.core.config.config import Config
from rewardwatch.core.logging.logger import LogContext, get_logger
from rewardwatch.modules.notifications.notifier import DiscordNotifier
from rewardwatch.modules.rewards.dispatcher import FetchDispatcher
from rewardwatch.modules.tracking.service import TrackingService
from rewardwatch.modules.updates.job import UpdateJob
from rewardwatch.modules.updates.scheduler import UpdateScheduler
from rewardwatch.ui.embeds import EmbedFactory

logger = get_logger(__name__)

EXTENSIONS: List[str] = [
    "rewardwatch.features.tracking.cog",
]

# reachable for everyone, even in creator-only mode
PUBLIC_COMMANDS = frozenset({"privacy"})

NOT_PUBLIC_MESSAGE = (
    "This bot is not yet available for the public. If you are interested, "
    "please contact this bot's creator (see bot description)."
)


class CreatorOnlyFailure(commands.CheckFailure):
    """Raised by the global check when creator-only mode rejects a caller."""


class WatchBot(commands.Bot):
    """
    Prefix-command bot that tracks rewards and delivers notifications by DM.

    Args:
        dispatcher: Shared fetch dispatcher (cache-backed)
        tracking_service: Service behind the tracking commands
        stop_event: Process-wide stop token shared with caches and scheduler
    """

    def __init__(
        self,
        dispatcher: FetchDispatcher,
        tracking_service: TrackingService,
        stop_event: asyncio.Event,
    ):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.dm_messages = True

        super().__init__(
            command_prefix=commands.when_mentioned_or(Config.COMMAND_PREFIX),
            intents=intents,
            case_insensitive=True,
            strip_after_prefix=True,
            description=Config.BOT_DESCRIPTION,
        )

        self.dispatcher = dispatcher
        self.tracking_service = tracking_service
        self.stop_event = stop_event
        self.notifier = DiscordNotifier(self)
        self.scheduler: Optional[UpdateScheduler] = None
        self.errors_by_type: Dict[str, int] = {}

        self.add_check(self._creator_only_check)

    # --------------------------------------------------------------- #
    # Startup
    # --------------------------------------------------------------- #

    async def setup_hook(self):
        for extension in EXTENSIONS:
            try:
                await self.load_extension(extension)
                logger.info(f"✓ Loaded {extension}")
            except commands.ExtensionError as e:
                logger.critical(f"❌ Failed to load {extension}: {e}", exc_info=True)
                raise

        job = UpdateJob(self.dispatcher, self.notifier)
        self.scheduler = UpdateScheduler(job, Config.UPDATE_INTERVAL, self.stop_event)
        self.scheduler.start()
        logger.info("✓ Update scheduler started")

    async def on_ready(self):
        logger.info("=" * 60)
        logger.info(f"✅ {self.user} is ONLINE")
        logger.info(f"🆔 Bot ID: {self.user.id if self.user else 'unknown'}")
        logger.info("=" * 60)

    # --------------------------------------------------------------- #
    # Creator-only gate
    # --------------------------------------------------------------- #

    async def _creator_only_check(self, ctx: commands.Context) -> bool:
        if not Config.creator_only_enabled():
            return True
        if ctx.command is not None and ctx.command.qualified_name in PUBLIC_COMMANDS:
            return True
        if ctx.author.id == Config.CREATOR_ID:
            return True
        raise CreatorOnlyFailure(NOT_PUBLIC_MESSAGE)

    # --------------------------------------------------------------- #
    # Error Handling - Prefix Commands
    # --------------------------------------------------------------- #

    async def on_command_error(self, ctx: commands.Context, error: Exception):
        """Global handler for errors the cog handlers left alone."""
        if getattr(ctx, "error_handled", False):
            return
        if isinstance(error, commands.CommandNotFound):
            return

        async with LogContext(
            user_id=ctx.author.id,
            command=f"prefix:{ctx.command}" if ctx.command else "unknown",
        ):
            original = getattr(error, "original", error)
            error_type = type(original).__name__
            self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1

            if isinstance(error, CreatorOnlyFailure):
                logger.info("Rejected caller in creator-only mode", extra={"discord_id": ctx.author.id})
                return await self._reply(ctx, EmbedFactory.warning("Not available", NOT_PUBLIC_MESSAGE))

            if isinstance(error, commands.MissingRequiredArgument):
                return await self._reply(
                    ctx,
                    EmbedFactory.error(
                        "Missing Argument", f"Missing required argument: `{error.param.name}`"
                    ),
                )

            if isinstance(error, commands.UserInputError):
                return await self._reply(ctx, EmbedFactory.error("Invalid Input", str(error)))

            if isinstance(error, commands.CheckFailure):
                return await self._reply(
                    ctx,
                    EmbedFactory.error("Permission Denied", "You cannot use this command."),
                )

            logger.error(
                f"Unhandled error in {ctx.command}: {original}",
                exc_info=original,
                extra={"error_type": error_type},
            )
            await self._reply(
                ctx,
                EmbedFactory.error(
                    "Unexpected Error",
                    "Something went wrong while processing your command.",
                    help_text="The issue has been logged.",
                ),
            )

    async def _reply(self, ctx: commands.Context, embed: discord.Embed) -> None:
        try:
            await ctx.send(embed=embed)
        except discord.HTTPException as e:
            logger.warning(f"Failed to send error reply: {e}")

    # --------------------------------------------------------------- #
    # Shutdown
    # --------------------------------------------------------------- #

    async def close(self):
        self.stop_event.set()
        if self.errors_by_type:
            logger.info("Command errors by type", extra={"errors_by_type": dict(self.errors_by_type)})
        await super().close()
        logger.info("✓ Discord connection closed")
