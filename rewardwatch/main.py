"""
RewardWatch - Application Entry Point
=====================================

Bootstrap order
---------------
1. Validate configuration
2. Initialize the database and create the schema
3. Build the caches and start their sweepers
4. Start the upstream API client
5. Build the dispatcher, tracking service and bot
6. The bot starts the update scheduler from its `setup_hook`

Shutdown
--------
SIGINT/SIGTERM set the shared stop event. The scheduler and cache sweepers
drain, then the bot, API client, caches and database are closed in that order.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from rewardwatch.bot.watch_bot import WatchBot
from rewardwatch.core.cache.registry import CacheRegistry
from rewardwatch.core.config.config import Config
from rewardwatch.core.database.service import DatabaseInitializationError, DatabaseService
from rewardwatch.core.logging.logger import get_logger, shutdown_logging
from rewardwatch.modules.rewards.client import RewardsClient
from rewardwatch.modules.rewards.dispatcher import FetchDispatcher
from rewardwatch.modules.tracking.service import TrackingService

logger = get_logger(__name__)

# seconds to let the scheduler finish an in-flight sweep
DRAIN_TIMEOUT_SECONDS = 30.0


@dataclass
class Runtime:
    stop_event: asyncio.Event
    caches: Optional[CacheRegistry] = None
    client: Optional[RewardsClient] = None
    bot: Optional[WatchBot] = None
    bot_task: Optional["asyncio.Task[None]"] = None


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup(runtime: Runtime) -> WatchBot:
    """Initialize all infrastructure components before launching the bot."""
    logger.info("========== REWARDWATCH INITIALIZATION START ==========")

    try:
        Config.validate(strict=True)
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    try:
        await DatabaseService.initialize()
        await DatabaseService.create_schema()
        if not await DatabaseService.health_check():
            raise DatabaseInitializationError("database did not answer the health check")
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    runtime.caches = CacheRegistry(
        ttl=Config.CACHE_TTL_SECONDS,
        sweep_interval=Config.CACHE_SWEEP_INTERVAL_SECONDS,
    )
    runtime.caches.start(runtime.stop_event)
    logger.info("✓ Caches started")

    try:
        runtime.client = RewardsClient()
        await runtime.client.start()
        logger.info("✓ API client started", extra={"base_url": runtime.client.base_url})
    except Exception as exc:
        logger.critical(f"API client startup failed: {exc}", exc_info=True)
        raise

    dispatcher = FetchDispatcher(
        runtime.client,
        runtime.caches.rewards,
        runtime.caches.campaigns,
        max_parallelism=Config.MAX_PARALLELISM,
    )
    tracking = TrackingService(dispatcher)
    runtime.bot = WatchBot(dispatcher, tracking, runtime.stop_event)
    logger.info("✓ Bot initialized")

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return runtime.bot


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown(runtime: Runtime) -> None:
    """Drain background work, then close everything in reverse dependency order."""
    logger.info("========== REWARDWATCH SHUTDOWN START ==========")
    runtime.stop_event.set()

    bot = runtime.bot
    if bot is not None and bot.scheduler is not None:
        await bot.scheduler.wait_stopped(timeout=DRAIN_TIMEOUT_SECONDS)
        logger.info("✓ Update scheduler drained")

    if runtime.caches is not None:
        try:
            await asyncio.wait_for(runtime.caches.wait_stopped(), timeout=DRAIN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Cache sweepers did not drain in time")

    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
            logger.info("✓ Bot closed")
        except Exception as exc:
            logger.error(f"Error while closing bot: {exc}", exc_info=True)

    if runtime.bot_task is not None and not runtime.bot_task.done():
        with contextlib.suppress(asyncio.CancelledError):
            await runtime.bot_task

    if runtime.client is not None:
        try:
            await runtime.client.close()
            logger.info("✓ API client closed")
        except Exception as exc:
            logger.error(f"API client shutdown error: {exc}", exc_info=True)

    if runtime.caches is not None:
        await runtime.caches.stop()
        logger.info("✓ Caches closed")

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================

def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            logger.debug(f"{sig.name} handler installed")
        except NotImplementedError:
            logger.debug(f"{sig.name} not supported on this platform")


async def main() -> None:
    """
    Run the bot until a stop signal arrives or the Discord connection ends.

    A failure during startup or inside the bot still runs the full shutdown
    sequence before the error propagates.
    """
    runtime = Runtime(stop_event=asyncio.Event())
    _install_signal_handlers(runtime.stop_event)

    try:
        bot = await _startup(runtime)

        logger.info("Starting RewardWatch Discord bot...")
        bot_task = asyncio.create_task(bot.start(Config.DISCORD_TOKEN), name="discord-bot")
        runtime.bot_task = bot_task
        stop_task = asyncio.create_task(runtime.stop_event.wait(), name="stop-event")

        done, _ = await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if bot_task in done:
            stop_task.cancel()
            # re-raise a login or connection failure
            bot_task.result()
        else:
            logger.info("Stop signal received")

    finally:
        await _shutdown(runtime)


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot manually stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Fatal error: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    run()
