"""Structured, queue-backed logging and the per-task `LogContext`."""

from rewardwatch.core.logging.logger import (
    LogContext,
    LoggerConfig,
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "LogContext",
    "LoggerConfig",
]
