"""
Configuration subsystem for RewardWatch.

Static configuration is loaded from environment variables (with .env support)
by :class:`Config`. There is no dynamic configuration layer; changing a value
requires a restart.

Usage
-----
>>> from rewardwatch.core.config import Config
>>> Config.validate()
>>> Config.UPDATE_INTERVAL
120
"""

from rewardwatch.core.config.config import (
    UPDATE_INTERVAL_FLOOR_SECONDS,
    Config,
    Environment,
)

__all__ = [
    "Config",
    "Environment",
    "UPDATE_INTERVAL_FLOOR_SECONDS",
]
