"""
Bot package: the Discord client and the shared cog base class.
"""

from rewardwatch.bot.base_cog import BaseCog
from rewardwatch.bot.watch_bot import WatchBot

__all__ = ["BaseCog", "WatchBot"]
