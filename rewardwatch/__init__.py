"""
RewardWatch: a Discord bot that watches membership rewards and sends a direct
message when a tracked reward has free slots again.
"""

__version__ = "1.0.0"
