"""
Core infrastructure layer for RewardWatch.

Configuration, logging, the exception hierarchy, the async database service
and the in-process TTL caches.
"""
