from rewardwatch.core.cache.registry import CacheRegistry
from rewardwatch.core.cache.ttl_cache import CacheEntry, CacheStats, TTLCache

__all__ = ["TTLCache", "CacheEntry", "CacheStats", "CacheRegistry"]
