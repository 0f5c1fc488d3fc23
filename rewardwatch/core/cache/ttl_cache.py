"""
In-process TTL cache with a background expiry sweeper.

Purpose
-------
Shield the upstream rewards API from redundant load. Entries live for a fixed
time-to-live; a read never returns an entry whose TTL has elapsed, whether or
not the sweeper has physically removed it yet.

Responsibilities
----------------
- Thread-safe get/set keyed by any hashable key
- Lazy expiry on read, eager expiry by `sweep()`
- Optional background sweeper task bound to a stop event
- Hit / miss / expired-read / eviction counters for the startup and shutdown logs

Design Notes
------------
- One `threading.Lock` per instance; no lock is ever shared between caches.
  Critical sections never await, so the lock is never held across a
  suspension point.
- Stored values are replaced, never mutated in place.
- The clock is injectable so tests can step time instead of sleeping.
- The sweeper wakes every `sweep_interval` seconds (coarser than the TTL) and
  stops as soon as its stop event is set.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from rewardwatch.core.logging.logger import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_TTL_SECONDS = 10 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 15 * 60


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired_reads: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total) * 100.0 if total else 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired_reads": self.expired_reads,
            "evictions": self.evictions,
            "hit_rate": round(self.hit_rate, 2),
        }


class TTLCache(Generic[K, V]):
    """
    Expiring key/value store.

    Example
    -------
    >>> cache: TTLCache[int, str] = TTLCache("RewardsCache", ttl=600)
    >>> cache.set(1, "one")
    >>> cache.get(1)
    ('one', True)
    """

    def __init__(
        self,
        name: str,
        ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")

        self.name = name
        self.ttl = float(ttl)
        self.sweep_interval = float(sweep_interval)
        self._clock = clock
        self._entries: Dict[K, CacheEntry[V]] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()
        self._sweeper: Optional[asyncio.Task[None]] = None

    # ========================================================================
    # Reads & Writes
    # ========================================================================

    def get(self, key: K) -> Tuple[Optional[V], bool]:
        """Return ``(value, True)`` for a live entry, ``(None, False)`` otherwise."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None, False
            if entry.expires_at <= now:
                self._stats.misses += 1
                self._stats.expired_reads += 1
                return None, False
            self._stats.hits += 1
            return entry.value, True

    def set(self, key: K, value: V) -> None:
        entry = CacheEntry(value=value, expires_at=self._clock() + self.ttl)
        with self._lock:
            self._entries[key] = entry

    def sweep(self) -> int:
        """Remove every physically expired entry and return how many were evicted."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
            self._stats.evictions += len(expired)
            remaining = len(self._entries)

        logger.info(
            f"{self.name} sweep complete",
            extra={"cache": self.name, "evicted": len(expired), "remaining": remaining},
        )
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                expired_reads=self._stats.expired_reads,
                evictions=self._stats.evictions,
            )

    # ========================================================================
    # Background Sweeper
    # ========================================================================

    @property
    def is_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self, stop_event: asyncio.Event) -> asyncio.Task[None]:
        """Launch the sweeper on the running loop. Calling it twice is a no-op."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        self._sweeper = asyncio.create_task(
            self._sweep_loop(stop_event), name=f"{self.name}-sweeper"
        )
        return self._sweeper

    async def stop(self) -> None:
        """Cancel the sweeper if it is still running and wait for it to exit."""
        task = self._sweeper
        self._sweeper = None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait_stopped(self) -> None:
        """Wait for the sweeper to exit on its own after the stop event fires."""
        if self._sweeper is not None:
            await self._sweeper

    async def _sweep_loop(self, stop_event: asyncio.Event) -> None:
        logger.debug(
            f"{self.name} sweeper started",
            extra={"cache": self.name, "interval_seconds": self.sweep_interval},
        )
        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.sweep_interval)
                except asyncio.TimeoutError:
                    self.sweep()
        finally:
            logger.debug(f"{self.name} sweeper stopped", extra={"cache": self.name})
