"""
Bounded-parallelism fetch dispatcher.

Purpose
-------
Turn an arbitrary sequence of reward ids into a stream of classified
`RewardResult`s while never running more than `max_parallelism` upstream
lookups at once, reading through the rewards cache unless a refresh is forced.

Execution Model
---------------
- A launcher task consumes the id iterable lazily. Before each launch it checks
  the stop event, acquires one semaphore slot, checks the stop event again,
  and starts one lookup task.
- A lookup releases its slot only after its result has been handed to the
  result queue (bounded at `max_parallelism`), so a slow consumer slows the
  launcher down instead of buffering unbounded results.
- After the last launch the launcher waits for every lookup it started
  (completion barrier) and only then closes the stream. A caller never misses
  a result for a lookup that was launched.
- Setting the stop event stops new launches. In-flight lookups run to
  completion and their results are still delivered.
- Closing the generator early cancels the launcher and every pending lookup.

Result Semantics
----------------
- Results arrive in completion order, not request order.
- Upstream status failures become results with a non-FOUND status and are
  never cached.
- Infrastructure failures (connection errors, timeouts, undecodable payloads)
  are logged at ERROR and the id is omitted from the stream.
- Any other exception raised by a lookup is logged with its traceback and the
  id is omitted as well; no lookup task ends with an unretrieved exception.
"""

from __future__ import annotations

import asyncio
from typing import (
    AsyncIterator,
    Iterable,
    List,
    Optional,
    Protocol,
    Set,
    Union,
)

import aiohttp

from rewardwatch.core.cache.ttl_cache import TTLCache
from rewardwatch.core.exceptions import PayloadDecodeError, ResponseCodeError
from rewardwatch.core.logging.logger import get_logger
from rewardwatch.modules.rewards.classifier import classify_outcome
from rewardwatch.modules.rewards.models import (
    Campaign,
    CampaignId,
    Reward,
    RewardId,
    RewardResult,
    RewardStatus,
)

logger = get_logger(__name__)

LOOKUP_ERRORS = (
    ResponseCodeError,
    PayloadDecodeError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
)


class RewardSource(Protocol):
    async def fetch_reward(self, reward_id: RewardId) -> Reward: ...

    async def fetch_campaign(self, campaign_id: CampaignId) -> Campaign: ...


class _StreamClosed:
    pass


_CLOSED = _StreamClosed()

QueueItem = Union[RewardResult, _StreamClosed]


class FetchDispatcher:
    def __init__(
        self,
        client: RewardSource,
        rewards_cache: TTLCache[RewardId, Reward],
        campaigns_cache: TTLCache[CampaignId, Campaign],
        max_parallelism: int = 4,
    ) -> None:
        if max_parallelism < 1:
            raise ValueError("max_parallelism must be at least 1")
        self.client = client
        self.rewards_cache = rewards_cache
        self.campaigns_cache = campaigns_cache
        self.max_parallelism = max_parallelism

    # ========================================================================
    # Streams
    # ========================================================================

    async def fetch_many(
        self,
        ids: Iterable[int],
        force_refresh: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[RewardResult]:
        """Yield one result per launched id whose lookup was classifiable."""
        stop_event = cancel if cancel is not None else asyncio.Event()
        queue: asyncio.Queue[QueueItem] = asyncio.Queue(maxsize=self.max_parallelism)
        semaphore = asyncio.Semaphore(self.max_parallelism)

        launcher = asyncio.create_task(
            self._launch(ids, force_refresh, stop_event, semaphore, queue),
            name="fetch-dispatcher-launcher",
        )

        try:
            while True:
                item = await queue.get()
                if isinstance(item, _StreamClosed):
                    break
                yield item
        finally:
            if not launcher.done():
                launcher.cancel()
            outcome = (await asyncio.gather(launcher, return_exceptions=True))[0]
            if isinstance(outcome, Exception):
                raise outcome

    async def check_availability(
        self,
        ids: Iterable[int],
        force_refresh: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[RewardResult]:
        """Yield only failed lookups and rewards that are currently available."""
        stream = self.fetch_many(ids, force_refresh=force_refresh, cancel=cancel)
        try:
            async for result in stream:
                if result.status is not RewardStatus.FOUND or result.is_available():
                    yield result
        finally:
            await stream.aclose()

    async def collect(
        self,
        ids: Iterable[int],
        force_refresh: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[RewardResult]:
        return [
            result
            async for result in self.fetch_many(ids, force_refresh=force_refresh, cancel=cancel)
        ]

    # ========================================================================
    # Campaign lookups
    # ========================================================================

    async def fetch_campaign(
        self, campaign_id: CampaignId, force_refresh: bool = False
    ) -> Optional[Campaign]:
        """Read-through campaign lookup. Any failure yields None."""
        if not force_refresh:
            cached, found = self.campaigns_cache.get(campaign_id)
            if found:
                return cached

        try:
            campaign = await self.client.fetch_campaign(campaign_id)
        except ResponseCodeError as exc:
            logger.warning(
                "Campaign lookup failed",
                extra={"campaign_id": campaign_id, "status_code": exc.status_code},
            )
            return None
        except LOOKUP_ERRORS as exc:
            logger.error(
                "Error fetching campaign",
                extra={
                    "campaign_id": campaign_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return None

        if campaign.id != 0:
            self.campaigns_cache.set(campaign_id, campaign)
        return campaign

    # ========================================================================
    # Internals
    # ========================================================================

    async def _launch(
        self,
        ids: Iterable[int],
        force_refresh: bool,
        stop_event: asyncio.Event,
        semaphore: asyncio.Semaphore,
        queue: asyncio.Queue[QueueItem],
    ) -> None:
        tasks: Set[asyncio.Task[None]] = set()
        cancelled = False

        try:
            try:
                for raw_id in ids:
                    if stop_event.is_set():
                        break
                    await semaphore.acquire()
                    if stop_event.is_set():
                        semaphore.release()
                        break
                    tasks.add(
                        asyncio.create_task(
                            self._lookup(RewardId(int(raw_id)), force_refresh, semaphore, queue)
                        )
                    )
            finally:
                if tasks:
                    await asyncio.wait(tasks)

            logger.debug(
                "Fetch batch drained",
                extra={
                    "launched": len(tasks),
                    "force_refresh": force_refresh,
                    "stopped_early": stop_event.is_set(),
                },
            )

        except asyncio.CancelledError:
            cancelled = True
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        finally:
            if not cancelled:
                await queue.put(_CLOSED)

    async def _lookup(
        self,
        reward_id: RewardId,
        force_refresh: bool,
        semaphore: asyncio.Semaphore,
        queue: asyncio.Queue[QueueItem],
    ) -> None:
        try:
            try:
                result = await self._resolve(reward_id, force_refresh)
            except Exception as exc:
                logger.error(
                    "Unexpected error fetching reward; dropping from results",
                    extra={
                        "reward_id": reward_id,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=exc,
                )
                result = None
            if result is not None:
                await queue.put(result)
        finally:
            semaphore.release()

    async def _resolve(self, reward_id: RewardId, force_refresh: bool) -> Optional[RewardResult]:
        if not force_refresh:
            cached, found = self.rewards_cache.get(reward_id)
            if found:
                return RewardResult(id=reward_id, reward=cached, status=RewardStatus.FOUND)

        logger.debug("Fetching reward", extra={"reward_id": reward_id})

        reward: Optional[Reward] = None
        error: Optional[BaseException] = None
        try:
            reward = await self.client.fetch_reward(reward_id)
        except LOOKUP_ERRORS as exc:
            error = exc

        status = classify_outcome(reward, error)
        if status is None:
            # TODO: surface dropped ids to callers once the sweep can act on them
            logger.error(
                "Error fetching reward; dropping from results",
                extra={
                    "reward_id": reward_id,
                    "error": str(error),
                    "error_type": type(error).__name__,
                },
            )
            return None

        if status is not RewardStatus.FOUND:
            return RewardResult(id=reward_id, reward=None, status=status)

        assert reward is not None
        if reward.id != 0:
            self.rewards_cache.set(reward_id, reward)
        return RewardResult(id=reward_id, reward=reward, status=RewardStatus.FOUND)
