"""
HTTP client for the upstream rewards API.

Purpose
-------
Issue single-entity lookups (`/api/rewards/{id}`, `/api/campaigns/{id}`) over
one shared `aiohttp.ClientSession` and decode them into wire models.

Error contract
--------------
- 2xx with a decodable envelope -> entity
- any other status -> `ResponseCodeError`; the body is never read
- 2xx with an empty, non-UTF-8, malformed or misshaped body -> `PayloadDecodeError`
- connection failures / timeouts -> `aiohttp.ClientError` / `asyncio.TimeoutError`
  propagate unchanged

No retries are attempted; a failed lookup is classified by the caller and
retried on the next sweep.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import aiohttp

from rewardwatch.core.config.config import Config
from rewardwatch.core.exceptions import PayloadDecodeError, ResponseCodeError
from rewardwatch.core.logging.logger import get_logger
from rewardwatch.modules.rewards.models import (
    Campaign,
    CampaignId,
    Reward,
    RewardId,
    unwrap_envelope,
)

logger = get_logger(__name__)


class RewardsClient:
    """
    Thin async client around one `aiohttp.ClientSession`.

    Usage
    -----
    >>> async with RewardsClient() as client:
    ...     reward = await client.fetch_reward(RewardId(10206990))
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = (base_url or Config.API_BASE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds if timeout_seconds is not None else Config.API_TIMEOUT_SECONDS
        )
        self._session = session
        self._owns_session = session is None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": f"{Config.BOT_NAME}/{Config.BOT_VERSION}"},
            )
            self._owns_session = True
            logger.info("RewardsClient session opened", extra={"base_url": self.base_url})

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            logger.info("RewardsClient session closed")
        self._session = None

    async def __aenter__(self) -> "RewardsClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ========================================================================
    # Lookups
    # ========================================================================

    def reward_url(self, reward_id: int) -> str:
        return f"{self.base_url}/api/rewards/{int(reward_id)}"

    def campaign_url(self, campaign_id: int) -> str:
        return f"{self.base_url}/api/campaigns/{int(campaign_id)}"

    async def fetch_reward(self, reward_id: RewardId) -> Reward:
        payload = await self._get_json(self.reward_url(reward_id))
        return Reward.from_api(unwrap_envelope(payload))

    async def fetch_campaign(self, campaign_id: CampaignId) -> Campaign:
        payload = await self._get_json(self.campaign_url(campaign_id))
        return Campaign.from_api(unwrap_envelope(payload))

    async def _get_json(self, url: str) -> Any:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None

        async with self._session.get(url) as response:
            if not 200 <= response.status < 300:
                logger.debug(
                    "Upstream returned an error status",
                    extra={"url": url, "status_code": response.status},
                )
                raise ResponseCodeError(response.status, url=url)
            body = await response.read()

        try:
            return json.loads(body)
        except ValueError as exc:
            # UnicodeDecodeError is a ValueError
            raise PayloadDecodeError(f"invalid JSON from {url}: {exc}", body) from exc
