"""
Pytest Configuration and Fixtures for RewardWatch Tests
=======================================================

Purpose
-------
Shared fixtures for the unit and integration suites: simulated clocks, a
throwaway SQLite database behind `DatabaseService`, a recording notifier,
reward/campaign factories, an instrumented fake upstream and a stub HTTP
server that serves the JSON files under `tests/stubs/`.

Architecture Notes
------------------
- Unit tests use fakes and `mocker` (fast, isolated)
- Integration tests use a real SQLite file and a real aiohttp server
- The database is a file under `tmp_path` so concurrent per-user
  transactions get their own connections
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Set, Tuple

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_COLORS", "false")

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from rewardwatch.core.cache.registry import CacheRegistry
from rewardwatch.core.database.service import DatabaseService
from rewardwatch.core.exceptions import NotificationDeliveryError, ResponseCodeError
from rewardwatch.core.logging.logger import get_logger
from rewardwatch.modules.rewards.dispatcher import FetchDispatcher
from rewardwatch.modules.rewards.models import Campaign, CampaignId, Reward, RewardId

logger = get_logger(__name__)

STUBS_DIR = Path(__file__).parent / "stubs"

FORBIDDEN_REWARD_IDS = {1000, 2000, 3000}
RATE_LIMITED_ID = 4290
MALFORMED_ID = 5000
BAD_GATEWAY_ID = 5020
UNDECODABLE_NOT_FOUND_ID = 4040
UNDECODABLE_ID = 5001
NO_CONTENT_ID = 2040


# ============================================================================
# CLOCKS
# ============================================================================


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """UTC wall clock for the update job."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


# ============================================================================
# FACTORIES
# ============================================================================


def make_reward(
    reward_id: int = 10206990,
    remaining: int = 0,
    campaign_id: int = 3876079,
    **overrides: Any,
) -> Reward:
    fields: Dict[str, Any] = {
        "id": RewardId(reward_id),
        "amount_cents": 6000,
        "remaining": remaining,
        "title": f"Reward {reward_id}",
        "campaign_id": CampaignId(campaign_id),
        "currency": "EUR",
        "url": f"/checkout/Test?rid={reward_id}",
        "user_limit": 5,
        "published": True,
    }
    fields.update(overrides)
    return Reward(**fields)


def make_campaign(campaign_id: int = 3876079, name: str = "NommzArts", **overrides: Any) -> Campaign:
    fields: Dict[str, Any] = {
        "id": CampaignId(campaign_id),
        "name": name,
        "url": f"https://www.patreon.com/{name}",
    }
    fields.update(overrides)
    return Campaign(**fields)


@pytest.fixture
def reward_factory() -> Callable[..., Reward]:
    return make_reward


@pytest.fixture
def campaign_factory() -> Callable[..., Campaign]:
    return make_campaign


# ============================================================================
# FAKE UPSTREAM
# ============================================================================


class FakeRewardSource:
    """
    In-memory stand-in for `RewardsClient`.

    `rewards` / `campaigns` map ids to a value or an exception instance to
    raise. Unknown ids raise a 404. Every call waits on `gate` (set by default)
    and sleeps `delay` seconds, so tests can hold lookups in flight and observe
    the concurrency high-water mark in `max_in_flight`.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.rewards: Dict[int, Any] = {}
        self.campaigns: Dict[int, Any] = {}
        self.delay = delay
        self.gate = asyncio.Event()
        self.gate.set()
        self.reward_calls: List[int] = []
        self.campaign_calls: List[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.started: Set[int] = set()

    def add_reward(self, reward: Reward) -> Reward:
        self.rewards[reward.id] = reward
        return reward

    def add_campaign(self, campaign: Campaign) -> Campaign:
        self.campaigns[campaign.id] = campaign
        return campaign

    async def fetch_reward(self, reward_id: RewardId) -> Reward:
        self.reward_calls.append(reward_id)
        self.started.add(reward_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            return self._resolve(self.rewards, reward_id)
        finally:
            self.in_flight -= 1

    async def fetch_campaign(self, campaign_id: CampaignId) -> Campaign:
        self.campaign_calls.append(campaign_id)
        return self._resolve(self.campaigns, campaign_id)

    @staticmethod
    def _resolve(table: Dict[int, Any], key: int) -> Any:
        value = table.get(key)
        if value is None:
            raise ResponseCodeError(404, url=f"fake://{key}")
        if isinstance(value, BaseException):
            raise value
        return value


@pytest.fixture
def fake_source() -> FakeRewardSource:
    return FakeRewardSource()


@pytest.fixture
def caches(fake_clock: FakeClock) -> CacheRegistry:
    return CacheRegistry(ttl=600, sweep_interval=900, clock=fake_clock)


@pytest.fixture
def dispatcher(fake_source: FakeRewardSource, caches: CacheRegistry) -> FetchDispatcher:
    return FetchDispatcher(fake_source, caches.rewards, caches.campaigns, max_parallelism=4)


# ============================================================================
# NOTIFIER
# ============================================================================


class FakeNotifier:
    """Records deliveries; `fail_available` / `fail_missing` simulate DM failures."""

    def __init__(self) -> None:
        self.available: List[Tuple[int, int, int]] = []
        self.missing: List[Tuple[int, List[int]]] = []
        self.fail_available = False
        self.fail_missing = False

    async def notify_available(self, user, result, campaign) -> None:
        if self.fail_available:
            raise NotificationDeliveryError(user.discord_id, "reward_available", RuntimeError("dm closed"))
        self.available.append((user.discord_id, result.id, campaign.id))

    async def notify_missing(self, user, results) -> None:
        if self.fail_missing:
            raise NotificationDeliveryError(user.discord_id, "rewards_missing", RuntimeError("dm closed"))
        self.missing.append((user.discord_id, [r.id for r in results]))


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[type[DatabaseService], None]:
    """
    Initialize `DatabaseService` on a fresh SQLite file with the schema created.

    Scope: function (clean slate per test)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'rewardwatch-test.db'}"
    await DatabaseService.initialize(url=url)
    await DatabaseService.create_schema()

    yield DatabaseService

    await DatabaseService.shutdown()


# ============================================================================
# STUB UPSTREAM SERVER (Integration Tests)
# ============================================================================


def _stub_response(kind: str, raw_id: str) -> web.Response:
    path = STUBS_DIR / kind / f"{raw_id}.json"
    if not raw_id.isdigit() or not path.is_file():
        return web.Response(status=404, text="not found")
    return web.Response(status=200, text=path.read_text(encoding="utf-8"), content_type="application/json")


async def _reward_handler(request: web.Request) -> web.Response:
    request.app["hits"].append(request.path)
    raw_id = request.match_info["reward_id"]
    if raw_id.isdigit():
        reward_id = int(raw_id)
        if reward_id in FORBIDDEN_REWARD_IDS:
            return web.Response(status=403, text="forbidden")
        if reward_id == RATE_LIMITED_ID:
            return web.Response(status=429, text="slow down")
        if reward_id == BAD_GATEWAY_ID:
            return web.Response(status=502, text="bad gateway")
        if reward_id == MALFORMED_ID:
            return web.Response(status=200, text="{not json", content_type="application/json")
        if reward_id == UNDECODABLE_NOT_FOUND_ID:
            return web.Response(status=404, body=b"\xff\xfe\xfa not utf8")
        if reward_id == UNDECODABLE_ID:
            return web.Response(status=200, body=b"\xff\xfe\xfa", content_type="application/json")
        if reward_id == NO_CONTENT_ID:
            return web.Response(status=204)
    return _stub_response("rewards", raw_id)


async def _campaign_handler(request: web.Request) -> web.Response:
    request.app["hits"].append(request.path)
    return _stub_response("campaigns", request.match_info["campaign_id"])


@pytest_asyncio.fixture
async def stub_server() -> AsyncGenerator[TestServer, None]:
    """Real HTTP server mimicking the upstream rewards API."""
    app = web.Application()
    app["hits"] = []
    app.router.add_get("/api/rewards/{reward_id}", _reward_handler)
    app.router.add_get("/api/campaigns/{campaign_id}", _campaign_handler)

    server = TestServer(app)
    await server.start_server()
    logger.debug("Stub upstream started", extra={"url": str(server.make_url("/"))})

    yield server

    await server.close()


# ============================================================================
# DISCORD.PY MOCK FIXTURES (Cog Tests)
# ============================================================================


@pytest.fixture
def mock_bot(mocker):
    mock_bot = mocker.MagicMock()
    mock_bot.user = mocker.MagicMock()
    mock_bot.user.id = 123456789
    mock_bot.user.name = "RewardWatchTest"
    return mock_bot


@pytest.fixture
def mock_context(mocker, mock_bot):
    mock_ctx = mocker.MagicMock()
    mock_ctx.bot = mock_bot
    mock_ctx.author = mocker.MagicMock()
    mock_ctx.author.id = 987654321
    mock_ctx.author.name = "TestUser"
    mock_ctx.send = mocker.AsyncMock()
    mock_ctx.error_handled = False
    return mock_ctx
