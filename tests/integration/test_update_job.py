"""
Integration tests for UpdateJob and UpdateScheduler.

End-to-end sweeps over a real SQLite database, the fake upstream and the
recording notifier from conftest.
"""

import asyncio

import pytest

from rewardwatch.core.config.config import UPDATE_INTERVAL_FLOOR_SECONDS
from rewardwatch.core.database.service import DatabaseService
from rewardwatch.core.exceptions import ResponseCodeError
from rewardwatch.modules.tracking.repository import TrackedRewardRepository, UserRepository
from rewardwatch.modules.updates.job import SweepReport, UpdateJob
from rewardwatch.modules.updates.scheduler import UpdateScheduler
from tests.conftest import make_campaign, make_reward

ALICE = 1001
BOB = 1002


@pytest.fixture
def job(database, dispatcher, fake_notifier, wall_clock):
    return UpdateJob(dispatcher, fake_notifier, clock=wall_clock)


async def seed(discord_id: int, *reward_ids: int) -> None:
    async with DatabaseService.get_transaction() as session:
        users = UserRepository()
        user = await users.find_by_discord_id(session, discord_id)
        if user is None:
            user = await users.create(session, discord_id)
        TrackedRewardRepository().track(session, user.id, reward_ids)


async def row_for(discord_id: int, reward_id: int):
    async with DatabaseService.get_session() as session:
        user = await UserRepository().find_by_discord_id(session, discord_id)
        return await TrackedRewardRepository().find(session, user.id, reward_id)


@pytest.mark.integration
class TestAvailableNotifications:
    async def test_notifies_once_per_window(self, job, fake_source, fake_notifier, wall_clock):
        await seed(ALICE, 1)
        fake_source.add_campaign(make_campaign(10))
        fake_source.add_reward(make_reward(reward_id=1, remaining=2, campaign_id=10))

        await job.run_sweep()
        wall_clock.advance(minutes=2)
        await job.run_sweep()

        assert fake_notifier.available == [(ALICE, 1, 10)]
        row = await row_for(ALICE, 1)
        assert row.available_since is not None
        assert row.last_notified == row.available_since

    async def test_reopened_window_notifies_again(self, job, fake_source, fake_notifier, wall_clock):
        await seed(ALICE, 1)
        fake_source.add_campaign(make_campaign(10))

        for remaining in (0, 5, 0, 5):
            fake_source.add_reward(make_reward(reward_id=1, remaining=remaining, campaign_id=10))
            await job.run_sweep()
            wall_clock.advance(minutes=2)

        assert len(fake_notifier.available) == 2

    async def test_failed_delivery_is_retried(self, job, fake_source, fake_notifier, wall_clock):
        await seed(ALICE, 1)
        fake_source.add_campaign(make_campaign(10))
        fake_source.add_reward(make_reward(reward_id=1, remaining=2, campaign_id=10))

        fake_notifier.fail_available = True
        first = await job.run_sweep()
        assert (await row_for(ALICE, 1)).last_notified is None

        fake_notifier.fail_available = False
        wall_clock.advance(minutes=2)
        await job.run_sweep()

        assert first.available_notifications == 0
        assert fake_notifier.available == [(ALICE, 1, 10)]

    async def test_sweep_refreshes_from_upstream(self, job, fake_source, dispatcher):
        await seed(ALICE, 1)
        fake_source.add_campaign(make_campaign(10))
        fake_source.add_reward(make_reward(reward_id=1, campaign_id=10))
        await dispatcher.collect([1])

        await job.run_sweep()

        assert fake_source.reward_calls == [1, 1]


@pytest.mark.integration
class TestMissingNotifications:
    async def test_reported_once_in_one_message(self, job, fake_source, fake_notifier, wall_clock):
        await seed(ALICE, 1, 2, 3)
        fake_source.rewards[1] = ResponseCodeError(404)
        fake_source.rewards[2] = ResponseCodeError(403)
        fake_source.add_reward(make_reward(reward_id=3, remaining=0))

        await job.run_sweep()
        wall_clock.advance(minutes=2)
        await job.run_sweep()

        assert len(fake_notifier.missing) == 1
        discord_id, ids = fake_notifier.missing[0]
        assert discord_id == ALICE and sorted(ids) == [1, 2]
        assert (await row_for(ALICE, 1)).is_missing
        assert not (await row_for(ALICE, 3)).is_missing

    async def test_failed_missing_delivery_is_reported_again(self, job, fake_source, fake_notifier):
        await seed(ALICE, 1)
        fake_source.rewards[1] = ResponseCodeError(404)

        fake_notifier.fail_missing = True
        await job.run_sweep()
        assert not (await row_for(ALICE, 1)).is_missing

        fake_notifier.fail_missing = False
        await job.run_sweep()
        assert fake_notifier.missing == [(ALICE, [1])]

    async def test_override_reward_without_campaign_is_missing(self, job, fake_source, fake_notifier):
        await seed(ALICE, 7790866)
        fake_source.add_reward(make_reward(reward_id=7790866, remaining=0, campaign_id=0))

        await job.run_sweep()

        assert fake_notifier.available == []
        assert fake_notifier.missing == [(ALICE, [7790866])]

    async def test_unresolvable_campaign_is_missing(self, job, fake_source, fake_notifier):
        await seed(ALICE, 1)
        fake_source.add_reward(make_reward(reward_id=1, remaining=3, campaign_id=77))

        await job.run_sweep()

        assert fake_notifier.available == []
        assert fake_notifier.missing == [(ALICE, [1])]
        assert (await row_for(ALICE, 1)).available_since is None

    async def test_recovered_reward_clears_flag(self, job, fake_source, wall_clock):
        await seed(ALICE, 1)
        fake_source.rewards[1] = ResponseCodeError(404)
        await job.run_sweep()

        fake_source.add_reward(make_reward(reward_id=1, remaining=0))
        wall_clock.advance(minutes=2)
        await job.run_sweep()

        assert not (await row_for(ALICE, 1)).is_missing


@pytest.mark.integration
class TestRateLimit:
    async def test_rate_limit_leaves_row_untouched(self, job, fake_source, fake_notifier, wall_clock):
        await seed(ALICE, 1)
        fake_source.add_campaign(make_campaign(10))
        fake_source.add_reward(make_reward(reward_id=1, remaining=2, campaign_id=10))
        await job.run_sweep()
        before = await row_for(ALICE, 1)

        fake_source.rewards[1] = ResponseCodeError(429)
        wall_clock.advance(minutes=2)
        report = await job.run_sweep()

        after = await row_for(ALICE, 1)
        assert report.rate_limited == 1
        assert (after.is_missing, after.available_since, after.last_notified) == (
            before.is_missing,
            before.available_since,
            before.last_notified,
        )
        assert fake_notifier.missing == []


@pytest.mark.integration
class TestSweepIsolation:
    async def test_users_are_swept_independently(self, job, fake_source, fake_notifier, mocker):
        await seed(ALICE, 1)
        await seed(BOB, 1)
        fake_source.add_campaign(make_campaign(10))
        fake_source.add_reward(make_reward(reward_id=1, remaining=2, campaign_id=10))

        original = fake_notifier.notify_available

        async def explode_for_bob(user, result, campaign):
            if user.discord_id == BOB:
                raise RuntimeError("boom")
            await original(user, result, campaign)

        mocker.patch.object(fake_notifier, "notify_available", side_effect=explode_for_bob)

        report = await job.run_sweep()

        assert report.users_processed == 1
        assert report.users_failed == 1
        assert (await row_for(ALICE, 1)).last_notified is not None
        # Bob's transaction rolled back
        assert (await row_for(BOB, 1)).last_notified is None

    async def test_stop_event_prevents_lookups(self, job, fake_source):
        await seed(ALICE, 1)
        fake_source.add_reward(make_reward(reward_id=1))
        stop = asyncio.Event()
        stop.set()

        report = await job.run_sweep(stop)

        assert fake_source.reward_calls == []
        assert report.rewards_checked == 0

    async def test_no_users(self, job):
        report = await job.run_sweep()

        assert isinstance(report, SweepReport)
        assert report.users_processed == 0
        assert report.finished_at is not None


class TestUpdateScheduler:
    def test_interval_is_clamped(self, mocker):
        scheduler = UpdateScheduler(mocker.MagicMock(), 5, asyncio.Event())

        assert scheduler.interval_seconds == UPDATE_INTERVAL_FLOOR_SECONDS

    async def test_runs_immediately_and_stops_on_event(self, mocker):
        job = mocker.MagicMock()
        job.run_sweep = mocker.AsyncMock(return_value=SweepReport())
        stop = asyncio.Event()
        scheduler = UpdateScheduler(job, 60, stop)

        scheduler.start()
        for _ in range(100):
            if job.run_sweep.await_count:
                break
            await asyncio.sleep(0)
        stop.set()
        await scheduler.wait_stopped(timeout=1)

        assert job.run_sweep.await_count == 1
        assert scheduler.last_report is not None
        assert not scheduler.is_running

    async def test_failing_sweep_does_not_kill_loop(self, mocker):
        job = mocker.MagicMock()
        job.run_sweep = mocker.AsyncMock(side_effect=RuntimeError("upstream down"))
        stop = asyncio.Event()
        scheduler = UpdateScheduler(job, 60, stop)

        scheduler.start()
        for _ in range(100):
            if job.run_sweep.await_count:
                break
            await asyncio.sleep(0)

        assert scheduler.is_running
        stop.set()
        await scheduler.wait_stopped(timeout=1)
        assert scheduler.last_report is None
