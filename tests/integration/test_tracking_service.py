"""
Integration tests for TrackingService and the repositories.

Runs against a real SQLite database with the fake upstream from conftest.
"""

import pytest

from rewardwatch.core.database.service import DatabaseService
from rewardwatch.core.exceptions import ResponseCodeError
from rewardwatch.modules.rewards.models import RewardStatus
from rewardwatch.modules.shared.exceptions import InvalidInputError, UserNotRegisteredError
from rewardwatch.modules.tracking.repository import TrackedRewardRepository, UserRepository
from rewardwatch.modules.tracking.service import TrackingService
from tests.conftest import make_campaign, make_reward

DISCORD_ID = 555000111


@pytest.fixture
def service(database, dispatcher):
    return TrackingService(dispatcher)


async def tracked_ids(discord_id: int = DISCORD_ID):
    async with DatabaseService.get_session() as session:
        user = await UserRepository().find_by_discord_id(session, discord_id)
        rows = await TrackedRewardRepository().list_for_user(session, user.id)
        return [row.reward_id for row in rows]


@pytest.mark.integration
class TestRegistration:
    async def test_register_then_welcome_back(self, service):
        user, created = await service.register(DISCORD_ID)
        again, created_again = await service.register(DISCORD_ID)

        assert created and not created_again
        assert user.id == again.id
        assert user.language == "EN"

    async def test_commands_require_registration(self, service):
        with pytest.raises(UserNotRegisteredError):
            await service.list_rewards(DISCORD_ID)
        with pytest.raises(UserNotRegisteredError):
            await service.add_rewards(DISCORD_ID, "1")


@pytest.mark.integration
class TestAddRewards:
    async def test_only_confirmed_ids_are_persisted(self, service, fake_source):
        await service.register(DISCORD_ID)
        fake_source.add_reward(make_reward(reward_id=1))
        fake_source.add_reward(make_reward(reward_id=2))

        outcome = await service.add_rewards(DISCORD_ID, "1, 2 3 nope")

        assert outcome.requested == [1, 2, 3]
        assert outcome.added == [1, 2]
        assert outcome.rejected == [3]
        assert await tracked_ids() == [1, 2]

    async def test_already_tracked_ids_are_skipped(self, service, fake_source):
        await service.register(DISCORD_ID)
        fake_source.add_reward(make_reward(reward_id=1))
        await service.add_rewards(DISCORD_ID, "1")
        calls_before = len(fake_source.reward_calls)

        outcome = await service.add_rewards(DISCORD_ID, "1")

        assert outcome.already_tracked == [1]
        assert outcome.added == []
        assert len(fake_source.reward_calls) == calls_before

    async def test_forbidden_reward_is_rejected(self, service, fake_source):
        await service.register(DISCORD_ID)
        fake_source.rewards[9] = ResponseCodeError(403)

        outcome = await service.add_rewards(DISCORD_ID, "9")

        assert outcome.rejected == [9]
        assert await tracked_ids() == []

    async def test_empty_input(self, service):
        await service.register(DISCORD_ID)

        with pytest.raises(InvalidInputError):
            await service.add_rewards(DISCORD_ID, "abc")


@pytest.mark.integration
class TestRemoveAndReset:
    async def test_remove_only_tracked(self, service, fake_source):
        await service.register(DISCORD_ID)
        for i in (1, 2):
            fake_source.add_reward(make_reward(reward_id=i))
        await service.add_rewards(DISCORD_ID, "1 2")

        removed = await service.remove_rewards(DISCORD_ID, "2 3")

        assert removed == [2]
        assert await tracked_ids() == [1]

    async def test_reset_clears_last_notified(self, service, fake_source, wall_clock):
        user, _ = await service.register(DISCORD_ID)
        fake_source.add_reward(make_reward(reward_id=1))
        await service.add_rewards(DISCORD_ID, "1")
        async with DatabaseService.get_transaction() as session:
            row = await TrackedRewardRepository().find(session, user.id, 1)
            row.last_notified = wall_clock()

        count = await service.reset_notifications(DISCORD_ID)

        assert count == 1
        async with DatabaseService.get_session() as session:
            row = await TrackedRewardRepository().find(session, user.id, 1)
            assert row.last_notified is None

    async def test_other_users_are_untouched(self, service, fake_source):
        fake_source.add_reward(make_reward(reward_id=1))
        for discord_id in (DISCORD_ID, DISCORD_ID + 1):
            await service.register(discord_id)
            await service.add_rewards(discord_id, "1")

        await service.remove_rewards(DISCORD_ID, "1")

        assert await tracked_ids(DISCORD_ID) == []
        assert await tracked_ids(DISCORD_ID + 1) == [1]


@pytest.mark.integration
class TestListRewards:
    async def test_grouped_sorted_and_missing(self, service, fake_source, fake_clock):
        await service.register(DISCORD_ID)
        fake_source.add_campaign(make_campaign(10, "Zeta"))
        fake_source.add_campaign(make_campaign(20, "alpha"))
        fake_source.add_reward(make_reward(reward_id=1, campaign_id=10, amount_cents=500))
        fake_source.add_reward(make_reward(reward_id=2, campaign_id=10, amount_cents=100))
        fake_source.add_reward(make_reward(reward_id=3, campaign_id=20))
        fake_source.add_reward(make_reward(reward_id=4, campaign_id=0))
        fake_source.add_reward(make_reward(reward_id=6, campaign_id=99))
        fake_source.add_reward(make_reward(reward_id=5))
        await service.add_rewards(DISCORD_ID, "1 2 3 4 5 6")

        # 5 disappears upstream after being added
        fake_source.rewards[5] = ResponseCodeError(404)
        fake_clock.advance(601)

        overview = await service.list_rewards(DISCORD_ID)

        assert [g.campaign.name for g in overview.groups] == ["alpha", "Zeta"]
        assert [r.id for r in overview.groups[1].rewards] == [2, 1]
        assert [(m.id, m.status) for m in overview.missing] == [
            (4, RewardStatus.NO_CAMPAIGN),
            (5, RewardStatus.NOT_FOUND),
            (6, RewardStatus.NO_CAMPAIGN),
        ]
        # one lookup per distinct campaign
        assert sorted(fake_source.campaign_calls) == [10, 20, 99]

    async def test_empty(self, service):
        await service.register(DISCORD_ID)

        overview = await service.list_rewards(DISCORD_ID)

        assert overview.is_empty


@pytest.mark.integration
class TestRepositories:
    async def test_create_flushes_a_primary_key(self, database):
        async with DatabaseService.get_transaction() as session:
            user = await UserRepository().create(session, DISCORD_ID)
            assert user.id is not None

        async with DatabaseService.get_session() as session:
            found = await UserRepository().find_by_discord_id(session, DISCORD_ID)
            missing = await UserRepository().find_by_discord_id(session, DISCORD_ID + 1)

        assert found.id == user.id
        assert missing is None

    async def test_listing_is_ordered_and_scoped_to_user(self, database):
        async with DatabaseService.get_transaction() as session:
            users = UserRepository()
            first = await users.create(session, DISCORD_ID)
            second = await users.create(session, DISCORD_ID + 1)
            rewards = TrackedRewardRepository()
            rewards.track(session, first.id, [30, 10, 20])
            rewards.track(session, second.id, [99])

        async with DatabaseService.get_session() as session:
            listed = await TrackedRewardRepository().list_for_user(session, first.id)
            everyone = await UserRepository().list_all(session)

        assert [row.reward_id for row in listed] == [10, 20, 30]
        assert [u.discord_id for u in everyone] == [DISCORD_ID, DISCORD_ID + 1]
