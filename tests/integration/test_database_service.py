"""
Integration tests for DatabaseService.

Test Coverage
-------------
- Initialization, health check and idempotent shutdown
- Schema creation
- Transaction commit and rollback
- Unique and cascade constraints on the tracking tables
"""

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from rewardwatch.core.database.service import DatabaseNotInitializedError, DatabaseService
from rewardwatch.database.models import TrackedReward, User


# ============================================================================
# LIFECYCLE
# ============================================================================


@pytest.mark.integration
class TestDatabaseLifecycle:
    async def test_health_check(self, database):
        assert await database.health_check()

    async def test_schema_created(self, database):
        async with database.get_session() as session:
            result = await session.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'table'")
            )
            tables = {row.name for row in result.fetchall()}

        assert {"users", "tracked_rewards"} <= tables

    async def test_initialize_is_idempotent(self, database):
        await database.initialize()

        assert await database.health_check()

    async def test_use_before_initialize(self):
        await DatabaseService.shutdown()

        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass
        assert not await DatabaseService.health_check()


# ============================================================================
# TRANSACTIONS
# ============================================================================


@pytest.mark.integration
class TestTransactions:
    async def test_commit_on_success(self, database):
        async with database.get_transaction() as session:
            session.add(User(discord_id=111, language="de"))

        async with database.get_session() as session:
            user = (await session.execute(select(User))).scalar_one()

        assert user.discord_id == 111
        assert user.language == "DE"
        assert user.created_at is not None

    async def test_rollback_on_error(self, database):
        with pytest.raises(RuntimeError):
            async with database.get_transaction() as session:
                session.add(User(discord_id=222))
                await session.flush()
                raise RuntimeError("abort")

        async with database.get_session() as session:
            users = (await session.execute(select(User))).scalars().all()

        assert users == []


# ============================================================================
# CONSTRAINTS
# ============================================================================


@pytest.mark.integration
class TestConstraints:
    async def test_unique_discord_id(self, database):
        with pytest.raises(IntegrityError):
            async with database.get_transaction() as session:
                session.add_all([User(discord_id=333), User(discord_id=333)])

    async def test_unique_tracked_pair(self, database):
        async with database.get_transaction() as session:
            user = User(discord_id=444)
            session.add(user)
            await session.flush()
            user_pk = user.id

        with pytest.raises(IntegrityError):
            async with database.get_transaction() as session:
                session.add_all(
                    [
                        TrackedReward(user_id=user_pk, reward_id=1),
                        TrackedReward(user_id=user_pk, reward_id=1),
                    ]
                )

    async def test_tracked_rows_deleted_with_user(self, database):
        async with database.get_transaction() as session:
            user = User(discord_id=555)
            session.add(user)
            await session.flush()
            session.add(TrackedReward(user_id=user.id, reward_id=9))

        async with database.get_transaction() as session:
            user = (await session.execute(select(User))).scalar_one()
            await session.delete(user)

        async with database.get_session() as session:
            rows = (await session.execute(select(TrackedReward))).scalars().all()

        assert rows == []
