"""
Tests for the quota ledger and usage history repositories.

Run against an in-memory SQLite database through the same ON CONFLICT
statements used with PostgreSQL.
"""

import pytest

from voxwarp.domain.usage import Plan, UsageAction
from voxwarp.infrastructure.db.repositories import (
    QuotaRepository,
    UsageHistoryRepository,
)


USER = "user-quota"


class TestQuotaReads:

    @pytest.mark.asyncio
    async def test_get_or_default_does_not_write(self, db_session):
        repo = QuotaRepository(db_session)

        quota = await repo.get_or_default(USER)

        assert quota.plan == Plan.TRIAL
        assert quota.tokens_used == 0
        assert quota.tokens_limit == 5000
        assert await repo.get_by_user_id(USER) is None

    @pytest.mark.asyncio
    async def test_get_or_create_trial_inserts_once(self, db_session):
        repo = QuotaRepository(db_session)

        first = await repo.get_or_create_trial(USER)
        await repo.increment_usage(USER, 300)
        second = await repo.get_or_create_trial(USER)

        assert first.tokens_used == 0
        assert second.tokens_used == 300
        assert second.tokens_limit == 5000


class TestQuotaWrites:

    @pytest.mark.asyncio
    async def test_increment_creates_trial_row(self, db_session):
        repo = QuotaRepository(db_session)

        await repo.increment_usage(USER, 700)

        quota = await repo.get_by_user_id(USER)
        assert quota.tokens_used == 700
        assert quota.plan == Plan.TRIAL

    @pytest.mark.asyncio
    async def test_increments_accumulate(self, db_session):
        repo = QuotaRepository(db_session)

        await repo.increment_usage(USER, 700)
        await repo.increment_usage(USER, 200)
        await repo.increment_usage(USER, 0)

        assert (await repo.get_by_user_id(USER)).tokens_used == 900

    @pytest.mark.asyncio
    async def test_set_entitlement_keeps_tokens_used(self, db_session):
        repo = QuotaRepository(db_session)
        await repo.increment_usage(USER, 4200)

        await repo.set_entitlement(USER, Plan.PRO, 50000)

        quota = await repo.get_by_user_id(USER)
        assert quota.plan == Plan.PRO
        assert quota.tokens_limit == 50000
        assert quota.tokens_used == 4200

    @pytest.mark.asyncio
    async def test_activate_plan_starts_fresh_period(self, db_session):
        repo = QuotaRepository(db_session)
        await repo.increment_usage(USER, 4999)

        await repo.activate_plan(USER, Plan.PRO, 50000)

        quota = await repo.get_by_user_id(USER)
        assert (quota.plan, quota.tokens_limit, quota.tokens_used) == (Plan.PRO, 50000, 0)

    @pytest.mark.asyncio
    async def test_activate_plan_twice_is_stable(self, db_session):
        repo = QuotaRepository(db_session)

        await repo.activate_plan(USER, Plan.PRO, 50000)
        await repo.activate_plan(USER, Plan.PRO, 50000)

        quota = await repo.get_by_user_id(USER)
        assert (quota.plan, quota.tokens_limit, quota.tokens_used) == (Plan.PRO, 50000, 0)

    @pytest.mark.asyncio
    async def test_reset_usage_only_touches_one_account(self, db_session):
        repo = QuotaRepository(db_session)
        await repo.increment_usage(USER, 1200)
        await repo.increment_usage("other-user", 800)

        assert await repo.reset_usage(USER) is True

        assert (await repo.get_by_user_id(USER)).tokens_used == 0
        assert (await repo.get_by_user_id("other-user")).tokens_used == 800

    @pytest.mark.asyncio
    async def test_reset_usage_without_row(self, db_session):
        repo = QuotaRepository(db_session)
        assert await repo.reset_usage("nobody") is False


class TestUsageHistory:

    @pytest.mark.asyncio
    async def test_append_and_list_newest_first(self, db_session):
        repo = UsageHistoryRepository(db_session)

        await repo.append(USER, 700, UsageAction.TRANSCRIPTION)
        await repo.append(USER, 200, UsageAction.ENRICHMENT)
        await repo.append("other-user", 500, UsageAction.TRANSCRIPTION)

        entries = await repo.list_for_user(USER)

        assert len(entries) == 2
        assert {e.action for e in entries} == {
            UsageAction.TRANSCRIPTION,
            UsageAction.ENRICHMENT,
        }
        assert entries[0].created_at >= entries[1].created_at
        assert await repo.total_for_user(USER) == 900

    @pytest.mark.asyncio
    async def test_list_respects_limit(self, db_session):
        repo = UsageHistoryRepository(db_session)
        for _ in range(5):
            await repo.append(USER, 200, UsageAction.ENRICHMENT)

        assert len(await repo.list_for_user(USER, limit=3)) == 3

    @pytest.mark.asyncio
    async def test_total_for_unknown_user_is_zero(self, db_session):
        repo = UsageHistoryRepository(db_session)
        assert await repo.total_for_user("nobody") == 0
