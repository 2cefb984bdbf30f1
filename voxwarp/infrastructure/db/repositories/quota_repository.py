"""
Quota Ledger Repository

Data access for the per-account `user_usage` row.

Every write here is a single statement, so each is atomic at the row
level. Increments are relative (tokens_used = tokens_used + n); every
entitlement write is an absolute overwrite keyed by user_id, which makes
replaying the same webhook event harmless.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.config.settings import Settings, get_settings
from voxwarp.domain.usage import AccountQuota, Plan, get_tokens_limit, trial_quota
from voxwarp.infrastructure.db.models.base import utcnow
from voxwarp.infrastructure.db.models.user_usage import UserUsageModel
from voxwarp.infrastructure.db.repositories.base_repository import BaseRepository


logger = logging.getLogger(__name__)


class QuotaRepository(BaseRepository[UserUsageModel]):
    """Repository for the quota ledger."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        super().__init__(UserUsageModel, session)
        self._settings = settings or get_settings()

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_by_user_id(self, user_id: str) -> Optional[AccountQuota]:
        """Get the ledger row for an account, or None."""
        # Core upserts bypass the identity map, so always reload the row
        statement = (
            select(UserUsageModel)
            .where(UserUsageModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(statement)
        model = result.scalar_one_or_none()
        if model:
            return self._to_domain(model)
        return None

    async def get_or_default(self, user_id: str) -> AccountQuota:
        """
        Get the ledger row, or trial defaults without writing anything.

        Used on the admission path, which must stay read-only.
        """
        quota = await self.get_by_user_id(user_id)
        if quota:
            return quota
        return trial_quota(user_id, self._settings)

    async def get_or_create_trial(self, user_id: str) -> AccountQuota:
        """Get the ledger row, inserting trial defaults if none exists."""
        now = utcnow()
        stmt = self._insert().values(
            user_id=user_id,
            tokens_used=0,
            tokens_limit=get_tokens_limit(Plan.TRIAL, self._settings),
            plan=Plan.TRIAL.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
        await self._session.execute(stmt)

        return await self.get_by_user_id(user_id)

    # =========================================================================
    # Usage Recorder writes
    # =========================================================================

    async def increment_usage(self, user_id: str, amount: int) -> None:
        """
        Atomically add `amount` to tokens_used.

        Inserts a trial row with tokens_used = amount when the account has
        no ledger row yet.
        """
        now = utcnow()
        table = UserUsageModel.__table__
        stmt = self._insert().values(
            user_id=user_id,
            tokens_used=amount,
            tokens_limit=get_tokens_limit(Plan.TRIAL, self._settings),
            plan=Plan.TRIAL.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "tokens_used": table.c.tokens_used + stmt.excluded.tokens_used,
                "updated_at": now,
            },
        )
        await self._session.execute(stmt)

    # =========================================================================
    # Entitlement Synchronizer writes
    # =========================================================================

    async def set_entitlement(self, user_id: str, plan: Plan, tokens_limit: int) -> None:
        """Overwrite plan and tokens_limit, leaving tokens_used alone."""
        now = utcnow()
        stmt = self._insert().values(
            user_id=user_id,
            tokens_used=0,
            tokens_limit=tokens_limit,
            plan=plan.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "plan": stmt.excluded.plan,
                "tokens_limit": stmt.excluded.tokens_limit,
                "updated_at": now,
            },
        )
        await self._session.execute(stmt)
        logger.info(f"Set entitlement for user {user_id}: plan={plan.value}, limit={tokens_limit}")

    async def activate_plan(self, user_id: str, plan: Plan, tokens_limit: int) -> None:
        """Overwrite plan and tokens_limit and start a fresh period (tokens_used = 0)."""
        now = utcnow()
        stmt = self._insert().values(
            user_id=user_id,
            tokens_used=0,
            tokens_limit=tokens_limit,
            plan=plan.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "plan": stmt.excluded.plan,
                "tokens_limit": stmt.excluded.tokens_limit,
                "tokens_used": 0,
                "updated_at": now,
            },
        )
        await self._session.execute(stmt)
        logger.info(f"Activated {plan.value} for user {user_id}")

    async def reset_usage(self, user_id: str) -> bool:
        """
        Set tokens_used back to 0 for a renewal.

        Returns:
            True if a ledger row existed
        """
        stmt = (
            update(UserUsageModel)
            .where(UserUsageModel.user_id == user_id)
            .values(tokens_used=0, updated_at=utcnow())
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: UserUsageModel) -> AccountQuota:
        """Convert database model to domain entity."""
        return AccountQuota(
            user_id=model.user_id,
            tokens_used=model.tokens_used or 0,
            tokens_limit=model.tokens_limit or 0,
            plan=Plan(model.plan),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
