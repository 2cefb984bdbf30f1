"""
Usage History Repository

Append-only access to `usage_history`. Entries are never updated or
deleted.
"""

from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.domain.usage import UsageAction, UsageHistoryEntry
from voxwarp.infrastructure.db.models.usage_history import UsageHistoryModel
from voxwarp.infrastructure.db.repositories.base_repository import BaseRepository


class UsageHistoryRepository(BaseRepository[UsageHistoryModel]):
    """Repository for metered operation history."""

    def __init__(self, session: AsyncSession):
        super().__init__(UsageHistoryModel, session)

    async def append(
        self,
        user_id: str,
        tokens_used: int,
        action: UsageAction,
    ) -> UsageHistoryEntry:
        """Write one history entry."""
        model = UsageHistoryModel(
            user_id=user_id,
            tokens_used=tokens_used,
            action=UsageAction(action).value,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_domain(model)

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50
    ) -> List[UsageHistoryEntry]:
        """Most recent entries for a user, newest first."""
        stmt = (
            select(UsageHistoryModel)
            .where(UsageHistoryModel.user_id == user_id)
            .order_by(UsageHistoryModel.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def total_for_user(self, user_id: str) -> int:
        """Sum of all recorded costs for a user."""
        stmt = (
            select(func.coalesce(func.sum(UsageHistoryModel.tokens_used), 0))
            .where(UsageHistoryModel.user_id == user_id)
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    def _to_domain(self, model: UsageHistoryModel) -> UsageHistoryEntry:
        return UsageHistoryEntry(
            id=str(model.id),
            user_id=model.user_id,
            tokens_used=model.tokens_used,
            action=UsageAction(model.action),
            created_at=model.created_at,
        )
