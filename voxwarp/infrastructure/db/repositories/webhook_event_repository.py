"""
Webhook Event Repository

DB-backed idempotency markers for billing processor events
(survives restarts).
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.infrastructure.db.models.processed_event import ProcessedWebhookEvent
from voxwarp.infrastructure.db.models.base import utcnow
from voxwarp.infrastructure.db.repositories.base_repository import BaseRepository


class WebhookEventRepository(BaseRepository[ProcessedWebhookEvent]):
    """Repository for processed webhook event ids."""

    def __init__(self, session: AsyncSession):
        super().__init__(ProcessedWebhookEvent, session)

    async def is_processed(self, event_id: str) -> bool:
        """Check if a webhook event has already been processed."""
        result = await self._session.execute(
            select(ProcessedWebhookEvent.event_id).where(
                ProcessedWebhookEvent.event_id == event_id
            )
        )
        return result.scalar_one_or_none() is not None

    async def mark_processed(self, event_id: str, event_type: str) -> None:
        """Record a processed webhook event; a second insert is ignored."""
        stmt = self._insert().values(
            event_id=event_id,
            event_type=event_type,
            processed_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["event_id"])
        await self._session.execute(stmt)
