"""
Processed Webhook Event Model

Records billing processor event ids that have been fully applied.
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from voxwarp.infrastructure.db.models.base import utcnow


class ProcessedWebhookEvent(SQLModel, table=True):
    """Idempotency marker, one row per external event id."""

    __tablename__ = "processed_webhook_events"

    event_id: str = Field(primary_key=True, max_length=255)
    event_type: str = Field(max_length=100, nullable=False)
    processed_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        index=True,
    )
