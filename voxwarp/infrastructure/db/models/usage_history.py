"""
Usage History Database Model

Append-only log of metered operations.
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field

from voxwarp.infrastructure.db.models.base import UUIDMixin, utcnow


class UsageHistoryModel(UUIDMixin, table=True):
    """One immutable entry per completed metered operation."""

    __tablename__ = "usage_history"

    user_id: str = Field(index=True, max_length=64, nullable=False)
    tokens_used: int = Field(nullable=False)
    action: str = Field(max_length=20, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        index=True,
        description="When the operation was recorded"
    )
