"""
SQLModel ORM Models for VoxWarp

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from voxwarp.infrastructure.db.models.base import (
    TimestampMixin,
    UUIDMixin,
    utcnow,
)
from voxwarp.infrastructure.db.models.user_usage import UserUsageModel
from voxwarp.infrastructure.db.models.usage_history import UsageHistoryModel
from voxwarp.infrastructure.db.models.subscription import SubscriptionModel
from voxwarp.infrastructure.db.models.processed_event import ProcessedWebhookEvent


__all__ = [
    # Base
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    # Metering
    "UserUsageModel",
    "UsageHistoryModel",
    # Billing
    "SubscriptionModel",
    "ProcessedWebhookEvent",
]
