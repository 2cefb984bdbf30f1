"""
Repository Layer for VoxWarp

Exports all repository classes for dependency injection.
"""

from voxwarp.infrastructure.db.repositories.base_repository import BaseRepository
from voxwarp.infrastructure.db.repositories.quota_repository import QuotaRepository
from voxwarp.infrastructure.db.repositories.usage_history_repository import (
    UsageHistoryRepository,
)
from voxwarp.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from voxwarp.infrastructure.db.repositories.webhook_event_repository import (
    WebhookEventRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    # Repositories
    "QuotaRepository",
    "UsageHistoryRepository",
    "SubscriptionRepository",
    "WebhookEventRepository",
]
