"""
Dependency Injection Providers for VoxWarp

Provides FastAPI dependencies for database sessions and repositories.
Follows Dependency Inversion Principle - high-level modules depend on abstractions.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.infrastructure.db.database import get_session
from voxwarp.infrastructure.db.repositories import (
    QuotaRepository,
    SubscriptionRepository,
    UsageHistoryRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_quota_repository(
    session: SessionDep,
) -> AsyncGenerator[QuotaRepository, None]:
    """
    Dependency provider for QuotaRepository.

    Usage:
        @router.get("/usage")
        async def get_usage(
            repo: QuotaRepository = Depends(get_quota_repository)
        ):
            ...
    """
    yield QuotaRepository(session)


async def get_usage_history_repository(
    session: SessionDep,
) -> AsyncGenerator[UsageHistoryRepository, None]:
    """
    Dependency provider for UsageHistoryRepository.
    """
    yield UsageHistoryRepository(session)


async def get_subscription_repository(
    session: SessionDep,
) -> AsyncGenerator[SubscriptionRepository, None]:
    """
    Dependency provider for SubscriptionRepository.
    """
    yield SubscriptionRepository(session)


# Type aliases for repository dependencies
QuotaRepoDep = Annotated[
    QuotaRepository,
    Depends(get_quota_repository)
]
UsageHistoryRepoDep = Annotated[
    UsageHistoryRepository,
    Depends(get_usage_history_repository)
]
SubscriptionRepoDep = Annotated[
    SubscriptionRepository,
    Depends(get_subscription_repository)
]
