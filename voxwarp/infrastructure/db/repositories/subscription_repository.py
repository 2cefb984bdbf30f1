"""
Subscription Repository

Data access layer for subscription persistence.
Follows Repository pattern for Clean Architecture.
"""

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.domain.subscription import Subscription, SubscriptionStatus
from voxwarp.domain.usage import Plan
from voxwarp.infrastructure.db.models.base import utcnow
from voxwarp.infrastructure.db.models.subscription import SubscriptionModel
from voxwarp.infrastructure.db.repositories.base_repository import BaseRepository


logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository[SubscriptionModel]):
    """
    Repository for subscription data access.

    Implements lookups by every stable identifier and an overwrite upsert
    keyed by user_id, with domain model mapping.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(SubscriptionModel, session)

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        """
        Get subscription by user ID.

        Args:
            user_id: Internal user ID

        Returns:
            Subscription domain model or None
        """
        return await self._get_one(SubscriptionModel.user_id == user_id)

    async def get_by_stripe_customer_id(
        self,
        stripe_customer_id: str,
    ) -> Optional[Subscription]:
        """
        Get subscription by Stripe customer ID.

        Args:
            stripe_customer_id: Stripe customer ID

        Returns:
            Subscription domain model or None
        """
        return await self._get_one(
            SubscriptionModel.stripe_customer_id == stripe_customer_id
        )

    async def get_by_stripe_subscription_id(
        self,
        stripe_subscription_id: str,
    ) -> Optional[Subscription]:
        """
        Get subscription by Stripe subscription ID.

        Args:
            stripe_subscription_id: Stripe subscription ID

        Returns:
            Subscription domain model or None
        """
        return await self._get_one(
            SubscriptionModel.stripe_subscription_id == stripe_subscription_id
        )

    async def _get_one(self, condition) -> Optional[Subscription]:
        statement = (
            select(SubscriptionModel)
            .where(condition)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(statement)
        model = result.scalar_one_or_none()

        if model:
            return self._to_domain(model)

        return None

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def upsert(self, subscription: Subscription) -> Subscription:
        """
        Create or overwrite the subscription for subscription.user_id.

        Every field is written from the given entity, so applying the same
        entity twice leaves the row unchanged.

        Args:
            subscription: Subscription domain model

        Returns:
            Created/updated subscription
        """
        now = utcnow()

        values = {
            "user_id": subscription.user_id,
            "stripe_customer_id": subscription.stripe_customer_id,
            "stripe_subscription_id": subscription.stripe_subscription_id,
            "plan": subscription.plan.value,
            "status": subscription.status.value,
            "current_period_start": subscription.current_period_start,
            "current_period_end": subscription.current_period_end,
            "cancel_at_period_end": subscription.cancel_at_period_end,
            "id": uuid4(),
            "created_at": now,
            "updated_at": now,
        }

        stmt = self._insert().values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "stripe_customer_id": stmt.excluded.stripe_customer_id,
                "stripe_subscription_id": stmt.excluded.stripe_subscription_id,
                "plan": stmt.excluded.plan,
                "status": stmt.excluded.status,
                "current_period_start": stmt.excluded.current_period_start,
                "current_period_end": stmt.excluded.current_period_end,
                "cancel_at_period_end": stmt.excluded.cancel_at_period_end,
                "updated_at": now,
            },
        )

        await self._session.execute(stmt)

        logger.info(
            f"Upserted subscription for user {subscription.user_id} "
            f"(status={subscription.status.value}, plan={subscription.plan.value})"
        )
        return await self.get_by_user_id(subscription.user_id)

    async def update(self, subscription: Subscription) -> Subscription:
        """
        Update an existing subscription.

        Args:
            subscription: Subscription with updated values

        Returns:
            Updated subscription

        Raises:
            ValueError: No subscription exists for the user
        """
        statement = select(SubscriptionModel).where(
            SubscriptionModel.user_id == subscription.user_id
        )
        result = await self._session.execute(statement)
        model = result.scalar_one_or_none()

        if not model:
            raise ValueError(f"Subscription not found for user {subscription.user_id}")

        model.stripe_customer_id = subscription.stripe_customer_id
        model.stripe_subscription_id = subscription.stripe_subscription_id
        model.plan = subscription.plan.value
        model.status = subscription.status.value
        model.current_period_start = subscription.current_period_start
        model.current_period_end = subscription.current_period_end
        model.cancel_at_period_end = subscription.cancel_at_period_end
        model.updated_at = utcnow()

        await self._session.flush()

        logger.info(f"Updated subscription for user {subscription.user_id}")
        return self._to_domain(model)

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=str(model.id),
            user_id=model.user_id,
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            plan=Plan(model.plan) if model.plan else Plan.TRIAL,
            status=SubscriptionStatus(model.status),
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=model.cancel_at_period_end or False,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
