"""
Subscription Database Model

SQLModel table for subscription data persistence.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field

from voxwarp.infrastructure.db.models.base import TimestampMixin, UUIDMixin


class SubscriptionModel(UUIDMixin, TimestampMixin, table=True):
    """
    Subscription table for storing user subscription data.

    Maps to the 'subscriptions' table.
    """

    __tablename__ = "subscriptions"

    user_id: str = Field(unique=True, index=True, max_length=64, nullable=False)

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, unique=True, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, unique=True, index=True)

    # Subscription details
    plan: str = Field(default="trial", max_length=20)
    status: str = Field(default="incomplete", max_length=20)

    # Billing period dates
    current_period_start: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    current_period_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    cancel_at_period_end: bool = Field(default=False)
