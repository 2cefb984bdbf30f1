"""
Subscription Domain Models

Domain models for subscription management following Clean Architecture.
Enums, DTOs, and domain entities for the billing bounded context.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from voxwarp.domain.usage import Plan


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    INCOMPLETE = "incomplete"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


# =============================================================================
# Domain Entities
# =============================================================================

class Subscription(BaseModel):
    """Core subscription domain entity."""
    id: Optional[str] = None
    user_id: str
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    plan: Plan = Plan.TRIAL
    status: SubscriptionStatus = SubscriptionStatus.INCOMPLETE
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Status Mapping (Business Logic)
# =============================================================================

def map_processor_status(processor_status: Optional[str]) -> SubscriptionStatus:
    """
    Map a payment processor subscription status to the local status.

    Only active, past_due and canceled carry over; trialing, unpaid,
    incomplete_expired and anything unknown collapse to incomplete.
    """
    mapping = {
        "active": SubscriptionStatus.ACTIVE,
        "past_due": SubscriptionStatus.PAST_DUE,
        "canceled": SubscriptionStatus.CANCELED,
    }
    return mapping.get(processor_status or "", SubscriptionStatus.INCOMPLETE)


def resolve_status_change(
    current: Subscription,
    incoming_subscription_id: Optional[str],
    incoming_status: SubscriptionStatus,
) -> SubscriptionStatus:
    """
    Apply the lifecycle rule to a status update.

    A canceled record stays canceled for events about the same subscription;
    only a genuinely new subscription id may bring it back.
    """
    if (
        current.status == SubscriptionStatus.CANCELED
        and incoming_status != SubscriptionStatus.CANCELED
        and incoming_subscription_id is not None
        and incoming_subscription_id == current.stripe_subscription_id
    ):
        return SubscriptionStatus.CANCELED
    return incoming_status


def is_superseded_event(
    current: Subscription,
    incoming_subscription_id: Optional[str],
    incoming_status: SubscriptionStatus,
) -> bool:
    """
    Whether an event concerns a subscription the record no longer tracks.

    A record bound to another subscription id only accepts a new
    subscription that replaces a canceled one.
    """
    if not incoming_subscription_id or current.stripe_subscription_id in (
        None,
        incoming_subscription_id,
    ):
        return False
    return not (
        current.status == SubscriptionStatus.CANCELED
        and incoming_status != SubscriptionStatus.CANCELED
    )


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CheckoutResponse(BaseModel):
    """Response DTO for checkout session creation."""
    checkout_url: str
    session_id: str


class SubscriptionStatusResponse(BaseModel):
    """Response DTO for subscription status."""
    plan: Plan
    status: SubscriptionStatus
    is_active: bool = Field(description="Whether user has an active paid subscription")
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
