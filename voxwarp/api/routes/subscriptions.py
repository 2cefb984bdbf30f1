"""
Subscription API Routes

REST API endpoints for subscription management.
Follows FastAPI best practices with dependency injection.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from voxwarp.api.dependencies import (
    ClaimsDep,
    StripeServiceDep,
    SubscriptionRepoDep,
    UserIdDep,
)
from voxwarp.config.settings import get_settings
from voxwarp.domain.subscription import (
    CheckoutResponse,
    Subscription,
    SubscriptionStatus,
    SubscriptionStatusResponse,
)
from voxwarp.domain.usage import Plan


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Subscription Status Endpoints
# =============================================================================

@router.get("/subscriptions/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user_id: UserIdDep,
    repo: SubscriptionRepoDep,
):
    """
    Get the current user's subscription status.

    Accounts without a record are reported as an incomplete trial.
    """
    subscription = await repo.get_by_user_id(user_id)
    if not subscription:
        subscription = Subscription(user_id=user_id)

    return SubscriptionStatusResponse(
        plan=subscription.plan,
        status=subscription.status,
        is_active=(
            subscription.plan != Plan.TRIAL
            and subscription.status == SubscriptionStatus.ACTIVE
        ),
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


# =============================================================================
# Checkout Endpoints
# =============================================================================

@router.post("/subscriptions/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    claims: ClaimsDep,
    stripe_service: StripeServiceDep,
    repo: SubscriptionRepoDep,
):
    """
    Create a Stripe Checkout session for the Pro plan.

    Plan activation happens later, when the checkout.session.completed
    webhook arrives.

    Returns:
        CheckoutResponse with checkout URL and session ID
    """
    settings = get_settings()
    user_id = claims["sub"]

    subscription = await repo.get_by_user_id(user_id)

    if (
        subscription
        and subscription.status == SubscriptionStatus.ACTIVE
        and subscription.stripe_subscription_id
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You already have an active subscription"
        )

    customer_id = await stripe_service.get_or_create_customer(
        user_id=user_id,
        email=claims.get("email"),
        existing_customer_id=subscription.stripe_customer_id if subscription else None,
    )

    # Save customer ID if new
    if not subscription:
        await repo.upsert(
            Subscription(
                user_id=user_id,
                stripe_customer_id=customer_id,
                plan=Plan.TRIAL,
                status=SubscriptionStatus.INCOMPLETE,
            )
        )
    elif subscription.stripe_customer_id != customer_id:
        await repo.update(
            subscription.model_copy(update={"stripe_customer_id": customer_id})
        )

    session = await stripe_service.create_checkout_session(
        customer_id=customer_id,
        user_id=user_id,
        success_url=settings.checkout_success_url,
        cancel_url=settings.checkout_cancel_url,
    )

    return CheckoutResponse(
        checkout_url=session["url"],
        session_id=session["id"],
    )
