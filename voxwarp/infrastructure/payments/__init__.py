"""
Payments Infrastructure Module

Stripe payment processing and webhook verification.
"""

from voxwarp.infrastructure.payments.stripe_service import (
    StripeService,
    get_stripe_service,
)

__all__ = ["StripeService", "get_stripe_service"]
