"""
Stripe Payment Service

Clean Architecture infrastructure service for Stripe payment processing.
Handles webhook verification, checkout sessions, customer management and
subscription lookups.

- Hosted Checkout for minimal PCI burden
- Webhook signatures are always verified before an event is parsed
- Blocking SDK calls run in a worker thread
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import stripe
from stripe import StripeError

from voxwarp.config.settings import Settings, get_settings
from voxwarp.infrastructure.exceptions import (
    BillingServiceError,
    ConfigurationError,
    InvalidSignatureError,
    MalformedEventError,
)


logger = logging.getLogger(__name__)


class StripeService:
    """
    Stripe payment processing service.

    All methods are stateless and idempotent where possible.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize Stripe with API key from settings."""
        settings = settings or get_settings()
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._price_id = settings.stripe_price_id
        self._tolerance = settings.webhook_tolerance_seconds

        if self._api_key:
            stripe.api_key = self._api_key

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> Dict[str, Any]:
        """
        Verify webhook signature and parse the event.

        The event is returned as a plain dict so handlers never depend on
        StripeObject attribute access.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Returns:
            Parsed event dict

        Raises:
            InvalidSignatureError: Signature missing or invalid
            MalformedEventError: Body is not a JSON event
            ConfigurationError: No webhook secret configured
        """
        if not self._webhook_secret:
            raise ConfigurationError(
                "Stripe webhook secret is not configured",
                missing_keys=["STRIPE_WEBHOOK_SECRET"],
            )

        if not signature:
            raise InvalidSignatureError("Missing Stripe-Signature header")

        if isinstance(payload, bytes):
            body = payload.decode("utf-8", errors="replace")
        else:
            body = payload

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self._webhook_secret,
                self._tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignatureError(f"Invalid signature: {e}")

        try:
            event = json.loads(body)
        except ValueError as e:
            raise MalformedEventError(f"Invalid payload: {e}")

        if not isinstance(event, dict):
            raise MalformedEventError("Invalid payload: expected a JSON object")

        return event

    # =========================================================================
    # Customer Management
    # =========================================================================

    async def create_customer(
        self,
        user_id: str,
        email: Optional[str] = None,
    ) -> str:
        """
        Create a new Stripe customer.

        Args:
            user_id: Internal user ID (stored in metadata)
            email: Customer email for receipts

        Returns:
            Stripe customer ID
        """
        try:
            customer = await asyncio.to_thread(
                stripe.Customer.create,
                email=email,
                metadata={
                    "user_id": user_id,
                    "source": "voxwarp",
                },
            )
            logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
            return customer.id

        except StripeError as e:
            logger.error(f"Failed to create Stripe customer: {e}")
            raise BillingServiceError(
                f"Failed to create customer: {e.user_message or e}",
                original_error=e,
            )

    async def get_or_create_customer(
        self,
        user_id: str,
        email: Optional[str] = None,
        existing_customer_id: Optional[str] = None,
    ) -> str:
        """
        Get existing customer or create new one.

        Args:
            user_id: Internal user ID
            email: Customer email
            existing_customer_id: Optional existing Stripe customer ID

        Returns:
            Stripe customer ID
        """
        if existing_customer_id:
            try:
                customer = await asyncio.to_thread(
                    stripe.Customer.retrieve, existing_customer_id
                )
                if not customer.get("deleted"):
                    return customer.id
            except StripeError:
                logger.warning(f"Customer {existing_customer_id} not found, creating new")

        return await self.create_customer(user_id, email)

    # =========================================================================
    # Checkout Session
    # =========================================================================

    async def create_checkout_session(
        self,
        customer_id: str,
        user_id: str,
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, str]:
        """
        Create a subscription-mode Stripe Checkout Session.

        The user id is written into the subscription's metadata so the
        webhook handlers can resolve the account.

        Returns:
            {"id": session id, "url": hosted checkout URL}
        """
        if not self._price_id:
            raise ConfigurationError(
                "Stripe price is not configured",
                missing_keys=["STRIPE_PRICE_ID"],
            )

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                customer=customer_id,
                line_items=[
                    {
                        "price": self._price_id,
                        "quantity": 1,
                    }
                ],
                mode="subscription",
                success_url=f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=cancel_url,
                client_reference_id=user_id,
                metadata={"user_id": user_id},
                subscription_data={
                    "metadata": {"user_id": user_id},
                },
            )

            logger.info(f"Created checkout session {session.id} for user {user_id}")
            return {"id": session.id, "url": session.url}

        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise BillingServiceError(
                f"Failed to create checkout: {e.user_message or e}",
                original_error=e,
            )

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def get_subscription(
        self,
        subscription_id: str,
    ) -> Dict[str, Any]:
        """
        Retrieve a subscription by ID as a plain dict.

        Raises:
            BillingServiceError: Stripe call failed
        """
        try:
            subscription = await asyncio.to_thread(
                stripe.Subscription.retrieve, subscription_id
            )
        except StripeError as e:
            logger.warning(f"Failed to retrieve subscription {subscription_id}: {e}")
            raise BillingServiceError(
                f"Failed to retrieve subscription {subscription_id}",
                original_error=e,
            )

        return subscription.to_dict()


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance
