"""
Entitlement Synchronizer

Applies Stripe subscription lifecycle events to the Subscription Record
and the quota ledger's plan/limit.

Critical Events:
- checkout.session.completed: Activate Pro and start a fresh period
- customer.subscription.created/updated: Sync status, downgrade if inactive
- customer.subscription.deleted: Downgrade to trial
- invoice.payment_succeeded / invoice.paid: Monthly renewal, reset usage
- invoice.payment_failed: Mark past_due, keep access (grace period)

Every write is an overwrite keyed by a stable id, never an increment, so a
redelivered event is harmless even when it slips past the processed-event
check. Signatures are verified before any of this code runs.

Known gap: a downgrade followed closely by a stale renewal reset can
reopen quota until the next subscription event arrives.
"""

import logging
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.config.settings import Settings, get_settings
from voxwarp.domain.subscription import (
    Subscription,
    SubscriptionStatus,
    is_superseded_event,
    map_processor_status,
    resolve_status_change,
)
from voxwarp.domain.usage import Plan, get_tokens_limit
from voxwarp.infrastructure.db.database import get_session_context
from voxwarp.infrastructure.db.repositories import (
    QuotaRepository,
    SubscriptionRepository,
    WebhookEventRepository,
)
from voxwarp.infrastructure.exceptions import MalformedEventError
from voxwarp.infrastructure.payments.stripe_service import StripeService
from voxwarp.services.notifications import UsageChangeNotifier


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

# Keys under which the account id may appear in Stripe metadata
USER_ID_METADATA_KEYS = ("user_id", "supabase_user_id")


# =============================================================================
# Payload helpers
# =============================================================================

def _id_of(value: Any) -> Optional[str]:
    """Stripe fields may hold an id or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def metadata_user_id(obj: Dict[str, Any]) -> Optional[str]:
    """Account id from an object's metadata, if present."""
    metadata = obj.get("metadata") or {}
    for key in USER_ID_METADATA_KEYS:
        if metadata.get(key):
            return metadata[key]
    return None


def period_bounds(subscription: Dict[str, Any]):
    """
    Current period start/end of a subscription.

    Newer API versions moved them from the subscription onto its items.
    """
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")

    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start or items[0].get("current_period_start")
            end = end or items[0].get("current_period_end")

    return _timestamp(start), _timestamp(end)


def invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    """Subscription an invoice belongs to, across API versions."""
    subscription_id = _id_of(invoice.get("subscription"))
    if subscription_id:
        return subscription_id

    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return _id_of(details.get("subscription"))


# =============================================================================
# Synchronizer
# =============================================================================

class EntitlementSynchronizer:
    """
    Idempotent webhook state machine.

    Created once per application and shared by every webhook request.
    """

    def __init__(
        self,
        stripe_service: StripeService,
        session_factory: SessionFactory = get_session_context,
        settings: Optional[Settings] = None,
        notifier: Optional[UsageChangeNotifier] = None,
    ):
        self._stripe = stripe_service
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._notifier = notifier

        self._handlers = {
            "checkout.session.completed": self._handle_checkout_completed,
            "customer.subscription.created": self._handle_subscription_changed,
            "customer.subscription.updated": self._handle_subscription_changed,
            "customer.subscription.deleted": self._handle_subscription_deleted,
            "invoice.payment_succeeded": self._handle_invoice_paid,
            "invoice.paid": self._handle_invoice_paid,
            "invoice.payment_failed": self._handle_invoice_payment_failed,
        }

    # =========================================================================
    # Entry points
    # =========================================================================

    def verify(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Authenticate and parse an event envelope.

        Raises:
            InvalidSignatureError: Signature missing or invalid
            MalformedEventError: Envelope lacks id, type or data.object
        """
        event = self._stripe.verify_webhook_signature(payload, signature)

        event_id = event.get("id")
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object")

        if not event_id or not event_type or not isinstance(obj, dict):
            raise MalformedEventError(
                "Event is missing id, type or data.object",
                event_id=event_id,
                event_type=event_type,
            )

        return event

    async def process(self, event: Dict[str, Any]) -> bool:
        """
        Apply a verified event exactly once.

        The handler's writes and the processed marker share one
        transaction, so a failed event is retried in full.

        Returns:
            True if the event was applied, False if it was a duplicate
        """
        event_id = event["id"]
        event_type = event["type"]
        obj = event["data"]["object"]

        async with self._session_factory() as session:
            events = WebhookEventRepository(session)

            if await events.is_processed(event_id):
                logger.info(f"Event {event_id} already processed, skipping")
                return False

            logger.info(f"Processing webhook event: {event_type} ({event_id})")

            handler = self._handlers.get(event_type)
            user_id = None
            if handler:
                try:
                    user_id = await handler(session, obj)
                except MalformedEventError as e:
                    e.details.setdefault("event_id", event_id)
                    e.details.setdefault("event_type", event_type)
                    raise
            else:
                logger.debug(f"Unhandled event type: {event_type}")

            await events.mark_processed(event_id, event_type)

        if user_id and self._notifier:
            self._notifier.publish(user_id, event_type)

        return True

    async def handle(self, payload: bytes, signature: Optional[str]) -> bool:
        """Verify then process a raw webhook delivery."""
        event = self.verify(payload, signature)
        return await self.process(event)

    # =========================================================================
    # Event Handlers
    # =========================================================================

    async def _handle_checkout_completed(
        self,
        session: AsyncSession,
        checkout: Dict[str, Any],
    ) -> Optional[str]:
        """
        Activate Pro after a completed subscription checkout.

        This and invoice renewal are the only paths that reset tokens_used.
        """
        if checkout.get("mode") != "subscription":
            logger.info(f"Ignoring checkout {checkout.get('id')} in mode {checkout.get('mode')}")
            return None

        subscription_id = _id_of(checkout.get("subscription"))
        if not subscription_id:
            raise MalformedEventError("Subscription checkout has no subscription id")

        stripe_subscription = await self._stripe.get_subscription(subscription_id)
        customer_id = _id_of(checkout.get("customer")) or _id_of(
            stripe_subscription.get("customer")
        )

        subscriptions = SubscriptionRepository(session)

        user_id = (
            metadata_user_id(stripe_subscription)
            or metadata_user_id(checkout)
            or checkout.get("client_reference_id")
        )
        if not user_id and customer_id:
            record = await subscriptions.get_by_stripe_customer_id(customer_id)
            if record:
                user_id = record.user_id

        if not user_id:
            logger.error(f"No user_id for checkout {checkout.get('id')}")
            raise MalformedEventError("Cannot resolve account for checkout session")

        start, end = period_bounds(stripe_subscription)

        await subscriptions.upsert(
            Subscription(
                user_id=user_id,
                stripe_customer_id=customer_id,
                stripe_subscription_id=subscription_id,
                plan=Plan.PRO,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=start,
                current_period_end=end,
                cancel_at_period_end=bool(stripe_subscription.get("cancel_at_period_end")),
            )
        )

        quotas = QuotaRepository(session, self._settings)
        await quotas.activate_plan(
            user_id,
            Plan.PRO,
            get_tokens_limit(Plan.PRO, self._settings),
        )

        logger.info(f"User {user_id} upgraded to Pro")
        return user_id

    async def _handle_subscription_changed(
        self,
        session: AsyncSession,
        stripe_subscription: Dict[str, Any],
    ) -> Optional[str]:
        """
        Sync status, period and cancellation flag.

        Any non-active status downgrades plan/limit to trial; tokens_used
        is left alone.
        """
        subscription_id = stripe_subscription.get("id")
        incoming_status = map_processor_status(stripe_subscription.get("status"))

        subscriptions = SubscriptionRepository(session)
        record = await self._find_record(subscriptions, stripe_subscription)

        if record and is_superseded_event(record, subscription_id, incoming_status):
            self._log_superseded(record, subscription_id)
            return None

        user_id = record.user_id if record else metadata_user_id(stripe_subscription)
        if not user_id:
            logger.warning(f"No account found for subscription {subscription_id}, ignoring")
            return None

        status = incoming_status
        if record:
            status = resolve_status_change(record, subscription_id, incoming_status)
            if status != incoming_status:
                logger.warning(
                    f"Ignoring {incoming_status.value} for canceled subscription "
                    f"{subscription_id}"
                )

            start, end = period_bounds(stripe_subscription)
            await subscriptions.update(
                record.model_copy(
                    update={
                        "stripe_subscription_id": subscription_id or record.stripe_subscription_id,
                        "status": status,
                        "current_period_start": start or record.current_period_start,
                        "current_period_end": end or record.current_period_end,
                        "cancel_at_period_end": bool(
                            stripe_subscription.get("cancel_at_period_end")
                        ),
                    }
                )
            )

        if status != SubscriptionStatus.ACTIVE:
            quotas = QuotaRepository(session, self._settings)
            await quotas.set_entitlement(
                user_id,
                Plan.TRIAL,
                get_tokens_limit(Plan.TRIAL, self._settings),
            )
            logger.info(f"User {user_id} downgraded to Trial (status={status.value})")

        return user_id

    async def _handle_subscription_deleted(
        self,
        session: AsyncSession,
        stripe_subscription: Dict[str, Any],
    ) -> Optional[str]:
        """Force the record to canceled/trial and the ledger to trial."""
        subscriptions = SubscriptionRepository(session)
        record = await self._find_record(subscriptions, stripe_subscription)

        subscription_id = stripe_subscription.get("id")
        if record and is_superseded_event(record, subscription_id, SubscriptionStatus.CANCELED):
            self._log_superseded(record, subscription_id)
            return None

        user_id = record.user_id if record else metadata_user_id(stripe_subscription)
        if not user_id:
            logger.error(
                f"Could not find user for deleted subscription {stripe_subscription.get('id')}"
            )
            return None

        if record:
            await subscriptions.update(
                record.model_copy(
                    update={
                        "status": SubscriptionStatus.CANCELED,
                        "plan": Plan.TRIAL,
                        "cancel_at_period_end": bool(
                            stripe_subscription.get("cancel_at_period_end")
                        ),
                    }
                )
            )

        quotas = QuotaRepository(session, self._settings)
        await quotas.set_entitlement(
            user_id,
            Plan.TRIAL,
            get_tokens_limit(Plan.TRIAL, self._settings),
        )

        logger.info(f"User {user_id} downgraded to Trial")
        return user_id

    async def _handle_invoice_paid(
        self,
        session: AsyncSession,
        invoice: Dict[str, Any],
    ) -> Optional[str]:
        """Monthly renewal: reset tokens_used, leave plan/limit alone."""
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            logger.debug(f"Invoice {invoice.get('id')} has no subscription, ignoring")
            return None

        record = await SubscriptionRepository(session).get_by_stripe_subscription_id(
            subscription_id
        )
        if not record:
            logger.warning(f"No subscription record for {subscription_id}, ignoring invoice")
            return None

        quotas = QuotaRepository(session, self._settings)
        if await quotas.reset_usage(record.user_id):
            logger.info(f"Tokens reset for user {record.user_id}")

        return record.user_id

    async def _handle_invoice_payment_failed(
        self,
        session: AsyncSession,
        invoice: Dict[str, Any],
    ) -> Optional[str]:
        """Mark past_due; access stays until a subscription event revokes it."""
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            return None

        subscriptions = SubscriptionRepository(session)
        record = await subscriptions.get_by_stripe_subscription_id(subscription_id)
        if not record:
            logger.warning(f"No subscription record for {subscription_id}, ignoring failed payment")
            return None

        if record.status == SubscriptionStatus.CANCELED:
            return None

        await subscriptions.update(
            record.model_copy(update={"status": SubscriptionStatus.PAST_DUE})
        )
        logger.warning(f"Payment failed for subscription {subscription_id}, set to past_due")
        return None

    async def _find_record(
        self,
        subscriptions: SubscriptionRepository,
        stripe_subscription: Dict[str, Any],
    ) -> Optional[Subscription]:
        """
        Look up by subscription id, falling back to the metadata user id.

        A record found by user id may be bound to another subscription;
        callers check it with is_superseded_event before writing.
        """
        subscription_id = stripe_subscription.get("id")
        if subscription_id:
            record = await subscriptions.get_by_stripe_subscription_id(subscription_id)
            if record:
                return record

        user_id = metadata_user_id(stripe_subscription)
        if user_id:
            return await subscriptions.get_by_user_id(user_id)

        return None

    def _log_superseded(self, record: Subscription, subscription_id: Optional[str]) -> None:
        logger.warning(
            f"Ignoring stale event for subscription {subscription_id}: "
            f"user {record.user_id} is on {record.stripe_subscription_id}"
        )
