"""
Stripe Webhook Handler

Receives Stripe subscription lifecycle events and hands them to the
Entitlement Synchronizer.

Responses:
- 200 {"received": true}: applied, duplicate or ignored event type
- 400 {"error": ...}: bad signature, malformed event or processing failure;
  nothing is marked processed, so Stripe retries the delivery
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from voxwarp.api.dependencies import SynchronizerDep
from voxwarp.infrastructure.exceptions import (
    InvalidSignatureError,
    MalformedEventError,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/billing")
async def billing_webhook(request: Request, synchronizer: SynchronizerDep):
    """
    Handle Stripe webhook events.

    The raw body is needed for signature verification, so it is read
    before any parsing.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        await synchronizer.handle(payload, signature)
    except InvalidSignatureError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": e.message},
        )
    except MalformedEventError as e:
        logger.error(f"Malformed webhook event: {e} {e.details}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": e.message},
        )
    except Exception as e:
        logger.exception("Error processing webhook")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e) or "Webhook processing failed"},
        )

    return {"received": True}
