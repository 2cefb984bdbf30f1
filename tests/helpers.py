"""
Shared test helpers: signed JWTs and signed Stripe webhook payloads.
"""

import hashlib
import hmac
import json
import time
from typing import Optional

import jwt

from voxwarp.config.settings import get_settings


TEST_USER_ID = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"


def make_token(
    user_id: str = TEST_USER_ID,
    email: Optional[str] = "user@example.com",
    expires_in: int = 3600,
    secret: Optional[str] = None,
) -> str:
    """HS256 Supabase-style access token."""
    settings = get_settings()
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "iss": f"{settings.supabase_url}/auth/v1",
        "exp": int(time.time()) + expires_in,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret or settings.supabase_jwt_secret, algorithm="HS256")


def sign_payload(
    payload: str,
    secret: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """Build a Stripe-Signature header for payload."""
    secret = secret or get_settings().stripe_webhook_secret
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> str:
    """Serialized Stripe event envelope."""
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    })
