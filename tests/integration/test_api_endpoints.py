"""
Integration tests for the VoxWarp API endpoints.

Tests the full request/response cycle against an in-memory database.
"""

import base64

import pytest
from fastapi.testclient import TestClient

from tests.helpers import TEST_USER_ID
from voxwarp.domain.interfaces import InferenceProvider, InferenceResult
from voxwarp.domain.subscription import Subscription, SubscriptionStatus
from voxwarp.domain.usage import Plan, UsageAction
from voxwarp.infrastructure.db.repositories import (
    QuotaRepository,
    SubscriptionRepository,
    UsageHistoryRepository,
)
from voxwarp.infrastructure.exceptions import (
    InsufficientRemainingError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    QuotaExhaustedError,
)
from voxwarp.services.orchestrator import MeteredOutcome, RequestOrchestrator


AUDIO_B64 = base64.b64encode(b"\x1aE\xdf\xa3" + b"\x00" * 2048).decode()


class EchoProvider(InferenceProvider):
    """Provider that answers without a network call."""

    async def transcribe(self, audio, language_hint=None):
        return InferenceResult(text="raw transcript")

    async def enrich(self, text, mode_prompt, language_hint=None):
        return InferenceResult(text=f"enriched: {text}")


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client: TestClient):
        """Root endpoint should return welcome message."""
        response = client.get("/")
        assert response.status_code == 200
        assert "message" in response.json()

    def test_health_endpoint(self, client: TestClient):
        """Health endpoint should return healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "voxwarp"}


class TestUsageEndpoints:

    @pytest.mark.asyncio
    async def test_first_read_creates_trial(self, api_client, auth_headers):
        response = await api_client.get("/usage", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "tokens_used": 0,
            "tokens_limit": 5000,
            "plan": "trial",
            "remaining": 5000,
        }

    @pytest.mark.asyncio
    async def test_unlimited_plan_has_no_remaining(self, api_client, auth_headers, session_factory):
        async with session_factory() as session:
            await QuotaRepository(session).set_entitlement(TEST_USER_ID, Plan.UNLIMITED, 0)

        response = await api_client.get("/usage", headers=auth_headers)

        assert response.json()["plan"] == "unlimited"
        assert response.json()["remaining"] is None

    @pytest.mark.asyncio
    async def test_history(self, api_client, auth_headers, session_factory):
        async with session_factory() as session:
            history = UsageHistoryRepository(session)
            await history.append(TEST_USER_ID, 700, UsageAction.TRANSCRIPTION)
            await history.append(TEST_USER_ID, 200, UsageAction.ENRICHMENT)

        response = await api_client.get("/usage/history?limit=1", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["entries"]) == 1
        assert data["total_tokens"] == 900

    @pytest.mark.asyncio
    async def test_history_limit_is_bounded(self, api_client, auth_headers):
        response = await api_client.get("/usage/history?limit=500", headers=auth_headers)
        assert response.status_code == 422


class TestMeteringEndpoints:

    @pytest.mark.asyncio
    async def test_transcribe(self, api_client, auth_headers, mock_orchestrator):
        mock_orchestrator.transcribe.return_value = MeteredOutcome(
            result="hello", enriched_content="Hello.", tokens_used=700
        )

        response = await api_client.post(
            "/transcribe",
            json={"audio": AUDIO_B64, "language": "en", "mode": "summarize"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json() == {
            "result": "hello",
            "enrichedContent": "Hello.",
            "tokensUsed": 700,
        }
        args, kwargs = mock_orchestrator.transcribe.call_args
        assert args[0] == TEST_USER_ID
        assert kwargs == {"language": "en", "mode": "summarize"}

    @pytest.mark.asyncio
    async def test_transcribe_accepts_data_url(self, api_client, auth_headers, mock_orchestrator):
        mock_orchestrator.transcribe.return_value = MeteredOutcome(result="hi", tokens_used=700)

        response = await api_client.post(
            "/transcribe",
            json={"audio": f"data:audio/webm;base64,{AUDIO_B64}"},
            headers=auth_headers,
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_transcribe_rejects_bad_base64(self, api_client, auth_headers, mock_orchestrator):
        response = await api_client.post(
            "/transcribe",
            json={"audio": "not base64!!"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
        mock_orchestrator.transcribe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_enrich(self, api_client, auth_headers, mock_orchestrator):
        mock_orchestrator.enrich.return_value = MeteredOutcome(result="- item", tokens_used=200)

        response = await api_client.post(
            "/enrich",
            json={"transcript": "buy milk", "mode": "action-items"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"result": "- item", "tokensUsed": 200}

    @pytest.mark.asyncio
    async def test_enrich_requires_transcript(self, api_client, auth_headers):
        response = await api_client.post("/enrich", json={"transcript": ""}, headers=auth_headers)
        assert response.status_code == 422


class TestErrorMapping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, status_code",
        [
            (QuotaExhaustedError(), 402),
            (InsufficientRemainingError(remaining=100, required=200), 402),
            (ProviderRateLimitError("slow down"), 429),
            (ProviderTimeoutError("timed out"), 504),
        ],
    )
    async def test_orchestrator_errors(self, api_client, auth_headers, mock_orchestrator, error, status_code):
        mock_orchestrator.enrich.side_effect = error

        response = await api_client.post(
            "/enrich", json={"transcript": "text"}, headers=auth_headers
        )

        assert response.status_code == status_code
        assert response.json()["error"] == type(error).__name__

    @pytest.mark.asyncio
    async def test_insufficient_remaining_body(self, api_client, auth_headers, mock_orchestrator):
        mock_orchestrator.enrich.side_effect = InsufficientRemainingError(remaining=100, required=200)

        response = await api_client.post(
            "/enrich", json={"transcript": "text"}, headers=auth_headers
        )

        assert response.json()["details"] == {"remaining": 100, "required": 200}


class TestMeteredFlow:
    """Real orchestrator and recorder against the test database."""

    @pytest.fixture
    def metered_app(self, app, api_client, session_factory):
        app.state.orchestrator = RequestOrchestrator(
            EchoProvider(),
            app.state.recorder,
            session_factory,
        )
        return app

    @pytest.mark.asyncio
    async def test_transcription_is_charged(self, metered_app, api_client, auth_headers):
        response = await api_client.post(
            "/transcribe", json={"audio": AUDIO_B64}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["enrichedContent"] == "enriched: raw transcript"
        assert response.json()["tokensUsed"] == 700

        usage = (await api_client.get("/usage", headers=auth_headers)).json()
        assert usage["tokens_used"] == 700
        assert usage["remaining"] == 4300

        history = (await api_client.get("/usage/history", headers=auth_headers)).json()
        assert history["entries"][0]["action"] == "transcription"

    @pytest.mark.asyncio
    async def test_exhausted_account_gets_402(self, metered_app, api_client, auth_headers, session_factory):
        async with session_factory() as session:
            await QuotaRepository(session).increment_usage(TEST_USER_ID, 5000)

        response = await api_client.post(
            "/enrich", json={"transcript": "text"}, headers=auth_headers
        )

        assert response.status_code == 402
        assert response.json()["details"]["remaining"] == 0

        usage = (await api_client.get("/usage", headers=auth_headers)).json()
        assert usage["tokens_used"] == 5000


class TestSubscriptionEndpoints:

    @pytest.mark.asyncio
    async def test_status_without_record(self, api_client, auth_headers):
        response = await api_client.get("/subscriptions/status", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["plan"] == "trial"
        assert data["status"] == "incomplete"
        assert data["is_active"] is False

    @pytest.mark.asyncio
    async def test_status_active_pro(self, api_client, auth_headers, session_factory):
        async with session_factory() as session:
            await SubscriptionRepository(session).upsert(
                Subscription(
                    user_id=TEST_USER_ID,
                    stripe_subscription_id="sub_1",
                    plan=Plan.PRO,
                    status=SubscriptionStatus.ACTIVE,
                )
            )

        response = await api_client.get("/subscriptions/status", headers=auth_headers)

        assert response.json()["is_active"] is True

    @pytest.mark.asyncio
    async def test_checkout_creates_customer_record(
        self, api_client, auth_headers, stripe_service, session_factory
    ):
        response = await api_client.post("/subscriptions/checkout", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "checkout_url": "https://checkout.stripe.com/c/cs_test",
            "session_id": "cs_test",
        }
        stripe_service.get_or_create_customer.assert_awaited_once_with(
            user_id=TEST_USER_ID,
            email="user@example.com",
            existing_customer_id=None,
        )

        async with session_factory() as session:
            record = await SubscriptionRepository(session).get_by_user_id(TEST_USER_ID)
        assert record.stripe_customer_id == "cus_test"
        assert record.status == SubscriptionStatus.INCOMPLETE

    @pytest.mark.asyncio
    async def test_checkout_with_active_subscription(
        self, api_client, auth_headers, stripe_service, session_factory
    ):
        async with session_factory() as session:
            await SubscriptionRepository(session).upsert(
                Subscription(
                    user_id=TEST_USER_ID,
                    stripe_customer_id="cus_test",
                    stripe_subscription_id="sub_1",
                    plan=Plan.PRO,
                    status=SubscriptionStatus.ACTIVE,
                )
            )

        response = await api_client.post("/subscriptions/checkout", headers=auth_headers)

        assert response.status_code == 409
        stripe_service.create_checkout_session.assert_not_awaited()
