"""
Test configuration and fixtures for VoxWarp.

Provides shared fixtures for unit and integration tests: an in-memory
SQLite database, signed JWTs, signed Stripe payloads and an app client
wired to both.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from unittest.mock import MagicMock, AsyncMock, patch

# Test credentials must be in place before settings are first loaded
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_PRICE_ID", "price_test_pro")
os.environ.setdefault("ENVIRONMENT", "testing")

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from voxwarp.config.settings import get_settings
from tests.helpers import make_token
from voxwarp.infrastructure.db import models  # noqa: F401  (registers tables)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def session_factory(session_maker):
    """Drop-in for get_session_context bound to the test database."""

    @asynccontextmanager
    async def factory() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return factory


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


# =============================================================================
# Auth Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def no_jwks():
    """Never reach the network for JWKS; tokens fall back to HS256."""
    with patch(
        "voxwarp.api.dependencies._decode_with_jwks",
        side_effect=jwt.InvalidTokenError("JWKS unavailable in tests"),
    ):
        yield


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def mock_orchestrator():
    mock = MagicMock()
    mock.transcribe = AsyncMock()
    mock.enrich = AsyncMock()
    return mock


@pytest.fixture
def stripe_service():
    """Real signature verification, stubbed Stripe API calls."""
    from voxwarp.infrastructure.payments.stripe_service import StripeService

    service = StripeService(get_settings())
    service.get_subscription = AsyncMock()
    service.get_or_create_customer = AsyncMock(return_value="cus_test")
    service.create_checkout_session = AsyncMock(
        return_value={"id": "cs_test", "url": "https://checkout.stripe.com/c/cs_test"}
    )
    return service


@pytest.fixture
def app():
    """Get the FastAPI application."""
    from voxwarp.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Synchronous test client (no database)."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
async def api_client(
    app,
    session_maker,
    session_factory,
    stripe_service,
    mock_orchestrator,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Async client with every service bound to the test database.

    Shares the test's event loop with the SQLite engine.
    """
    from voxwarp.infrastructure.db.database import get_session
    from voxwarp.infrastructure.payments.stripe_service import get_stripe_service
    from voxwarp.services.entitlement_sync import EntitlementSynchronizer
    from voxwarp.services.notifications import UsageChangeNotifier
    from voxwarp.services.usage_recorder import UsageRecorder

    async def _override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_stripe_service] = lambda: stripe_service

    notifier = UsageChangeNotifier()
    app.state.notifier = notifier
    app.state.recorder = UsageRecorder(session_factory, notifier=notifier)
    app.state.synchronizer = EntitlementSynchronizer(
        stripe_service,
        session_factory,
        notifier=notifier,
    )
    app.state.orchestrator = mock_orchestrator

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
