"""
VoxWarp - FastAPI Application

Main entry point for the metering backend.
Provides endpoints for usage, metered transcription/enrichment,
subscriptions and the Stripe webhook.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voxwarp.config.settings import settings
from voxwarp.infrastructure.exceptions import (
    VoxWarpError,
    ValidationError,
    AdmissionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderAuthError,
    ProviderTimeoutError,
    InvalidSignatureError,
    MalformedEventError,
    BillingServiceError,
    ConfigurationError,
)
from voxwarp.infrastructure.payments.stripe_service import get_stripe_service
from voxwarp.services.entitlement_sync import EntitlementSynchronizer
from voxwarp.services.notifications import UsageChangeNotifier
from voxwarp.services.usage_recorder import UsageRecorder

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"VoxWarp Backend starting in {settings.environment} mode...")

    # Initialize SQLModel database if URL is configured
    if settings.database_url:
        try:
            from voxwarp.infrastructure.db.database import init_db
            await init_db()
            logger.info("SQLModel database connection pool initialized")
        except Exception as e:
            logger.warning(f"SQLModel database initialization skipped: {e}")

    # Shared services, registered exactly once per process
    notifier = UsageChangeNotifier()
    app.state.notifier = notifier
    app.state.recorder = UsageRecorder(notifier=notifier)
    app.state.synchronizer = EntitlementSynchronizer(
        get_stripe_service(),
        notifier=notifier,
    )
    app.state.orchestrator = None

    yield

    # Shutdown
    if settings.database_url:
        try:
            from voxwarp.infrastructure.db.database import close_db
            await close_db()
            logger.info("SQLModel database connection pool closed")
        except Exception as e:
            logger.warning(f"SQLModel database shutdown error: {e}")

    logger.info("VoxWarp Backend shutting down...")


app = FastAPI(
    title="VoxWarp",
    description="Usage metering and entitlements for the VoxWarp voice-note app",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=400,
        content=exc.to_dict(),
    )


@app.exception_handler(AdmissionError)
async def admission_error_handler(request: Request, exc: AdmissionError):
    """Handle quota rejections (payment required)."""
    return JSONResponse(
        status_code=402,
        content=exc.to_dict(),
    )


@app.exception_handler(ProviderRateLimitError)
async def rate_limit_error_handler(request: Request, exc: ProviderRateLimitError):
    """Handle rate limit errors."""
    return JSONResponse(
        status_code=429,
        content=exc.to_dict(),
    )


@app.exception_handler(ProviderTimeoutError)
async def provider_timeout_handler(request: Request, exc: ProviderTimeoutError):
    """Handle inference timeouts."""
    return JSONResponse(
        status_code=504,
        content=exc.to_dict(),
    )


@app.exception_handler(ProviderAuthError)
async def provider_auth_error_handler(request: Request, exc: ProviderAuthError):
    """Handle provider credential failures."""
    logger.error(f"Inference provider rejected credentials: {exc.message}")
    return JSONResponse(
        status_code=502,
        content=exc.to_dict(),
    )


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    """Handle inference provider failures."""
    return JSONResponse(
        status_code=502,
        content=exc.to_dict(),
    )


@app.exception_handler(InvalidSignatureError)
async def invalid_signature_handler(request: Request, exc: InvalidSignatureError):
    """Handle webhook signature failures."""
    return JSONResponse(
        status_code=400,
        content=exc.to_dict(),
    )


@app.exception_handler(MalformedEventError)
async def malformed_event_handler(request: Request, exc: MalformedEventError):
    """Handle malformed webhook events."""
    return JSONResponse(
        status_code=400,
        content=exc.to_dict(),
    )


@app.exception_handler(BillingServiceError)
async def billing_error_handler(request: Request, exc: BillingServiceError):
    """Handle payment processor failures."""
    logger.warning(f"Billing error: {exc.message}")
    return JSONResponse(
        status_code=400,
        content=exc.to_dict(),
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """Handle missing configuration."""
    logger.error(f"Configuration error: {exc.message}")
    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
    )


@app.exception_handler(VoxWarpError)
async def general_error_handler(request: Request, exc: VoxWarpError):
    """Handle all other application errors."""
    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "voxwarp"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "VoxWarp API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from voxwarp.api.routes import usage, metering, subscriptions, webhooks  # noqa: E402

app.include_router(usage.router, tags=["Usage"])
app.include_router(metering.router, tags=["Metering"])
app.include_router(subscriptions.router, tags=["Subscriptions"])
app.include_router(webhooks.router, tags=["Webhooks"])
