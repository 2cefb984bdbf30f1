"""
Application Settings for VoxWarp

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The metering constants (TRIAL_TOKENS_LIMIT, PRO_TOKENS_LIMIT,
    TOKENS_PER_MINUTE, TOKENS_PER_ENRICHMENT) are part of the external
    contract: the Estimator and the Usage Recorder both read them from here.
    """

    # Supabase Auth (JWT verification)
    supabase_url: str = "http://localhost:54321"
    supabase_jwt_secret: Optional[str] = None

    # Google AI Configuration (accepts GOOGLE_API_KEY or GEMINI_API_KEY)
    google_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    enrichment_max_output_tokens: int = 2000

    # Stripe Configuration
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_price_id: Optional[str] = None
    webhook_tolerance_seconds: int = 300
    checkout_success_url: str = "http://localhost:1420/payment/success"
    checkout_cancel_url: str = "http://localhost:1420/payment/cancel"

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    allowed_origins: list[str] = [
        "http://localhost:1420",
        "http://localhost:3000",
        "tauri://localhost",
    ]

    # Plan limits
    trial_tokens_limit: int = 5000
    starter_tokens_limit: int = 15000
    pro_tokens_limit: int = 50000

    # Metering rates
    tokens_per_minute: int = 500
    tokens_per_enrichment: int = 200
    audio_bytes_per_minute: int = 1024 * 1024  # webm: ~1 MB per minute

    # Upper bound for a single inference provider call
    inference_timeout_seconds: float = 120.0

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_metering(self) -> "Settings":
        """Normalize API keys and reject unusable metering constants."""
        # Normalize gemini_api_key to google_api_key
        if not self.google_api_key and self.gemini_api_key:
            self.google_api_key = self.gemini_api_key

        for name in (
            "tokens_per_minute",
            "tokens_per_enrichment",
            "audio_bytes_per_minute",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive")

        for name in (
            "trial_tokens_limit",
            "starter_tokens_limit",
            "pro_tokens_limit",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name.upper()} must not be negative")

        if self.inference_timeout_seconds <= 0:
            raise ValueError("INFERENCE_TIMEOUT_SECONDS must be positive")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
