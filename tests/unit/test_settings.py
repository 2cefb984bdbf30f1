"""
Unit tests for Pydantic Settings configuration.

Tests defaults and validation of the metering constants.
"""

import pytest
from pydantic import ValidationError

from voxwarp.config.settings import Settings, get_settings


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_loads_from_env(self):
        """Test credentials are set by conftest before the first load."""
        settings = get_settings()

        assert settings.stripe_webhook_secret == "whsec_test_secret"
        assert settings.stripe_price_id == "price_test_pro"
        assert settings.supabase_jwt_secret is not None

    def test_metering_defaults(self):
        settings = Settings()

        assert settings.trial_tokens_limit == 5000
        assert settings.pro_tokens_limit == 50000
        assert settings.tokens_per_minute == 500
        assert settings.tokens_per_enrichment == 200
        assert settings.webhook_tolerance_seconds == 300

    def test_environment_flags(self):
        assert Settings(environment="production").is_production is True
        assert Settings(environment="development").is_development is True
        assert Settings(environment="testing").is_production is False

    def test_allowed_origins_includes_desktop_shell(self):
        settings = Settings()

        assert "tauri://localhost" in settings.allowed_origins
        assert "http://localhost:1420" in settings.allowed_origins

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestSettingsValidation:

    @pytest.mark.parametrize(
        "field",
        ["tokens_per_minute", "tokens_per_enrichment", "audio_bytes_per_minute"],
    )
    def test_rates_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_limits_must_not_be_negative(self):
        with pytest.raises(ValidationError):
            Settings(trial_tokens_limit=-1)

    def test_zero_limit_is_allowed(self):
        assert Settings(trial_tokens_limit=0).trial_tokens_limit == 0

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(inference_timeout_seconds=0)
