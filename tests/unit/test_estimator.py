"""
Unit tests for the token cost estimator.
"""

import pytest

from voxwarp.domain.estimator import (
    MeteringRates,
    WorkKind,
    estimate,
    estimated_minutes,
)


RATES = MeteringRates(
    tokens_per_minute=500,
    tokens_per_enrichment=200,
    audio_bytes_per_minute=1024 * 1024,
)


class TestTranscriptionEstimate:

    def test_short_recording_rounds_up_to_one_minute(self):
        assert estimate(WorkKind.TRANSCRIPTION, 10, RATES) == 500 + 200

    def test_exactly_one_minute(self):
        assert estimate(WorkKind.TRANSCRIPTION, 1024 * 1024, RATES) == 700

    def test_partial_minute_rounds_up(self):
        # 2.5 MB -> 3 minutes
        size = int(2.5 * 1024 * 1024)
        assert estimated_minutes(size, RATES) == 3
        assert estimate(WorkKind.TRANSCRIPTION, size, RATES) == 3 * 500 + 200

    def test_accepts_string_kind(self):
        assert estimate("transcription", 10, RATES) == 700

    def test_larger_payload_never_costs_less(self):
        sizes = [1, 1024, 1024 * 1024, 1024 * 1024 + 1, 10 * 1024 * 1024]
        costs = [estimate(WorkKind.TRANSCRIPTION, s, RATES) for s in sizes]
        assert costs == sorted(costs)


class TestEnrichmentEstimate:

    def test_flat_rate(self):
        assert estimate(WorkKind.ENRICHMENT, 1, RATES) == 200
        assert estimate(WorkKind.ENRICHMENT, 50_000, RATES) == 200

    def test_uses_custom_rates(self):
        rates = MeteringRates(tokens_per_minute=100, tokens_per_enrichment=50)
        assert estimate(WorkKind.ENRICHMENT, 10, rates) == 50
        assert estimate(WorkKind.TRANSCRIPTION, 10, rates) == 150


class TestEstimateValidation:

    @pytest.mark.parametrize("size_hint", [0, -1, -1024])
    def test_rejects_non_positive_size(self, size_hint):
        with pytest.raises(ValueError):
            estimate(WorkKind.TRANSCRIPTION, size_hint, RATES)

    @pytest.mark.parametrize("size_hint", [1.5, "10", None, True])
    def test_rejects_non_integer_size(self, size_hint):
        with pytest.raises(ValueError):
            estimate(WorkKind.ENRICHMENT, size_hint, RATES)

    def test_rejects_unknown_kind(self):
        with pytest.raises(ValueError):
            estimate("translation", 10, RATES)


class TestMeteringRates:

    def test_from_settings(self):
        from voxwarp.config.settings import Settings

        settings = Settings(tokens_per_minute=42, tokens_per_enrichment=7)
        rates = MeteringRates.from_settings(settings)

        assert rates.tokens_per_minute == 42
        assert rates.tokens_per_enrichment == 7
        assert rates.audio_bytes_per_minute == settings.audio_bytes_per_minute
