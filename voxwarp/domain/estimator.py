"""
Token Cost Estimator

Maps a unit of work to a conservative token-cost pre-estimate.
Pure functions only: the estimate gates admission before the
inference provider is ever called, so it must not depend on it.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from voxwarp.config.settings import Settings, get_settings


class WorkKind(str, Enum):
    """Kinds of metered work."""
    TRANSCRIPTION = "transcription"
    ENRICHMENT = "enrichment"


@dataclass(frozen=True)
class MeteringRates:
    """Token rates shared by the Estimator and the Usage Recorder."""
    tokens_per_minute: int = 500
    tokens_per_enrichment: int = 200
    audio_bytes_per_minute: int = 1024 * 1024

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MeteringRates":
        settings = settings or get_settings()
        return cls(
            tokens_per_minute=settings.tokens_per_minute,
            tokens_per_enrichment=settings.tokens_per_enrichment,
            audio_bytes_per_minute=settings.audio_bytes_per_minute,
        )


def estimated_minutes(audio_bytes: int, rates: MeteringRates) -> int:
    """Audio duration derived from payload size, with a one minute floor."""
    return max(1, math.ceil(audio_bytes / rates.audio_bytes_per_minute))


def estimate(
    kind: WorkKind,
    size_hint: int,
    rates: Optional[MeteringRates] = None,
) -> int:
    """
    Estimate the token cost of a unit of work.

    Args:
        kind: Transcription (size_hint = audio bytes) or enrichment
            (size_hint = text length)
        size_hint: Payload size, must be positive
        rates: Metering constants, defaults to the configured ones

    Returns:
        Estimated token cost

    Raises:
        ValueError: size_hint is not a positive integer
    """
    if isinstance(size_hint, bool) or not isinstance(size_hint, int):
        raise ValueError(f"size_hint must be an integer, got {type(size_hint).__name__}")
    if size_hint <= 0:
        raise ValueError(f"size_hint must be positive, got {size_hint}")

    rates = rates or MeteringRates.from_settings()
    kind = WorkKind(kind)

    if kind == WorkKind.TRANSCRIPTION:
        minutes = estimated_minutes(size_hint, rates)
        return minutes * rates.tokens_per_minute + rates.tokens_per_enrichment

    return rates.tokens_per_enrichment
