"""
Usage Domain Models

Enums, entities and DTOs for the metering bounded context:
the per-account quota ledger and the append-only usage history.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from voxwarp.config.settings import Settings, get_settings


class Plan(str, Enum):
    """Subscription plan tiers."""
    TRIAL = "trial"
    STARTER = "starter"
    PRO = "pro"
    UNLIMITED = "unlimited"


class UsageAction(str, Enum):
    """Metered operations recorded in the usage history."""
    TRANSCRIPTION = "transcription"
    ENRICHMENT = "enrichment"


# =============================================================================
# Domain Entities
# =============================================================================

class AccountQuota(BaseModel):
    """Quota ledger row for one account."""
    user_id: str
    tokens_used: int = Field(default=0, ge=0)
    tokens_limit: int = Field(default=0, ge=0)
    plan: Plan = Plan.TRIAL
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_unlimited(self) -> bool:
        return self.plan == Plan.UNLIMITED

    @property
    def remaining(self) -> Optional[int]:
        """Tokens left before the limit, or None for unlimited plans."""
        if self.is_unlimited:
            return None
        return max(0, self.tokens_limit - self.tokens_used)


class UsageHistoryEntry(BaseModel):
    """Immutable record of one metered operation."""
    id: Optional[str] = None
    user_id: str
    tokens_used: int
    action: UsageAction
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Plan Configuration (Business Logic)
# =============================================================================

def get_tokens_limit(plan: Plan, settings: Optional[Settings] = None) -> int:
    """Default token limit for a plan. Unlimited plans ignore the limit."""
    settings = settings or get_settings()
    limits = {
        Plan.TRIAL: settings.trial_tokens_limit,
        Plan.STARTER: settings.starter_tokens_limit,
        Plan.PRO: settings.pro_tokens_limit,
        Plan.UNLIMITED: settings.pro_tokens_limit,
    }
    return limits[plan]


def trial_quota(user_id: str, settings: Optional[Settings] = None) -> AccountQuota:
    """Ledger defaults for an account that has never been metered."""
    return AccountQuota(
        user_id=user_id,
        tokens_used=0,
        tokens_limit=get_tokens_limit(Plan.TRIAL, settings),
        plan=Plan.TRIAL,
    )


# =============================================================================
# Request/Response DTOs
# =============================================================================

class UsageResponse(BaseModel):
    """Response DTO for the usage query endpoint."""
    tokens_used: int
    tokens_limit: int
    plan: Plan
    remaining: Optional[int] = Field(
        default=None,
        description="Tokens left in this period (null for unlimited plans)"
    )


class UsageHistoryResponse(BaseModel):
    """Response DTO for the usage history endpoint."""
    entries: list[UsageHistoryEntry]
    total_tokens: int


class TranscribeRequest(BaseModel):
    """Request DTO for a metered transcription."""
    audio: str = Field(..., min_length=1, description="Base64 encoded audio (webm)")
    language: str = Field(default="auto", max_length=10)
    mode: str = Field(default="clean-transcript", max_length=50)


class TranscribeResponse(BaseModel):
    """Response DTO for a metered transcription."""
    result: str
    enriched_content: str = Field(default="", alias="enrichedContent")
    tokens_used: int = Field(alias="tokensUsed")

    model_config = ConfigDict(populate_by_name=True)


class EnrichRequest(BaseModel):
    """Request DTO for a metered enrichment."""
    transcript: str = Field(..., min_length=1)
    mode: str = Field(default="clean-transcript", max_length=50)
    language: str = Field(default="auto", max_length=10)


class EnrichResponse(BaseModel):
    """Response DTO for a metered enrichment."""
    result: str
    tokens_used: int = Field(alias="tokensUsed")

    model_config = ConfigDict(populate_by_name=True)
