"""
Admission Controller

Decides whether a metered request may proceed, given the account's
ledger state and the estimated cost, before any inference cost is
incurred.

The check is advisory: two concurrent requests from the same account
can both be admitted against the same headroom. The overshoot is bounded
by concurrent requests times cost per request and is accepted rather
than serializing every request behind a per-account lock.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from voxwarp.domain.usage import AccountQuota
from voxwarp.infrastructure.exceptions import (
    AdmissionError,
    InsufficientRemainingError,
    QuotaExhaustedError,
)


class RejectReason(str, Enum):
    """Why a request was not admitted."""
    QUOTA_EXHAUSTED = "quota_exhausted"
    INSUFFICIENT_REMAINING = "insufficient_remaining"


@dataclass(frozen=True)
class Admit:
    """The request may proceed."""

    @property
    def admitted(self) -> bool:
        return True


@dataclass(frozen=True)
class Reject:
    """The request is blocked, with the headroom that is left."""
    reason: RejectReason
    remaining: int
    required: Optional[int] = None

    @property
    def admitted(self) -> bool:
        return False

    def to_error(self) -> AdmissionError:
        """Exception carrying the rejection to the caller."""
        if self.reason == RejectReason.QUOTA_EXHAUSTED:
            return QuotaExhaustedError(remaining=self.remaining)
        return InsufficientRemainingError(
            remaining=self.remaining,
            required=self.required,
        )


AdmissionDecision = Union[Admit, Reject]


def admit(quota: AccountQuota, estimated_cost: int) -> AdmissionDecision:
    """
    Admit or reject a request against the account's quota.

    Args:
        quota: Current ledger state
        estimated_cost: Pre-estimated token cost of the request

    Returns:
        Admit, or Reject with the reason and remaining balance
    """
    if estimated_cost < 0:
        raise ValueError(f"estimated_cost must not be negative, got {estimated_cost}")

    if quota.is_unlimited:
        return Admit()

    if quota.tokens_used >= quota.tokens_limit:
        return Reject(reason=RejectReason.QUOTA_EXHAUSTED, remaining=0)

    remaining = quota.tokens_limit - quota.tokens_used
    if quota.tokens_used + estimated_cost > quota.tokens_limit:
        return Reject(
            reason=RejectReason.INSUFFICIENT_REMAINING,
            remaining=remaining,
            required=estimated_cost,
        )

    return Admit()
