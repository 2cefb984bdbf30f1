"""
Quota Ledger Database Model

One row per account: consumed tokens, allowed tokens and plan tier.
"""

from sqlmodel import Field

from voxwarp.infrastructure.db.models.base import TimestampMixin


class UserUsageModel(TimestampMixin, table=True):
    """
    Quota ledger table.

    tokens_used is written by the Usage Recorder (increments) and by the
    two entitlement reset paths; plan and tokens_limit only by the
    Entitlement Synchronizer.
    """

    __tablename__ = "user_usage"

    user_id: str = Field(primary_key=True, max_length=64)
    tokens_used: int = Field(default=0, nullable=False)
    tokens_limit: int = Field(default=0, nullable=False)
    plan: str = Field(default="trial", max_length=20, nullable=False)
