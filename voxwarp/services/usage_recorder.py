"""
Usage Recorder

Charges a completed inference to the account's quota ledger and appends
the matching usage history entry.

Accounting failures never fail the user's request: the inference already
succeeded and its result is returned regardless. They are logged for
reconciliation instead.
"""

import logging
from typing import AsyncContextManager, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.config.settings import Settings, get_settings
from voxwarp.domain.usage import UsageAction
from voxwarp.infrastructure.db.database import get_session_context
from voxwarp.infrastructure.db.repositories import (
    QuotaRepository,
    UsageHistoryRepository,
)
from voxwarp.services.notifications import UsageChangeNotifier


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class UsageRecorder:
    """Post-success accounting for metered requests."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session_context,
        settings: Optional[Settings] = None,
        notifier: Optional[UsageChangeNotifier] = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._notifier = notifier

    async def record(
        self,
        user_id: str,
        actual_cost: int,
        action: UsageAction,
    ) -> bool:
        """
        Add actual_cost to tokens_used and append a history entry.

        Both writes share one transaction in a session of their own, so a
        rolled-back request session cannot undo a charge.

        Returns:
            True if the charge was persisted, False if it was lost
        """
        if actual_cost < 0:
            raise ValueError("actual_cost must not be negative")

        try:
            async with self._session_factory() as session:
                quotas = QuotaRepository(session, self._settings)
                history = UsageHistoryRepository(session)
                await quotas.increment_usage(user_id, actual_cost)
                await history.append(user_id, actual_cost, action)
        except Exception:
            logger.exception(
                f"Failed to record {actual_cost} tokens of {UsageAction(action).value} "
                f"for user {user_id}"
            )
            return False

        logger.info(f"Recorded {actual_cost} tokens of {UsageAction(action).value} for user {user_id}")

        if self._notifier:
            self._notifier.publish(user_id, "usage_recorded")

        return True
