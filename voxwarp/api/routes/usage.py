"""
Usage Routes

Quota ledger queries for the signed-in account, plus a server-sent
event stream that fires whenever the account's quota changes.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Query, Request
from sse_starlette.sse import EventSourceResponse

from voxwarp.api.dependencies import (
    NotifierDep,
    QuotaRepoDep,
    UsageHistoryRepoDep,
    UserIdDep,
)
from voxwarp.domain.usage import AccountQuota, UsageHistoryResponse, UsageResponse
from voxwarp.infrastructure.db.database import get_session_context
from voxwarp.infrastructure.db.repositories import QuotaRepository


logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds between disconnect checks while waiting for a change
STREAM_POLL_SECONDS = 15.0


def to_usage_response(quota: AccountQuota) -> UsageResponse:
    return UsageResponse(
        tokens_used=quota.tokens_used,
        tokens_limit=quota.tokens_limit,
        plan=quota.plan,
        remaining=quota.remaining,
    )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(user_id: UserIdDep, quotas: QuotaRepoDep):
    """
    Current quota for the signed-in account.

    Accounts that were never metered get a trial row on first read.
    """
    quota = await quotas.get_or_create_trial(user_id)
    return to_usage_response(quota)


@router.get("/usage/history", response_model=UsageHistoryResponse)
async def get_usage_history(
    user_id: UserIdDep,
    history: UsageHistoryRepoDep,
    limit: int = Query(default=50, ge=1, le=200),
):
    """Most recent metered operations, newest first."""
    entries = await history.list_for_user(user_id, limit=limit)
    total = await history.total_for_user(user_id)
    return UsageHistoryResponse(entries=entries, total_tokens=total)


async def _usage_snapshot(user_id: str) -> dict:
    async with get_session_context() as session:
        quota = await QuotaRepository(session).get_or_default(user_id)
    return to_usage_response(quota).model_dump(mode="json")


@router.get("/usage/stream")
async def stream_usage(request: Request, user_id: UserIdDep, notifier: NotifierDep):
    """
    Stream usage updates via SSE.

    Sends the current usage on connect, then one `usage` event after each
    recorded charge or billing change for this account.
    """
    queue = notifier.subscribe(user_id)

    async def event_generator():
        try:
            snapshot = await _usage_snapshot(user_id)
            yield {"event": "usage", "data": json.dumps(snapshot)}

            while not await request.is_disconnected():
                try:
                    reason = await asyncio.wait_for(queue.get(), timeout=STREAM_POLL_SECONDS)
                except asyncio.TimeoutError:
                    continue

                snapshot = await _usage_snapshot(user_id)
                snapshot["reason"] = reason
                yield {"event": "usage", "data": json.dumps(snapshot)}
        finally:
            notifier.unsubscribe(user_id, queue)

    return EventSourceResponse(event_generator())
