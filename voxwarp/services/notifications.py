"""
Usage Change Notifications

In-process pub/sub that tells connected clients an account's quota
changed, so the usage display refreshes right after a metered request
or a billing event instead of waiting for the next poll.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Set


logger = logging.getLogger(__name__)


class UsageChangeNotifier:
    """Fan out quota change events to per-account subscriber queues."""

    MAX_PENDING = 16

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.MAX_PENDING)
        self._subscribers[user_id].add(queue)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))

    def publish(self, user_id: str, reason: str) -> None:
        """
        Notify every subscriber of user_id.

        Events are hints to re-read the ledger, so a slow subscriber with a
        full queue simply misses one.
        """
        for queue in list(self._subscribers.get(user_id, ())):
            try:
                queue.put_nowait(reason)
            except asyncio.QueueFull:
                logger.debug(f"Dropping usage event for slow subscriber of {user_id}")
