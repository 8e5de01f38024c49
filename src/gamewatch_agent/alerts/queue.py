"""
Retry Queue
===========

In-memory FIFO of deliveries deferred while the host was offline.

Not persisted: a process restart loses queued alerts. All mutations are
serialized by an asyncio.Lock.
"""

import asyncio
import logging
from collections import deque
from typing import Deque, List

from gamewatch_agent.models.alert import QueuedAlert


logger = logging.getLogger(__name__)


class RetryQueue:
    """
    Ordered queue of QueuedAlert.

    Example:
        queue = RetryQueue()
        await queue.enqueue(item)
        for item in await queue.drain():
            ...
    """

    def __init__(self) -> None:
        self._items: Deque[QueuedAlert] = deque()
        self._lock = asyncio.Lock()

    async def enqueue(self, item: QueuedAlert) -> int:
        """Append an item; returns the new queue length."""
        async with self._lock:
            self._items.append(item)
            size = len(self._items)
        logger.debug(f"Queued {item.destination_kind.value} alert {item.id} (size={size})")
        return size

    async def drain(self) -> List[QueuedAlert]:
        """Remove and return every queued item, oldest first."""
        async with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    async def clear(self) -> int:
        """Discard every queued item; returns how many were dropped."""
        async with self._lock:
            dropped = len(self._items)
            self._items.clear()
        return dropped

    def snapshot(self) -> List[QueuedAlert]:
        """Copy of the queue contents, oldest first."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
