"""
Activity Log
============

Bounded operator-facing log of monitoring events, newest first.
"""

from collections import deque
from typing import Deque, List, Optional

from gamewatch_agent.models.monitor import LogType, MonitorLog


class ActivityLog:
    """Keeps the most recent `maxlen` entries."""

    def __init__(self, maxlen: int = 50) -> None:
        self._entries: Deque[MonitorLog] = deque(maxlen=maxlen)

    def add(
        self,
        type: LogType,
        message: str,
        image_b64: Optional[str] = None,
    ) -> MonitorLog:
        entry = MonitorLog(type=type, message=message, image_b64=image_b64)
        self._entries.appendleft(entry)
        return entry

    def entries(self, limit: Optional[int] = None) -> List[MonitorLog]:
        items = list(self._entries)
        return items if limit is None else items[:limit]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
