"""
Frame Buffer
=============

Bounded hand-off between a streaming capture source and the poll loop.

The poll loop samples at most one frame per tick and only cares about
the newest one, so the buffer is a short ring: pushes never block and
overflow evicts the oldest frame.

Design Rules:
    - Fixed capacity, oldest frame evicted on overflow
    - latest() empties the ring; a frame is served at most once
    - Frames are stored as received, never modified
"""

import logging
from collections import deque
from typing import Deque, Optional

from gamewatch_agent.capture.frame import Frame


logger = logging.getLogger(__name__)


class FrameBuffer:
    """
    Ring of the most recent frames.

    Example:
        buffer = FrameBuffer(maxsize=5)
        buffer.push(frame)          # feed consumer
        frame = buffer.latest()     # poll loop, once per tick
    """

    def __init__(self, maxsize: int = 5) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._ring: Deque[Frame] = deque(maxlen=maxsize)
        self._evicted: int = 0
        self._pushed: int = 0
        self._served: int = 0

    @property
    def maxsize(self) -> int:
        return self._ring.maxlen

    @property
    def size(self) -> int:
        return len(self._ring)

    @property
    def dropped_count(self) -> int:
        """Frames evicted before anyone asked for them."""
        return self._evicted

    def push(self, frame: Frame) -> bool:
        """
        Store a frame.

        Returns:
            False if the oldest frame had to be evicted to make room
        """
        self._pushed += 1
        evicting = len(self._ring) == self._ring.maxlen
        if evicting:
            self._evicted += 1
            logger.debug(
                f"Frame {self._ring[0].frame_id} evicted unserved "
                f"({self._evicted} so far)"
            )
        self._ring.append(frame)
        return not evicting

    def latest(self) -> Optional[Frame]:
        """Newest frame, or None if nothing arrived since the last call."""
        if not self._ring:
            return None
        newest = self._ring[-1]
        self._evicted += len(self._ring) - 1
        self._ring.clear()
        self._served += 1
        return newest

    def clear(self) -> int:
        """Drop every stored frame; returns how many were dropped."""
        dropped = len(self._ring)
        self._ring.clear()
        return dropped

    def metrics(self) -> dict:
        return {
            "size": self.size,
            "maxsize": self.maxsize,
            "pushed": self._pushed,
            "served": self._served,
            "dropped_count": self._evicted,
        }
