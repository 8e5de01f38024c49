"""
Capture Sources
===============

The poll loop asks a capture source for one frame per tick.

Capture acquisition itself (screen sharing, window grabbing) lives
outside this package; a source only has to honour the grab() contract:
return a Frame, or raise CaptureError so the tick is skipped without
touching detector state.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import cv2

from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.capture.image_codec import frame_from_array
from gamewatch_agent.errors import CaptureError, ImageEncodeError


logger = logging.getLogger(__name__)


class CaptureSource(Protocol):
    """Protocol for frame providers."""

    async def grab(self) -> Frame:
        """
        Capture one frame.

        Raises:
            CaptureError: If no frame can be supplied right now
        """
        ...


class FileCaptureSource:
    """
    Capture source that re-reads a screenshot file on every grab.

    Useful when an external tool keeps overwriting a screenshot on disk
    (OBS "save screenshot", adb screencap, a cron job).

    Attributes:
        path: Screenshot path
        jpeg_quality: Quality used for the transport encoding
    """

    def __init__(self, path: str, jpeg_quality: int = 80) -> None:
        self.path = Path(path)
        self.jpeg_quality = jpeg_quality
        self._frame_counter: int = 0

    async def grab(self) -> Frame:
        return await asyncio.to_thread(self._read)

    def _read(self) -> Frame:
        if not self.path.exists():
            raise CaptureError(f"Screenshot not found: {self.path}")

        bgr = cv2.imread(str(self.path), cv2.IMREAD_COLOR)
        if bgr is None:
            raise CaptureError(f"Unreadable screenshot: {self.path}")

        try:
            frame = frame_from_array(
                bgr,
                frame_id=self._frame_counter,
                quality=self.jpeg_quality,
            )
        except ImageEncodeError as e:
            raise CaptureError(f"Failed to encode screenshot {self.path}: {e}")

        self._frame_counter += 1
        return frame

    def get_metrics(self) -> dict:
        return {
            "source": "file",
            "path": str(self.path),
            "frames_captured": self._frame_counter,
        }

    def __repr__(self) -> str:
        return f"FileCaptureSource(path={str(self.path)!r})"
