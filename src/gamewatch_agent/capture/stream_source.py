"""
Stream Capture Source
=====================

Capture source fed by a live screen feed over WebSocket.

A screen-sharing helper (browser extension, OBS script, adb relay)
pushes one JSON message per captured screenshot:

    {
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "image": "<base64 JPEG>"
    }

The source keeps the feed connected in a background task and parks
incoming frames in a FrameBuffer. Each poll tick takes the newest one.

Design Rules:
    - A malformed message is counted and skipped, never fatal
    - The feed is reconnected after a fixed backoff; the attempt counter
      resets once a connection delivers a frame
    - Image data is not decoded here
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Optional, Union
from urllib.parse import urlparse

import websockets
from pydantic import BaseModel, Field, ValidationError
from websockets.exceptions import ConnectionClosed

from gamewatch_agent.capture.buffer import FrameBuffer
from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.errors import CaptureError


logger = logging.getLogger(__name__)


class FeedMessage(BaseModel):
    """One screenshot message on the feed."""

    frame_id: int = Field(..., ge=0)
    timestamp: float
    image: str = Field(..., min_length=1)


@dataclass
class FeedStats:
    """Feed counters reported under "capture" by /status."""

    frames_received: int = 0
    parse_errors: int = 0
    connections: int = 0
    reconnect_count: int = 0
    last_frame_id: int = -1

    def to_dict(self) -> dict:
        return asdict(self)


class StreamCaptureSource:
    """
    Screen feed consumer.

    Example:
        source = StreamCaptureSource("ws://localhost:8000/ws/stream")
        await source.start()
        frame = await source.grab()
        await source.stop()
    """

    def __init__(
        self,
        url: str,
        buffer: Optional[FrameBuffer] = None,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        """
        Args:
            url: Feed URL
            buffer: Frame ring shared with grab()
            reconnect_backoff_ms: Pause before each reconnect
            max_reconnect_attempts: Consecutive failed attempts before
                giving up (0 = never give up)

        Raises:
            ValueError: If url is not a ws:// or wss:// URL
        """
        if urlparse(url).scheme not in ("ws", "wss"):
            raise ValueError(f"Screen feed URL must be ws:// or wss://, got {url!r}")

        self.url = url
        self.buffer = buffer or FrameBuffer()
        self.backoff_sec = reconnect_backoff_ms / 1000.0
        self.max_reconnect_attempts = max_reconnect_attempts

        self.metrics = FeedStats()

        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._ws = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def start(self) -> None:
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._feed_loop(), name="screen_feed")

    async def stop(self) -> None:
        self._stopping.set()

        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        dropped = self.buffer.clear()
        logger.info(f"Screen feed stopped ({dropped} buffered frame(s) dropped)")

    def get_metrics(self) -> dict:
        return {
            "source": "stream",
            "url": self.url,
            "connected": self.connected,
            **self.metrics.to_dict(),
            "buffer": self.buffer.metrics(),
        }

    async def grab(self) -> Frame:
        frame = self.buffer.latest()
        if frame is None:
            raise CaptureError(f"No new frame from {self.url} since the last tick")
        return frame

    async def _feed_loop(self) -> None:
        failed_attempts = 0

        while not self._stopping.is_set():
            delivered = 0
            try:
                delivered = await self._consume_once()
            except (OSError, ConnectionClosed, websockets.InvalidHandshake) as e:
                logger.warning(f"Screen feed {self.url} dropped: {e}")
            except Exception as e:
                logger.error(f"Screen feed {self.url} failed: {type(e).__name__}: {e}")

            if self._stopping.is_set():
                break

            failed_attempts = 0 if delivered else failed_attempts + 1
            if self.max_reconnect_attempts and failed_attempts >= self.max_reconnect_attempts:
                logger.error(
                    f"Giving up on {self.url} after {failed_attempts} failed attempt(s)"
                )
                break

            self.metrics.reconnect_count += 1
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.backoff_sec)
            except asyncio.TimeoutError:
                continue

    async def _consume_once(self) -> int:
        """Hold one connection open; returns how many frames it delivered."""
        delivered = 0
        async with websockets.connect(self.url, max_size=None, ping_interval=20) as ws:
            self._ws = ws
            self.metrics.connections += 1
            logger.info(f"Screen feed connected: {self.url}")
            try:
                async for raw in ws:
                    frame = self.parse_message(raw)
                    if frame is None:
                        continue
                    self.buffer.push(frame)
                    delivered += 1
                    self.metrics.frames_received += 1
                    self.metrics.last_frame_id = frame.frame_id
            finally:
                self._ws = None
        return delivered

    def parse_message(self, raw: Union[str, bytes]) -> Optional[Frame]:
        """Validate one feed message; None if it is malformed."""
        try:
            message = FeedMessage.model_validate_json(raw)
        except (ValidationError, ValueError, TypeError) as e:
            self.metrics.parse_errors += 1
            logger.warning(f"Skipping malformed feed message: {e}")
            return None

        if message.frame_id <= self.metrics.last_frame_id:
            logger.debug(
                f"Out-of-order frame {message.frame_id} "
                f"(last was {self.metrics.last_frame_id})"
            )

        return Frame(
            frame_id=message.frame_id,
            timestamp=message.timestamp,
            image_b64=message.image,
        )
