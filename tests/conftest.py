"""
Test Configuration
==================

Pytest fixtures and shared fakes for GameWatch Agent.
"""

from typing import List, Optional

import numpy as np
import pytest

from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.capture.image_codec import frame_from_array
from gamewatch_agent.errors import CaptureError, DeliveryError
from gamewatch_agent.models.alert import DeliveryRequest
from gamewatch_agent.models.detection import DetectionResult


@pytest.fixture
def sample_bgr():
    """A 200x120 BGR image with a white box on a dark background."""
    image = np.full((120, 200, 3), 30, dtype=np.uint8)
    image[40:80, 60:140] = 255
    return image


@pytest.fixture
def sample_frame(sample_bgr):
    """Frame built from sample_bgr."""
    return frame_from_array(sample_bgr, frame_id=7, timestamp=1707321234.5)


@pytest.fixture
def disconnected_result():
    """Accepted disconnect verdict at default sensitivity."""
    return DetectionResult(
        is_disconnected=True,
        confidence=0.9,
        reason='Detected: "网络错误"',
    )


@pytest.fixture
def weak_disconnected_result():
    """Disconnect verdict below default sensitivity."""
    return DetectionResult(
        is_disconnected=True,
        confidence=0.5,
        reason="Possible error dialog",
    )


@pytest.fixture
def connected_result():
    """Normal gameplay verdict."""
    return DetectionResult(
        is_disconnected=False,
        confidence=0.95,
        reason="No error text detected",
    )


class FakeCapture:
    """Capture source returning the same frame, or failing on demand."""

    def __init__(self, frame: Optional[Frame] = None, fail: bool = False) -> None:
        self.frame = frame or Frame(frame_id=1, timestamp=0.0, image_b64="")
        self.fail = fail
        self.grabs = 0

    async def grab(self) -> Frame:
        self.grabs += 1
        if self.fail:
            raise CaptureError("no frame")
        return self.frame


class FakeTransport:
    """Notification transport recording sent requests."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[DeliveryRequest] = []

    async def deliver(self, request: DeliveryRequest) -> int:
        if self.fail:
            raise DeliveryError(f"{request.url} unreachable")
        self.sent.append(request)
        return 200

    def close(self) -> None:
        pass


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_clock():
    return FakeClock()
