"""
Capture Module
==============

Frame model, image codec and capture sources.

    - Frame: Immutable captured screenshot (base64 JPEG + optional raster)
    - image_codec: The only place images are decoded/encoded
    - FileCaptureSource: Re-reads a screenshot file each tick
    - StreamCaptureSource: WebSocket feed, newest frame per tick
    - FrameBuffer: Drop-oldest buffer behind the stream source
"""

from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.capture.buffer import FrameBuffer
from gamewatch_agent.capture.image_codec import (
    decode_b64_bgr,
    decode_frame_bgr,
    encode_bgr,
    frame_from_array,
)
from gamewatch_agent.capture.source import CaptureSource, FileCaptureSource
from gamewatch_agent.capture.stream_source import StreamCaptureSource


__all__ = [
    "Frame",
    "FrameBuffer",
    "CaptureSource",
    "FileCaptureSource",
    "StreamCaptureSource",
    "decode_b64_bgr",
    "decode_frame_bgr",
    "encode_bgr",
    "frame_from_array",
]
