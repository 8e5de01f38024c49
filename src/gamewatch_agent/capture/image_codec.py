"""
Image Codec
===========

Dedicated module for moving frames between base64 JPEG and OpenCV
matrices.

Design Rules:
    - This is the ONLY place in the codebase that decodes or encodes images
    - Validates shape and dtype
    - Fails fast on corrupt frames (callers decide the fallback)
    - Accepts data-URL prefixed base64 ("data:image/jpeg;base64,...")
"""

import base64
import binascii
import logging
import time
from typing import Optional

import cv2
import numpy as np

from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.errors import ImageDecodeError, ImageEncodeError


logger = logging.getLogger(__name__)


DEFAULT_JPEG_QUALITY = 90


def strip_data_url(image_b64: str) -> str:
    """Remove a data-URL header if present."""
    if image_b64.startswith("data:") and "," in image_b64:
        return image_b64.split(",", 1)[1]
    return image_b64


def decode_b64_bgr(image_b64: str) -> np.ndarray:
    """
    Decode base64 image data to a BGR numpy array.

    Args:
        image_b64: Base64-encoded JPEG/PNG data, optionally data-URL prefixed

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    try:
        image_bytes = base64.b64decode(strip_data_url(image_b64), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Base64 decode failed: {e}")

    nparr = np.frombuffer(image_bytes, np.uint8)
    if nparr.size == 0:
        raise ImageDecodeError("Empty image payload")

    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ImageDecodeError("cv2.imdecode returned None")

    if len(bgr.shape) != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape: {bgr.shape}")

    if bgr.dtype != np.uint8:
        raise ImageDecodeError(f"Invalid dtype: {bgr.dtype}")

    return bgr


def decode_frame_bgr(frame: Frame) -> np.ndarray:
    """
    Get the BGR raster of a frame.

    Uses the in-memory pixel buffer when the frame carries one,
    otherwise decodes the base64 payload.

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    if frame.pixels is not None:
        pixels = frame.pixels
        if pixels.ndim == 2:
            return cv2.cvtColor(pixels, cv2.COLOR_GRAY2BGR)
        if pixels.ndim == 3 and pixels.shape[2] == 3:
            return pixels
        raise ImageDecodeError(
            f"Invalid pixel buffer for frame {frame.frame_id}: {pixels.shape}"
        )

    try:
        return decode_b64_bgr(frame.image_b64)
    except ImageDecodeError as e:
        raise ImageDecodeError(f"Failed to decode frame {frame.frame_id}: {e}")


def encode_bgr(bgr: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> str:
    """
    Encode a BGR (or grayscale) raster as base64 JPEG.

    Raises:
        ImageEncodeError: If OpenCV refuses the raster
    """
    if bgr.size == 0:
        raise ImageEncodeError("Cannot encode an empty raster")

    ok, buffer = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ImageEncodeError("cv2.imencode failed")
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def frame_from_array(
    bgr: np.ndarray,
    frame_id: int = 0,
    timestamp: Optional[float] = None,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> Frame:
    """
    Build a Frame from an in-memory raster.

    The raster is kept as the frame's pixel buffer and also encoded
    to base64 JPEG for analyzers that need the transport format.
    """
    if timestamp is None:
        timestamp = time.time()

    height, width = bgr.shape[:2]
    return Frame(
        frame_id=frame_id,
        timestamp=timestamp,
        image_b64=encode_bgr(bgr, quality),
        width=width,
        height=height,
        pixels=bgr,
    )
