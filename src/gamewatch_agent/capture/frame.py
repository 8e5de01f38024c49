"""
Frame Data Model
=================

Internal frame representation for the monitoring pipeline.

A Frame is one captured screenshot. It carries the base64 JPEG used as
the analyzer transport format and, when the raster is already in memory,
the decoded pixel buffer so stages do not decode twice.

Design Rules:
    - Immutable once captured
    - Owned by the stage processing it, never shared across stages
    - Pixels are a BGR uint8 array (H, W, 3) when present
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Captured frame.

    Attributes:
        frame_id: Monotonically increasing counter from the capture source
        timestamp: UNIX timestamp when the frame was captured
        image_b64: Base64-encoded JPEG frame data
        width: Raster width in pixels (0 if not yet known)
        height: Raster height in pixels (0 if not yet known)
        pixels: Decoded BGR raster, if available
    """

    frame_id: int
    timestamp: float
    image_b64: str
    width: int = 0
    height: int = 0
    pixels: Optional[np.ndarray] = field(default=None, compare=False)

    @property
    def has_pixels(self) -> bool:
        return self.pixels is not None

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        # Frames ride along inside pydantic models as opaque values.
        return core_schema.is_instance_schema(cls)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"size={self.width}x{self.height})"
        )
