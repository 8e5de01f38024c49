"""
Frame Analyzer
==============

Analyzer abstraction for disconnect detection.

This module provides the FrameAnalyzer protocol and the
MockFrameAnalyzer implementation used by tests and dry runs.

Design Rules:
    - analyze() never raises; failures come back as a result with
      is_disconnected=False, confidence=0 and the cause in reason
    - The detector never learns which variant produced a verdict
"""

import logging
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.models.detection import DetectionResult


logger = logging.getLogger(__name__)


class AnalyzerStatus(str, Enum):
    """Backend readiness."""

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class FrameAnalyzer(Protocol):
    """
    Protocol for analyzer backends.

    Implemented by:
        - LocalOcrAnalyzer (preprocess + tesseract + keyword policy)
        - RemoteFrameAnalyzer (HTTP analysis endpoint)
        - VisionModelAnalyzer (direct vision model call)
        - MockFrameAnalyzer (scripted verdicts)
    """

    async def analyze(self, frame: Frame, focus_mode: bool = False) -> DetectionResult:
        """
        Analyze one frame.

        Args:
            frame: Captured frame
            focus_mode: Use the tight-crop preset (text-based analyzers)

        Returns:
            DetectionResult, never an exception
        """
        ...


class MockFrameAnalyzer:
    """
    Scripted analyzer.

    Returns the scripted results in order; once exhausted it keeps
    returning the last one (or a connected verdict for an empty script).

    Example:
        analyzer = MockFrameAnalyzer([
            DetectionResult(is_disconnected=True, confidence=0.9, reason="Detected"),
        ])
    """

    def __init__(self, script: Optional[Sequence[DetectionResult]] = None) -> None:
        self._script: List[DetectionResult] = list(script or [])
        self._calls: int = 0
        self.status = AnalyzerStatus.READY

        logger.info(f"MockFrameAnalyzer initialized with {len(self._script)} scripted results")

    @property
    def call_count(self) -> int:
        return self._calls

    async def analyze(self, frame: Frame, focus_mode: bool = False) -> DetectionResult:
        self._calls += 1

        if not self._script:
            return DetectionResult(
                is_disconnected=False,
                confidence=0.0,
                reason="Mock analyzer: no script",
            )

        index = min(self._calls - 1, len(self._script) - 1)
        return self._script[index]
