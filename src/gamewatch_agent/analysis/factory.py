"""
Analyzer Factory
================

Selects the frame analyzer variant at configuration time.

Backends:
    ocr:    LocalOcrAnalyzer (preprocess + tesseract + keyword policy)
    remote: RemoteFrameAnalyzer (HTTP analysis endpoint)
    vision: VisionModelAnalyzer (direct vision model call)
    mock:   MockFrameAnalyzer (fixed verdict)
"""

import logging

from gamewatch_agent.analysis.engine import FrameAnalyzer, MockFrameAnalyzer
from gamewatch_agent.analysis.keywords import KeywordMatcher
from gamewatch_agent.analysis.ocr_engine import LocalOcrAnalyzer, TesseractRecognizer
from gamewatch_agent.analysis.remote_engine import RemoteFrameAnalyzer
from gamewatch_agent.analysis.vision_model import VisionModelAnalyzer, VisionModelClient
from gamewatch_agent.config import AnalysisConfig, VisionModelConfig
from gamewatch_agent.models.detection import DetectionResult


logger = logging.getLogger(__name__)


def create_vision_client(config: VisionModelConfig) -> VisionModelClient:
    """
    Build a vision model client.

    Raises:
        VisionModelError: If no API key is configured
    """
    return VisionModelClient(
        api_key=config.api_key or "",
        model=config.model,
        base_url=config.base_url,
        timeout_sec=config.timeout_sec,
        max_tokens=config.max_tokens,
    )


def create_frame_analyzer(config: AnalysisConfig) -> FrameAnalyzer:
    """
    Build the configured analyzer.

    Args:
        config: Analysis configuration section

    Returns:
        FrameAnalyzer implementation

    Raises:
        ValueError: If the backend name is unknown
        VisionModelError: If the vision backend has no API key
    """
    backend = config.backend.lower()
    logger.info(f"Creating frame analyzer: backend={backend}")

    if backend == "ocr":
        return LocalOcrAnalyzer(
            recognizer=TesseractRecognizer(
                languages=config.ocr.languages,
                tesseract_cmd=config.ocr.tesseract_cmd,
                page_segmentation_mode=config.ocr.page_segmentation_mode,
            ),
            matcher=KeywordMatcher(config.keywords),
            normal_preset=config.preprocess.normal,
            focus_preset=config.preprocess.focus,
        )

    if backend == "remote":
        return RemoteFrameAnalyzer(
            endpoint=config.remote.endpoint,
            timeout_sec=config.remote.timeout_sec,
        )

    if backend == "vision":
        return VisionModelAnalyzer(create_vision_client(config.vision))

    if backend == "mock":
        return MockFrameAnalyzer([
            DetectionResult(
                is_disconnected=config.mock.is_disconnected,
                confidence=config.mock.confidence,
                reason=config.mock.reason,
            )
        ])

    raise ValueError(
        f"Unknown analyzer backend: {config.backend!r} "
        f"(expected 'ocr', 'remote', 'vision' or 'mock')"
    )
