"""
Analysis Module
===============

Frame analyzers answering "is this a disconnect/error screen?".

Variants:
    - LocalOcrAnalyzer: preprocess + tesseract + keyword policy
    - RemoteFrameAnalyzer: HTTP analysis endpoint
    - VisionModelAnalyzer: direct vision model inference
    - MockFrameAnalyzer: scripted verdicts

The factory (analysis.factory) is not re-exported here because it
depends on the configuration module.
"""

from gamewatch_agent.analysis.engine import (
    AnalyzerStatus,
    FrameAnalyzer,
    MockFrameAnalyzer,
)
from gamewatch_agent.analysis.keywords import (
    DEFAULT_KEYWORD_SET,
    KeywordMatcher,
    KeywordPattern,
    KeywordSet,
    keyword_confidence,
    normalize_text,
)
from gamewatch_agent.analysis.ocr_engine import (
    LocalOcrAnalyzer,
    RecognizedText,
    TesseractRecognizer,
)
from gamewatch_agent.analysis.parsing import parse_detection_payload, strip_code_fences
from gamewatch_agent.analysis.remote_engine import RemoteFrameAnalyzer
from gamewatch_agent.analysis.vision_model import VisionModelAnalyzer, VisionModelClient


__all__ = [
    "AnalyzerStatus",
    "FrameAnalyzer",
    "MockFrameAnalyzer",
    "DEFAULT_KEYWORD_SET",
    "KeywordMatcher",
    "KeywordPattern",
    "KeywordSet",
    "keyword_confidence",
    "normalize_text",
    "LocalOcrAnalyzer",
    "RecognizedText",
    "TesseractRecognizer",
    "parse_detection_payload",
    "strip_code_fences",
    "RemoteFrameAnalyzer",
    "VisionModelAnalyzer",
    "VisionModelClient",
]
