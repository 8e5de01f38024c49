"""
Keyword Matching
================

Text policy shared by every text-based analyzer.

Normalization:
    Recognized text is stripped of everything except CJK ideographs and
    ASCII letters/digits. Recognition engines scatter spaces and
    punctuation through dialog text ("网 络 错 误", "Network  Error."),
    so matching runs on the dense form.

Matching:
    First match wins over an ordered, versioned pattern list. Earlier
    patterns are the stronger disconnect indicators.

Confidence:
    A keyword hit is reported at max(0.85, recognizer_confidence / 100).
    A lexical match is a stronger signal than the recognizer's own score.
"""

import logging
import re
from typing import List, Optional, Pattern, Tuple

from pydantic import BaseModel, Field

from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.models.detection import DetectionResult


logger = logging.getLogger(__name__)


KEYWORD_CONFIDENCE_FLOOR = 0.85

_NON_KEYWORD_CHARS = re.compile(r"[^\u4e00-\u9fffA-Za-z0-9]+")


class KeywordPattern(BaseModel):
    """One disconnect indicator."""

    pattern: str = Field(..., description="Regular expression")
    ignore_case: bool = Field(default=False, description="Case-insensitive match")


class KeywordSet(BaseModel):
    """Ordered, versioned list of disconnect indicators."""

    version: str = Field(..., description="Keyword list version")
    patterns: List[KeywordPattern] = Field(default_factory=list)


DEFAULT_KEYWORD_SET = KeywordSet(
    version="v3",
    patterns=[
        # Core disconnect indicators
        KeywordPattern(pattern="网络错误"),
        KeywordPattern(pattern="请重新登录"),
        KeywordPattern(pattern="请重新连接"),
        # English
        KeywordPattern(pattern=r"network\s?error", ignore_case=True),
        KeywordPattern(pattern=r"connection\s?lost", ignore_case=True),
        KeywordPattern(pattern=r"disconnected", ignore_case=True),
        KeywordPattern(pattern=r"please\s?relogin", ignore_case=True),
        KeywordPattern(pattern=r"please\s?reconnect", ignore_case=True),
        KeywordPattern(pattern=r"server\s?error", ignore_case=True),
        KeywordPattern(pattern=r"timed\s?out", ignore_case=True),
        # Other Chinese dialogs
        KeywordPattern(pattern="断开连接"),
        KeywordPattern(pattern="连接超时"),
        KeywordPattern(pattern="网络异常"),
        KeywordPattern(pattern="与服务器断开"),
        KeywordPattern(pattern="点击重试"),
        KeywordPattern(pattern="确定"),
    ],
)


def normalize_text(raw: str) -> str:
    """Keep only CJK ideographs and ASCII alphanumerics."""
    return _NON_KEYWORD_CHARS.sub("", raw or "")


def keyword_confidence(recognizer_confidence: float) -> float:
    """
    Confidence reported for a keyword hit.

    Args:
        recognizer_confidence: Recognizer score on a 0-100 scale
    """
    return min(1.0, max(KEYWORD_CONFIDENCE_FLOOR, recognizer_confidence / 100.0))


class KeywordMatcher:
    """
    First-match-wins scanner over a KeywordSet.

    Example:
        matcher = KeywordMatcher()
        result = matcher.evaluate("网 络 错 误 ，请重试", recognizer_confidence=42.0)
        assert result.is_disconnected
    """

    def __init__(self, keyword_set: Optional[KeywordSet] = None) -> None:
        self.keyword_set = keyword_set or DEFAULT_KEYWORD_SET
        self._compiled: List[Tuple[Pattern[str], KeywordPattern]] = [
            (re.compile(p.pattern, re.IGNORECASE if p.ignore_case else 0), p)
            for p in self.keyword_set.patterns
        ]
        logger.info(
            f"KeywordMatcher initialized: version={self.keyword_set.version}, "
            f"patterns={len(self._compiled)}"
        )

    @property
    def version(self) -> str:
        return self.keyword_set.version

    def match(self, normalized_text: str) -> Optional[str]:
        """
        Scan normalized text.

        Returns:
            The matched substring of the first matching pattern, or None
        """
        for regex, _ in self._compiled:
            found = regex.search(normalized_text)
            if found:
                return found.group(0)
        return None

    def evaluate(
        self,
        raw_text: str,
        recognizer_confidence: float,
        processed_image: Optional[Frame] = None,
    ) -> DetectionResult:
        """
        Turn recognized text into a verdict.

        Args:
            raw_text: Text as returned by the recognizer
            recognizer_confidence: Recognizer confidence, 0-100
            processed_image: Frame the text was recognized from

        Returns:
            DetectionResult for the frame
        """
        dense = normalize_text(raw_text)
        matched = self.match(dense)

        if matched is not None:
            return DetectionResult(
                is_disconnected=True,
                confidence=keyword_confidence(recognizer_confidence),
                reason=f'Detected: "{matched}"',
                debug_text=f'[Match Found]\nProcessed: "{dense}"',
                processed_image=processed_image,
            )

        return DetectionResult(
            is_disconnected=False,
            confidence=0.0,
            reason="No error text detected",
            debug_text=f'[No Match]\nProcessed: "{dense}"',
            processed_image=processed_image,
        )
