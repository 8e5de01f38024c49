"""
Local OCR Analyzer
==================

Local frame analyzer: preprocess, recognize text with Tesseract, then
apply the shared keyword policy.

Readiness:
    Loading the recognition backend takes time. Until it is ready,
    analyze() returns a connected placeholder ("OCR Model Loading...")
    so start-up latency can never feed an alert. If loading fails the
    analyzer stays FAILED and every call returns the same Init-Error
    result.

Design Rules:
    - Recognition runs in a worker thread (tesseract is CPU-bound)
    - Languages default to English + Simplified Chinese
    - Never raises out of analyze()
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

import numpy as np
import pytesseract

from gamewatch_agent.analysis.engine import AnalyzerStatus
from gamewatch_agent.analysis.keywords import KeywordMatcher
from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.capture.image_codec import decode_frame_bgr
from gamewatch_agent.errors import AnalyzerInitError
from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.preprocessing.preprocessor import (
    FOCUS_PRESET,
    NORMAL_PRESET,
    PreprocessConfig,
    preprocess,
)


logger = logging.getLogger(__name__)


LOADING_REASON = "OCR Model Loading..."


@dataclass(frozen=True, slots=True)
class RecognizedText:
    """
    Recognizer output.

    Attributes:
        text: Recognized text, words separated by spaces
        confidence: Mean word confidence on a 0-100 scale
    """

    text: str
    confidence: float


class TextRecognizer(Protocol):
    """Protocol for text recognition backends."""

    def load(self) -> None:
        """
        Prepare the backend. Blocking.

        Raises:
            AnalyzerInitError: If the backend is unusable
        """
        ...

    def recognize(self, image: np.ndarray) -> RecognizedText:
        """Recognize text in a BGR or grayscale image. Blocking."""
        ...


class TesseractRecognizer:
    """
    Tesseract backend via pytesseract.

    Attributes:
        languages: Tesseract language codes, e.g. "eng+chi_sim"
        tesseract_cmd: Explicit tesseract binary path (optional)
        page_segmentation_mode: Tesseract --psm value
    """

    def __init__(
        self,
        languages: str = "eng+chi_sim",
        tesseract_cmd: Optional[str] = None,
        page_segmentation_mode: int = 6,
    ) -> None:
        self.languages = languages
        self.tesseract_cmd = tesseract_cmd
        self.page_segmentation_mode = page_segmentation_mode

    def load(self) -> None:
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        try:
            version = pytesseract.get_tesseract_version()
            available = set(pytesseract.get_languages(config=""))
        except pytesseract.TesseractNotFoundError as e:
            raise AnalyzerInitError(f"tesseract binary not found: {e}")
        except Exception as e:
            raise AnalyzerInitError(f"tesseract unavailable: {e}")

        missing = [lang for lang in self.languages.split("+") if lang not in available]
        if missing:
            raise AnalyzerInitError(
                f"missing tesseract language data: {', '.join(missing)}"
            )

        logger.info(f"Tesseract {version} ready, languages={self.languages}")

    def recognize(self, image: np.ndarray) -> RecognizedText:
        data = pytesseract.image_to_data(
            image,
            lang=self.languages,
            config=f"--psm {self.page_segmentation_mode}",
            output_type=pytesseract.Output.DICT,
        )

        words: List[str] = []
        confidences: List[float] = []
        for word, conf in zip(data.get("text", []), data.get("conf", [])):
            if not str(word).strip():
                continue
            words.append(str(word).strip())
            score = float(conf)
            if score >= 0:
                confidences.append(score)

        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return RecognizedText(text=" ".join(words), confidence=confidence)


class LocalOcrAnalyzer:
    """
    Text-recognition analyzer.

    Example:
        analyzer = LocalOcrAnalyzer()
        await analyzer.start()
        result = await analyzer.analyze(frame)
    """

    def __init__(
        self,
        recognizer: Optional[TextRecognizer] = None,
        matcher: Optional[KeywordMatcher] = None,
        normal_preset: PreprocessConfig = NORMAL_PRESET,
        focus_preset: PreprocessConfig = FOCUS_PRESET,
    ) -> None:
        self._recognizer = recognizer or TesseractRecognizer()
        self._matcher = matcher or KeywordMatcher()
        self.normal_preset = normal_preset
        self.focus_preset = focus_preset

        self._status = AnalyzerStatus.LOADING
        self._init_error: Optional[str] = None
        self._init_task: Optional[asyncio.Task] = None

        self._analysis_count: int = 0
        self._error_count: int = 0

    @property
    def status(self) -> AnalyzerStatus:
        return self._status

    @property
    def init_error(self) -> Optional[str]:
        return self._init_error

    async def start(self) -> None:
        """Begin backend initialization in the background."""
        if self._init_task is None and self._status is AnalyzerStatus.LOADING:
            self._init_task = asyncio.create_task(self._initialize(), name="ocr_init")

    async def wait_ready(self, timeout: Optional[float] = None) -> AnalyzerStatus:
        """Start initialization if needed and wait for it to finish."""
        await self.start()
        if self._init_task is not None:
            await asyncio.wait_for(asyncio.shield(self._init_task), timeout=timeout)
        return self._status

    async def _initialize(self) -> None:
        logger.info("Initializing OCR backend...")
        try:
            await asyncio.to_thread(self._recognizer.load)
        except Exception as e:
            self._init_error = str(e)
            self._status = AnalyzerStatus.FAILED
            logger.error(f"OCR init failed: {e}")
            return

        self._status = AnalyzerStatus.READY
        logger.info("OCR backend ready")

    async def analyze(self, frame: Frame, focus_mode: bool = False) -> DetectionResult:
        if self._status is AnalyzerStatus.FAILED:
            return DetectionResult.failure(f"OCR Init Error: {self._init_error}")

        if self._status is AnalyzerStatus.LOADING:
            await self.start()
            return DetectionResult(
                is_disconnected=False,
                confidence=0.0,
                reason=LOADING_REASON,
            )

        self._analysis_count += 1
        try:
            preset = self.focus_preset if focus_mode else self.normal_preset
            processed = preprocess(frame, preset)
            image = decode_frame_bgr(processed)

            recognized = await asyncio.to_thread(self._recognizer.recognize, image)

            result = self._matcher.evaluate(
                recognized.text,
                recognized.confidence,
                processed_image=processed,
            )
            logger.debug(
                f"OCR frame={frame.frame_id}: disconnected={result.is_disconnected}, "
                f"conf={result.confidence:.2f}, {result.debug_text!r}"
            )
            return result

        except Exception as e:
            self._error_count += 1
            logger.error(f"OCR analysis error (frame={frame.frame_id}): {e}")
            return DetectionResult.failure(f"OCR Failed: {e}")

    def get_metrics(self) -> dict:
        return {
            "status": self._status.value,
            "analysis_count": self._analysis_count,
            "error_count": self._error_count,
            "keyword_set": self._matcher.version,
        }
