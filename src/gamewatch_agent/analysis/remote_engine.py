"""
Remote Frame Analyzer
=====================

Analyzer that delegates to a remote analysis endpoint.

HTTP contract:
    POST <endpoint>
        {"base64Image": "<raw frame, base64 JPEG>"}
    200 application/json
        {"isDisconnected": bool, "confidence": float, "reason": str}

Design Rules:
    - Sends the raw frame; no local preprocessing
    - Non-2xx status or non-JSON content type is a failure for that tick
    - Reply body may be wrapped in a markdown fence
    - Never raises; failures come back as "Remote Analysis Failed: <cause>"
"""

import asyncio
import logging
from typing import Optional

import requests

from gamewatch_agent.analysis.parsing import parse_detection_payload
from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.errors import RemoteAnalysisError
from gamewatch_agent.models.detection import DetectionResult


logger = logging.getLogger(__name__)


class RemoteFrameAnalyzer:
    """
    HTTP client for the remote analysis endpoint.

    Attributes:
        endpoint: Full URL of the analysis endpoint
        timeout_sec: Request timeout
    """

    def __init__(
        self,
        endpoint: str,
        timeout_sec: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout_sec = timeout_sec
        self._session = session or requests.Session()

        self._call_count: int = 0
        self._error_count: int = 0

        logger.info(f"RemoteFrameAnalyzer initialized: endpoint={endpoint}")

    async def analyze(self, frame: Frame, focus_mode: bool = False) -> DetectionResult:
        self._call_count += 1
        try:
            return await asyncio.to_thread(self._post, frame)
        except Exception as e:
            self._error_count += 1
            logger.error(
                f"Remote analysis error (frame={frame.frame_id}): {e}. "
                f"Total errors: {self._error_count}"
            )
            return DetectionResult.failure(f"Remote Analysis Failed: {e}")

    def _post(self, frame: Frame) -> DetectionResult:
        response = self._session.post(
            self.endpoint,
            json={"base64Image": frame.image_b64},
            timeout=self.timeout_sec,
        )

        if not 200 <= response.status_code < 300:
            raise RemoteAnalysisError(
                f"HTTP {response.status_code} from {self.endpoint}"
            )

        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type.lower():
            raise RemoteAnalysisError(f"unexpected content type {content_type!r}")

        result = parse_detection_payload(response.text)
        logger.debug(
            f"Remote analysis frame={frame.frame_id}: "
            f"disconnected={result.is_disconnected}, conf={result.confidence:.2f}"
        )
        return result

    def get_metrics(self) -> dict:
        return {
            "call_count": self._call_count,
            "error_count": self._error_count,
        }
