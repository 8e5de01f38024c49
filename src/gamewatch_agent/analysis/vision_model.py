"""
Vision Model Analyzer
=====================

Direct vision-model inference over an OpenAI-compatible
chat-completions API (OpenRouter by default).

The model gets the raw screenshot plus a structured prompt and must
answer with JSON {isDisconnected, confidence, reason}. The same client
backs the server side of the remote analysis endpoint.
"""

import asyncio
import logging
from typing import Optional

import requests

from gamewatch_agent.analysis.parsing import parse_detection_payload
from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.capture.image_codec import strip_data_url
from gamewatch_agent.errors import VisionModelError
from gamewatch_agent.models.detection import DetectionResult


logger = logging.getLogger(__name__)


DEFAULT_VISION_BASE_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_VISION_MODEL = "google/gemini-2.0-flash-001"

DETECTION_PROMPT = """
Act as a game stability monitor. Analyze this screenshot to detect if the user has been disconnected or if the game is in an error state.

Look for these indicators (High Priority):
1. Explicit keywords: "Network Error", "Connection Lost", "Disconnected", "Reconnecting", "Server Error", "Timed Out", "Login Failed", "Unexpected error", "Finish what you were doing".
2. Chinese keywords: "网络错误", "请重新登录", "断开连接", "连接超时", "网络异常", "服务器断开", "系统提示", "重试".
3. Buttons: a dialog box with a single or dual button layout containing text like "Confirm", "Retry", "Ok", "Reconnect", "Login", "确定", "重试", "重新连接".

Look for these indicators (Implicit/Visual):
4. Modal overlay: a centered alert box that darkens the background and clearly interrupts gameplay.
5. Empty state: a black screen with a spinning loader that has persisted.

Decision logic:
- "Network Error", "Unexpected error" or "Disconnected" text -> isDisconnected: true (high confidence).
- A generic centered popup with "Retry" or "Confirm" that looks like an error -> isDisconnected: true (medium confidence).
- Normal game view (HUD visible, character visible, no obstructing popups) -> isDisconnected: false.

Return only a JSON object with:
- isDisconnected: boolean
- confidence: number (0.0 to 1.0)
- reason: string (short explanation, e.g. "Found dialog box with text 'Connection Lost'")
""".strip()


class VisionModelClient:
    """
    Blocking vision-model client.

    Attributes:
        model: Model identifier understood by the endpoint
        base_url: Chat-completions URL
        timeout_sec: Request timeout
        max_tokens: Completion token budget
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_VISION_MODEL,
        base_url: str = DEFAULT_VISION_BASE_URL,
        timeout_sec: float = 60.0,
        max_tokens: int = 300,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise VisionModelError("Vision model API key is not configured")

        self._api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout_sec = timeout_sec
        self.max_tokens = max_tokens
        self._session = session or requests.Session()

    def detect(self, image_b64: str) -> DetectionResult:
        """
        Ask the model whether the screenshot shows a disconnect.

        Raises:
            VisionModelError: On transport errors or an unusable reply
        """
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": DETECTION_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:image/jpeg;base64,{strip_data_url(image_b64)}"
                            },
                        },
                    ],
                }
            ],
            "max_tokens": self.max_tokens,
            "temperature": 0.0,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._session.post(
                self.base_url,
                headers=headers,
                json=payload,
                timeout=self.timeout_sec,
            )
        except requests.RequestException as e:
            raise VisionModelError(f"request failed: {e}")

        if response.status_code != 200:
            raise VisionModelError(
                f"HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise VisionModelError(f"malformed completion: {e}")

        if not content:
            raise VisionModelError("No response text from vision model")

        try:
            return parse_detection_payload(content)
        except ValueError as e:
            raise VisionModelError(str(e))


class VisionModelAnalyzer:
    """Frame analyzer backed by a VisionModelClient."""

    def __init__(self, client: VisionModelClient) -> None:
        self._client = client
        self._call_count: int = 0
        self._error_count: int = 0

        logger.info(f"VisionModelAnalyzer initialized: model={client.model}")

    async def analyze(self, frame: Frame, focus_mode: bool = False) -> DetectionResult:
        self._call_count += 1
        try:
            return await asyncio.to_thread(self._client.detect, frame.image_b64)
        except Exception as e:
            self._error_count += 1
            logger.error(f"Vision model error (frame={frame.frame_id}): {e}")
            return DetectionResult.failure(f"Analysis Failed: {e}")

    def get_metrics(self) -> dict:
        return {
            "call_count": self._call_count,
            "error_count": self._error_count,
            "model": self._client.model,
        }
