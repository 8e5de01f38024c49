"""
Reply Parsing
=============

Parse DetectionResult JSON coming back from remote services.

Vision models sometimes wrap JSON in a markdown fence even when JSON
output was requested:

    ```json
    {"isDisconnected": true, "confidence": 0.9, "reason": "..."}
    ```

The parser tries the raw text first and falls back to the text with
fence delimiters stripped.
"""

import json
import re
from typing import Any

from pydantic import ValidationError

from gamewatch_agent.models.detection import DetectionResult


_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence delimiters."""
    return _FENCE.sub("", text).strip()


def parse_detection_payload(text: str) -> DetectionResult:
    """
    Parse a DetectionResult from reply text.

    Raises:
        ValueError: If the text is not a JSON object with the expected fields
    """
    if not text or not text.strip():
        raise ValueError("Empty reply")

    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = json.loads(strip_code_fences(text))
        except json.JSONDecodeError as e:
            raise ValueError(f"Reply is not JSON: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return DetectionResult.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid detection payload: {e.errors()[0].get('msg', e)}")
