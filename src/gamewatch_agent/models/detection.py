"""
Detection Result
================

Per-frame verdict produced by every frame analyzer.

Wire Contract (remote analysis endpoint, vision model output):
    {
        "isDisconnected": true,
        "confidence": 0.92,
        "reason": "Found dialog box with text 'Connection Lost'",
        "debugText": "..."          (optional)
    }

The processed image never goes on the wire; it is attached locally by
text-based analyzers for debugging.

Example:
    from gamewatch_agent.models.detection import DetectionResult

    result = DetectionResult.model_validate_json(raw)
    if result.is_disconnected and result.confidence >= 0.7:
        ...
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gamewatch_agent.capture.frame import Frame


PERCENT_CUTOFF = 1.5


class DetectionResult(BaseModel):
    """
    Verdict for a single analyzed frame.

    Produced fresh per analysis call and never mutated.

    Attributes:
        is_disconnected: Analyzer believes the frame shows a disconnect/error screen
        confidence: Confidence in the verdict, in [0, 1]
        reason: Human-readable explanation (also carries failure causes)
        debug_text: Raw/normalized recognized text, for diagnostics
        processed_image: Preprocessed frame the verdict was based on
        analysis_failed: Set on failure results; never sent on the wire
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_disconnected: bool = Field(
        ...,
        alias="isDisconnected",
        description="True if a disconnection or error dialog is detected",
    )

    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Confidence score from 0.0 to 1.0",
    )

    reason: str = Field(
        default="",
        description="Short explanation of the verdict",
    )

    debug_text: Optional[str] = Field(
        default=None,
        alias="debugText",
        description="Recognized text for debugging",
    )

    processed_image: Optional[Frame] = Field(
        default=None,
        alias="processedImage",
        exclude=True,
        description="Preprocessed frame (local analyzers only)",
    )

    analysis_failed: bool = Field(
        default=False,
        exclude=True,
        description="Verdict stands in for a failed analysis (local only)",
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Any:
        # Vision models occasionally answer 0-100 or slightly outside [0, 1].
        # Values up to PERCENT_CUTOFF are overshoots, not percentages.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if PERCENT_CUTOFF < value <= 100.0:
                value = value / 100.0
            return min(1.0, max(0.0, float(value)))
        return value

    @classmethod
    def failure(cls, reason: str) -> "DetectionResult":
        """Non-disconnected, zero-confidence result carrying a failure reason."""
        return cls(
            is_disconnected=False,
            confidence=0.0,
            reason=reason,
            analysis_failed=True,
        )

    def to_wire(self) -> dict:
        """JSON-ready dict using the wire field names."""
        return self.model_dump(by_alias=True, exclude_none=True)
