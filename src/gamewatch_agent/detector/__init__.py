"""
Detector Module
===============

Hysteresis state machine converting per-frame verdicts into confirmed
disconnect alerts.

Phases:
    CONNECTED -> SUSPECTED -> ALERTING -> CEASED
"""

from gamewatch_agent.detector.graph import DetectorGraph
from gamewatch_agent.detector.transitions import (
    DetectorTimings,
    DisconnectPolicy,
    TransitionResult,
)

__all__ = [
    "DetectorGraph",
    "DetectorTimings",
    "DisconnectPolicy",
    "TransitionResult",
]
