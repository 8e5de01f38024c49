"""
Data Models
===========

Pydantic models for GameWatch.

Models:
    Detection:
        - DetectionResult: Per-frame analyzer verdict

    State:
        - DetectorPhase: CONNECTED, SUSPECTED, ALERTING, CEASED
        - AlertLogicState: Hysteresis state for one monitoring session
        - TransitionCode: What the detector did with one verdict

    Alerts:
        - AlertEvent, DestinationKind, DeliveryRequest, QueuedAlert

    Monitor:
        - MonitorSettings: User-facing settings, read per tick
        - MonitorStatus, MonitorLog, StatusSnapshot
"""

from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.models.state import AlertLogicState, DetectorPhase
from gamewatch_agent.models.reason_codes import TransitionCode
from gamewatch_agent.models.alert import (
    AlertEvent,
    DeliveryRequest,
    DestinationKind,
    QueuedAlert,
)
from gamewatch_agent.models.settings import MonitorSettings
from gamewatch_agent.models.monitor import (
    LogType,
    MonitorLog,
    MonitorStatus,
    StatusSnapshot,
)

__all__ = [
    # Detection
    "DetectionResult",
    # State
    "AlertLogicState",
    "DetectorPhase",
    "TransitionCode",
    # Alerts
    "AlertEvent",
    "DeliveryRequest",
    "DestinationKind",
    "QueuedAlert",
    # Monitor
    "MonitorSettings",
    "LogType",
    "MonitorLog",
    "MonitorStatus",
    "StatusSnapshot",
]
