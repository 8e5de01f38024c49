"""
Detector State Models
=====================

Internal state of the disconnect detector.

Core Concepts:
    - DetectorPhase: CONNECTED, SUSPECTED, ALERTING, CEASED
    - AlertLogicState: The only mutable state the detector keeps between polls

Phases are derived, not stored:

    CONNECTED:  disconnect_start_time is None
    SUSPECTED:  started, elapsed < confirmation window
    ALERTING:   confirmation window <= elapsed < alert ceiling
    CEASED:     elapsed >= alert ceiling (still tracking, no more alerts)

Invariant:
    disconnect_start_time is set iff the most recent verdict was accepted
    and no non-accepted verdict has been observed since.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DetectorPhase(str, Enum):
    """Disconnect detector phases."""

    CONNECTED = "CONNECTED"
    SUSPECTED = "SUSPECTED"
    ALERTING = "ALERTING"
    CEASED = "CEASED"


class AlertLogicState(BaseModel):
    """
    Per-session hysteresis state.

    Attributes:
        disconnect_start_time: UNIX time of the first accepted verdict of the current outage
        last_alert_time: UNIX time of the most recent emitted alert
    """

    disconnect_start_time: Optional[float] = Field(
        default=None,
        description="When the current suspected outage started",
    )

    last_alert_time: Optional[float] = Field(
        default=None,
        description="When the last alert of the current outage was emitted",
    )

    @property
    def is_tracking(self) -> bool:
        return self.disconnect_start_time is not None
