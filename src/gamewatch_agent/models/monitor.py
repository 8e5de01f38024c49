"""
Monitor Status Models
=====================

Operator-facing view of a monitoring session: the activity log and
the status snapshot served by the HTTP API.
"""

import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from gamewatch_agent.models.state import DetectorPhase


class MonitorStatus(str, Enum):
    """Coarse monitoring status."""

    IDLE = "idle"
    SCANNING = "scanning"
    ALERT = "alert"
    OFFLINE = "offline"


class LogType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class MonitorLog(BaseModel):
    """One activity log entry."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:9])
    timestamp: float = Field(default_factory=time.time)
    type: LogType
    message: str
    image_b64: Optional[str] = Field(
        default=None,
        description="Frame attached to alert entries",
    )


class StatusSnapshot(BaseModel):
    """Point-in-time view of the poll loop."""

    status: MonitorStatus
    is_monitoring: bool
    phase: DetectorPhase
    last_check: Optional[float] = None
    disconnect_start_time: Optional[float] = None
    last_alert_time: Optional[float] = None
    ticks: int = 0
    skipped_ticks: int = 0
    capture_failures: int = 0
    analysis_failures: int = 0
    alerts_emitted: int = 0
    queued_alerts: int = 0
    online: bool = True
