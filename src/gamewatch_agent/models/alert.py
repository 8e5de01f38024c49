"""
Alert Models
============

Outbound alert types.

    - AlertEvent: Emitted by the detector when an outage is confirmed
    - DestinationKind: Enumerated notification transports
    - DeliveryRequest: One concrete HTTP request to a destination
    - QueuedAlert: A delivery deferred because the host was offline
"""

import time
import uuid
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class DestinationKind(str, Enum):
    """
    Notification transports.

    Attributes:
        MEOW: GET trigger with URL-encoded {id, text, type}
        PUSHPLUS: GET trigger to the PushPlus (WeChat) relay
        WEBHOOK: POST JSON {event, reason, duration, timestamp}
    """

    MEOW = "meow"
    PUSHPLUS = "pushplus"
    WEBHOOK = "webhook"


class AlertEvent(BaseModel):
    """
    Confirmed-disconnect alert.

    Emitted, handed to the dispatcher, never stored.

    Attributes:
        reason: Analyzer reason for the triggering verdict
        duration_seconds: Whole seconds since the outage was first suspected
        timestamp: UNIX time the alert was emitted
    """

    model_config = ConfigDict(frozen=True)

    reason: str = Field(..., description="Reason reported by the analyzer")
    duration_seconds: int = Field(..., ge=0, description="Outage duration so far")
    timestamp: float = Field(..., description="UNIX time of emission")


class DeliveryRequest(BaseModel):
    """Concrete HTTP request for one destination."""

    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "POST"] = Field(default="GET")
    url: str = Field(..., description="Target URL (without query string)")
    params: Dict[str, str] = Field(default_factory=dict, description="Query parameters")
    json_body: Optional[Dict[str, Any]] = Field(default=None, description="JSON body for POST")


class QueuedAlert(BaseModel):
    """
    Delivery deferred while local connectivity was down.

    Lives in the dispatcher's FIFO retry queue until replayed or flushed.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    destination_kind: DestinationKind
    payload: DeliveryRequest
    enqueued_at: float = Field(default_factory=time.time)
