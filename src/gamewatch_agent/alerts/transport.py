"""
Notification Transport
======================

Builds and sends the outbound HTTP requests for an AlertEvent.

Destinations:
    MEOW:     GET {meow_base_url}/{meow_code}?id=<alert id>&text=<message>&type=text
    PUSHPLUS: GET {pushplus_url}?token=...&title=...&content=...&template=html
    WEBHOOK:  POST {webhook_url} {"event", "reason", "duration", "timestamp"}

Design Rules:
    - Each configured destination gets its own request
    - Blocking sends run in a worker thread
    - Non-2xx status or a transport exception raises DeliveryError
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import requests

from gamewatch_agent.errors import DeliveryError
from gamewatch_agent.models.alert import AlertEvent, DeliveryRequest, DestinationKind
from gamewatch_agent.models.settings import MonitorSettings


logger = logging.getLogger(__name__)


DEFAULT_MEOW_BASE_URL = "https://api.chuckfang.com"
DEFAULT_PUSHPLUS_URL = "https://www.pushplus.plus/send"
DEFAULT_WEBHOOK_EVENT = "GAME_DISCONNECTED"

PUSHPLUS_TITLE = "游戏掉线提醒"


def format_alert_text(event: AlertEvent) -> str:
    """Plain-text alert message."""
    when = datetime.fromtimestamp(event.timestamp).strftime("%Y-%m-%d %H:%M:%S")
    return (
        f"掉线了，掉线了！原因: {event.reason} "
        f"持续时间: {event.duration_seconds}秒 时间: {when}"
    )


def format_alert_html(event: AlertEvent) -> str:
    """HTML alert message (PushPlus html template)."""
    when = datetime.fromtimestamp(event.timestamp).strftime("%Y-%m-%d %H:%M:%S")
    return (
        f"掉线了，掉线了<br><br>原因: {event.reason}"
        f"<br>持续时间: {event.duration_seconds}秒<br>时间: {when}"
    )


def build_requests(
    event: AlertEvent,
    settings: MonitorSettings,
    meow_base_url: str = DEFAULT_MEOW_BASE_URL,
    pushplus_url: str = DEFAULT_PUSHPLUS_URL,
    webhook_event: str = DEFAULT_WEBHOOK_EVENT,
) -> List[Tuple[DestinationKind, DeliveryRequest]]:
    """
    Build one request per configured destination.

    Args:
        event: Alert to deliver
        settings: Monitor settings naming the destinations

    Returns:
        List of (destination kind, request); empty if nothing is configured
    """
    requests_out: List[Tuple[DestinationKind, DeliveryRequest]] = []

    if settings.meow_code:
        requests_out.append((
            DestinationKind.MEOW,
            DeliveryRequest(
                method="GET",
                url=f"{meow_base_url.rstrip('/')}/{settings.meow_code}",
                params={
                    "id": uuid.uuid4().hex,
                    "text": format_alert_text(event),
                    "type": "text",
                },
            ),
        ))

    if settings.pushplus_token:
        requests_out.append((
            DestinationKind.PUSHPLUS,
            DeliveryRequest(
                method="GET",
                url=pushplus_url,
                params={
                    "token": settings.pushplus_token,
                    "title": PUSHPLUS_TITLE,
                    "content": format_alert_html(event),
                    "template": "html",
                },
            ),
        ))

    if settings.webhook_url:
        requests_out.append((
            DestinationKind.WEBHOOK,
            DeliveryRequest(
                method="POST",
                url=settings.webhook_url,
                json_body={
                    "event": webhook_event,
                    "reason": event.reason,
                    "duration": event.duration_seconds,
                    "timestamp": datetime.fromtimestamp(
                        event.timestamp, tz=timezone.utc
                    ).isoformat().replace("+00:00", "Z"),
                },
            ),
        ))

    return requests_out


class NotificationTransport:
    """
    HTTP sender for DeliveryRequests.

    Attributes:
        timeout_sec: Per-request timeout
    """

    def __init__(
        self,
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout_sec = timeout_sec
        self._session = session or requests.Session()

    def send(self, request: DeliveryRequest) -> int:
        """
        Send one request. Blocking.

        Returns:
            HTTP status code

        Raises:
            DeliveryError: On transport failure or non-2xx status
        """
        try:
            response = self._session.request(
                request.method,
                request.url,
                params=request.params or None,
                json=request.json_body,
                timeout=self.timeout_sec,
            )
        except requests.RequestException as e:
            raise DeliveryError(f"{request.method} {request.url} failed: {e}")

        if not 200 <= response.status_code < 300:
            raise DeliveryError(
                f"{request.method} {request.url} returned HTTP {response.status_code}"
            )
        return response.status_code

    async def deliver(self, request: DeliveryRequest) -> int:
        """Send one request from a worker thread."""
        return await asyncio.to_thread(self.send, request)

    def close(self) -> None:
        self._session.close()
