"""
Alert Dispatcher
================

Turns an AlertEvent into outbound notification attempts.

Delivery Policy:
    online:  each destination is sent immediately and independently.
             A failed send is logged and not retried; the next repeat
             alert is the retry.
    offline: each destination is appended to the retry queue exactly
             once and never sent.

Replay:
    On a connectivity-restored signal the whole queue is drained in
    FIFO order with a short delay between items. Replay failures are
    logged and not re-queued. Only one replay runs at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from gamewatch_agent.alerts.queue import RetryQueue
from gamewatch_agent.alerts.transport import (
    DEFAULT_MEOW_BASE_URL,
    DEFAULT_PUSHPLUS_URL,
    DEFAULT_WEBHOOK_EVENT,
    NotificationTransport,
    build_requests,
)
from gamewatch_agent.models.alert import (
    AlertEvent,
    DeliveryRequest,
    DestinationKind,
    QueuedAlert,
)
from gamewatch_agent.models.settings import MonitorSettings


logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """Outcome of one dispatch or replay."""

    sent: int = 0
    failed: int = 0
    queued: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.sent + self.failed + self.queued


class AlertDispatcher:
    """
    Dispatcher with an offline retry queue.

    Example:
        dispatcher = AlertDispatcher(NotificationTransport())
        report = await dispatcher.dispatch_event(event, settings, online=True)
    """

    def __init__(
        self,
        transport: NotificationTransport,
        queue: Optional[RetryQueue] = None,
        replay_delay_sec: float = 1.0,
        meow_base_url: str = DEFAULT_MEOW_BASE_URL,
        pushplus_url: str = DEFAULT_PUSHPLUS_URL,
        webhook_event: str = DEFAULT_WEBHOOK_EVENT,
    ) -> None:
        self.transport = transport
        self.queue = queue or RetryQueue()
        self.replay_delay_sec = replay_delay_sec
        self.meow_base_url = meow_base_url
        self.pushplus_url = pushplus_url
        self.webhook_event = webhook_event

        self._replay_lock = asyncio.Lock()

        self._total_sent: int = 0
        self._total_failed: int = 0
        self._total_queued: int = 0
        self._total_replayed: int = 0

    def destinations_for(
        self,
        event: AlertEvent,
        settings: MonitorSettings,
    ) -> List[Tuple[DestinationKind, DeliveryRequest]]:
        return build_requests(
            event,
            settings,
            meow_base_url=self.meow_base_url,
            pushplus_url=self.pushplus_url,
            webhook_event=self.webhook_event,
        )

    async def dispatch(
        self,
        event: AlertEvent,
        destinations: Sequence[Tuple[DestinationKind, DeliveryRequest]],
        online: bool,
    ) -> DispatchReport:
        """
        Deliver or queue one alert.

        Args:
            event: Alert being delivered
            destinations: (kind, request) per configured destination
            online: Local connectivity at dispatch time

        Returns:
            DispatchReport
        """
        report = DispatchReport()

        if not destinations:
            logger.info("Alert raised but no notification destination is configured")
            return report

        for kind, request in destinations:
            if not online:
                size = await self.queue.enqueue(
                    QueuedAlert(destination_kind=kind, payload=request)
                )
                report.queued += 1
                self._total_queued += 1
                logger.warning(f"Offline: {kind.value} alert queued (queue size={size})")
                continue

            try:
                await self.transport.deliver(request)
            except Exception as e:
                report.failed += 1
                report.errors.append(f"{kind.value}: {e}")
                self._total_failed += 1
                logger.error(f"Alert delivery failed ({kind.value}): {e}")
                continue

            report.sent += 1
            self._total_sent += 1
            logger.info(f"Alert delivered via {kind.value} (duration={event.duration_seconds}s)")

        return report

    async def dispatch_event(
        self,
        event: AlertEvent,
        settings: MonitorSettings,
        online: bool,
    ) -> DispatchReport:
        """Build the destinations from settings and dispatch."""
        return await self.dispatch(event, self.destinations_for(event, settings), online)

    async def replay(self) -> DispatchReport:
        """Drain the retry queue in FIFO order."""
        async with self._replay_lock:
            report = DispatchReport()
            items = await self.queue.drain()
            if not items:
                return report

            logger.info(f"Replaying {len(items)} queued alert(s)")

            for index, item in enumerate(items):
                if index > 0 and self.replay_delay_sec > 0:
                    await asyncio.sleep(self.replay_delay_sec)

                try:
                    await self.transport.deliver(item.payload)
                except Exception as e:
                    report.failed += 1
                    report.errors.append(f"{item.destination_kind.value}: {e}")
                    self._total_failed += 1
                    logger.error(
                        f"Replay of {item.destination_kind.value} alert {item.id} failed: {e}"
                    )
                    continue

                report.sent += 1
                self._total_sent += 1
                self._total_replayed += 1

            logger.info(f"Replay finished: sent={report.sent}, failed={report.failed}")
            return report

    async def flush(self) -> int:
        """Discard every queued alert."""
        dropped = await self.queue.clear()
        if dropped:
            logger.warning(f"Flushed {dropped} queued alert(s) without delivery")
        return dropped

    def get_metrics(self) -> dict:
        return {
            "sent": self._total_sent,
            "failed": self._total_failed,
            "queued": self._total_queued,
            "replayed": self._total_replayed,
            "queue_size": len(self.queue),
        }
