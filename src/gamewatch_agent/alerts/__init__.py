"""
Alerts Module
=============

Alert dispatch with an offline retry queue.

    - AlertDispatcher: deliver online, queue offline, replay on reconnect
    - RetryQueue: FIFO of deferred deliveries
    - NotificationTransport: HTTP sender (MeoW, PushPlus, webhook)
    - TerminalBell: local audible alarm
"""

from gamewatch_agent.alerts.dispatcher import AlertDispatcher, DispatchReport
from gamewatch_agent.alerts.local import LocalAlarm, TerminalBell
from gamewatch_agent.alerts.queue import RetryQueue
from gamewatch_agent.alerts.transport import NotificationTransport, build_requests

__all__ = [
    "AlertDispatcher",
    "DispatchReport",
    "LocalAlarm",
    "TerminalBell",
    "RetryQueue",
    "NotificationTransport",
    "build_requests",
]
