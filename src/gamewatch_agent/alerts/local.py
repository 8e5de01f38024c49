"""
Local Alarm
===========

Audible alert on the monitoring host.

The terminal bell is the only sound the agent makes; headless hosts
simply log the alarm.
"""

import logging
import sys
from typing import Protocol, TextIO

from gamewatch_agent.models.alert import AlertEvent


logger = logging.getLogger(__name__)


class LocalAlarm(Protocol):
    def sound(self, event: AlertEvent) -> None:
        ...


class TerminalBell:
    """Rings the terminal bell a few times per alert."""

    def __init__(self, stream: TextIO = sys.stderr, rings: int = 3) -> None:
        self._stream = stream
        self.rings = rings

    def sound(self, event: AlertEvent) -> None:
        logger.warning(
            f"LOCAL ALARM: disconnected for {event.duration_seconds}s ({event.reason})"
        )
        try:
            self._stream.write("\a" * self.rings)
            self._stream.flush()
        except (OSError, ValueError) as e:
            logger.debug(f"Terminal bell unavailable: {e}")
