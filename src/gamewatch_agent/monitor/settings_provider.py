"""
Settings Provider
=================

Source of MonitorSettings for the poll loop.

The poll loop calls current() once per tick, so updates take effect at
the next tick boundary.
"""

import logging
from typing import Any, Optional, Protocol

from gamewatch_agent.models.settings import MonitorSettings


logger = logging.getLogger(__name__)


class SettingsProvider(Protocol):
    def current(self) -> MonitorSettings:
        ...


class StaticSettingsProvider:
    """In-process settings holder, updatable at runtime."""

    def __init__(self, settings: Optional[MonitorSettings] = None) -> None:
        self._settings = settings or MonitorSettings()

    def current(self) -> MonitorSettings:
        return self._settings

    def update(self, **changes: Any) -> MonitorSettings:
        """
        Apply a partial update.

        Raises:
            pydantic.ValidationError: If the merged settings are invalid
        """
        merged = self._settings.model_dump()
        merged.update(changes)
        self._settings = MonitorSettings.model_validate(merged)
        logger.info(f"Monitor settings updated: {sorted(changes)}")
        return self._settings
