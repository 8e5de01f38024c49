"""
Monitor Module
==============

Poll loop driving capture -> analysis -> detection -> dispatch, plus
its settings provider and activity log.
"""

from gamewatch_agent.monitor.activity import ActivityLog
from gamewatch_agent.monitor.poll_loop import PollLoop
from gamewatch_agent.monitor.settings_provider import (
    SettingsProvider,
    StaticSettingsProvider,
)

__all__ = [
    "ActivityLog",
    "PollLoop",
    "SettingsProvider",
    "StaticSettingsProvider",
]
