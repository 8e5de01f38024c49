"""
Monitor Settings
================

User-facing monitoring settings.

Supplied by an external settings surface and read-only to the core.
The poll loop reads them once at the start of every tick, so changes
take effect on the next tick, never mid-tick.
"""

from typing import Optional

from pydantic import BaseModel, Field


class MonitorSettings(BaseModel):
    """
    Monitoring settings.

    Attributes:
        check_interval_seconds: Seconds between poll ticks
        sensitivity: Minimum confidence for a verdict to be accepted
        focus_mode: Use the tight-crop preprocessing preset
        meow_code: MeoW push id (empty = disabled)
        pushplus_token: PushPlus token (empty = disabled)
        webhook_url: Generic webhook URL (empty = disabled)
        enable_local_sound: Sound a local alarm on every alert
    """

    check_interval_seconds: float = Field(
        default=5.0,
        ge=5.0,
        le=60.0,
        description="Seconds between checks",
    )

    sensitivity: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for an accepted verdict",
    )

    focus_mode: bool = Field(
        default=False,
        description="Tighter crop and higher upscale for small centered dialogs",
    )

    meow_code: Optional[str] = Field(default=None, description="MeoW push id")
    pushplus_token: Optional[str] = Field(default=None, description="PushPlus token")
    webhook_url: Optional[str] = Field(default=None, description="Generic webhook URL")

    enable_local_sound: bool = Field(
        default=True,
        description="Sound a local alarm when an alert fires",
    )
