"""
Transition Codes
================

Fixed set of machine-readable codes describing what the detector did
with one verdict.

Rules:
    - Exactly one code per evaluated tick
    - Only ALERT carries an AlertEvent
    - SUSPECTED and RESTORED are log-only events
    - INCONCLUSIVE never changes detector state
"""

from enum import Enum


class TransitionCode(str, Enum):
    """
    Detector tick outcome codes.

    Attributes:
        STABLE: Not accepted, nothing being tracked
        SUSPECTED: First accepted verdict, outage tracking started
        CONFIRMING: Accepted, still inside the confirmation window
        ALERT: Accepted and alert-worthy, AlertEvent emitted
        REPEAT_HOLD: Accepted, repeat interval not yet elapsed
        CEASED: Accepted past the alert ceiling, alerting suppressed
        RESTORED: Not accepted after an outage, state reset
        INCONCLUSIVE: Analysis failed; not accepted, state kept
    """

    STABLE = "STABLE"
    SUSPECTED = "SUSPECTED"
    CONFIRMING = "CONFIRMING"
    ALERT = "ALERT"
    REPEAT_HOLD = "REPEAT_HOLD"
    CEASED = "CEASED"
    RESTORED = "RESTORED"
    INCONCLUSIVE = "INCONCLUSIVE"
