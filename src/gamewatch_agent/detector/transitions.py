"""
Disconnect Transition Logic
===========================

Deterministic hysteresis policy turning per-frame verdicts into
confirmed, rate-limited disconnect alerts.

Key Features:
    - Sensitivity gate: a verdict counts only if
      is_disconnected and confidence >= sensitivity
    - TIME-BASED confirmation window before the first alert
    - Minimum spacing between repeat alerts
    - Alert ceiling: an outage older than the ceiling stops alerting
    - A single non-accepted verdict resets everything, except a failed
      analysis, which is not accepted but leaves an outage in progress

Transition Rules:
    accepted, not tracking       -> start tracking (SUSPECTED), no alert
    accepted, elapsed < window   -> CONFIRMING
    accepted, window <= elapsed < ceiling:
        no alert yet, or now - last_alert >= repeat -> ALERT
        otherwise                                    -> REPEAT_HOLD
    accepted, elapsed >= ceiling -> CEASED (state kept, no alert)
    not accepted, tracking       -> RESTORED (state reset)
    not accepted, not tracking   -> STABLE
    analysis failed              -> INCONCLUSIVE (state kept, no alert)

The policy is a pure function of (state, verdict, sensitivity, now).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from gamewatch_agent.models.alert import AlertEvent
from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.models.reason_codes import TransitionCode
from gamewatch_agent.models.state import AlertLogicState, DetectorPhase


logger = logging.getLogger(__name__)


@dataclass
class DetectorTimings:
    """
    Hysteresis timing, in seconds.

    Loaded from configuration file.
    """

    confirmation_window_sec: float = 30.0
    repeat_interval_sec: float = 60.0
    alert_ceiling_sec: float = 600.0


@dataclass
class TransitionResult:
    """Result of evaluating one verdict."""

    phase: DetectorPhase
    code: TransitionCode
    accepted: bool
    elapsed_sec: float = 0.0
    alert: Optional[AlertEvent] = None

    def __repr__(self) -> str:
        return (
            f"TransitionResult({self.phase.value}, {self.code.value}, "
            f"elapsed={self.elapsed_sec:.1f}s, alert={self.alert is not None})"
        )


class DisconnectPolicy:
    """
    Disconnect hysteresis policy.

    Example:
        policy = DisconnectPolicy(DetectorTimings(confirmation_window_sec=15))
        state, result = policy.evaluate(AlertLogicState(), verdict, 0.7, now)
        if result.alert:
            ...
    """

    def __init__(self, timings: Optional[DetectorTimings] = None) -> None:
        self.timings = timings or DetectorTimings()
        logger.info(
            f"DisconnectPolicy initialized: "
            f"window={self.timings.confirmation_window_sec}s, "
            f"repeat={self.timings.repeat_interval_sec}s, "
            f"ceiling={self.timings.alert_ceiling_sec}s"
        )

    @staticmethod
    def is_accepted(result: DetectionResult, sensitivity: float) -> bool:
        return result.is_disconnected and result.confidence >= sensitivity

    def evaluate(
        self,
        state: AlertLogicState,
        result: DetectionResult,
        sensitivity: float,
        now: float,
    ) -> Tuple[AlertLogicState, TransitionResult]:
        """
        Evaluate one verdict.

        Args:
            state: Current session state
            result: Analyzer verdict for this tick
            sensitivity: Minimum confidence for acceptance
            now: Evaluation time (UNIX seconds)

        Returns:
            Tuple of (updated_state, transition_result)
        """
        if result.analysis_failed:
            return state, TransitionResult(
                phase=self.phase_of(state, now),
                code=TransitionCode.INCONCLUSIVE,
                accepted=False,
                elapsed_sec=(now - state.disconnect_start_time) if state.is_tracking else 0.0,
            )

        if not self.is_accepted(result, sensitivity):
            if state.is_tracking:
                elapsed = now - state.disconnect_start_time
                return AlertLogicState(), TransitionResult(
                    phase=DetectorPhase.CONNECTED,
                    code=TransitionCode.RESTORED,
                    accepted=False,
                    elapsed_sec=elapsed,
                )
            return state, TransitionResult(
                phase=DetectorPhase.CONNECTED,
                code=TransitionCode.STABLE,
                accepted=False,
            )

        if not state.is_tracking:
            new_state = state.model_copy(update={
                "disconnect_start_time": now,
                "last_alert_time": None,
            })
            return new_state, TransitionResult(
                phase=DetectorPhase.SUSPECTED,
                code=TransitionCode.SUSPECTED,
                accepted=True,
            )

        elapsed = now - state.disconnect_start_time
        timings = self.timings

        if elapsed >= timings.alert_ceiling_sec:
            return state, TransitionResult(
                phase=DetectorPhase.CEASED,
                code=TransitionCode.CEASED,
                accepted=True,
                elapsed_sec=elapsed,
            )

        if elapsed < timings.confirmation_window_sec:
            return state, TransitionResult(
                phase=DetectorPhase.SUSPECTED,
                code=TransitionCode.CONFIRMING,
                accepted=True,
                elapsed_sec=elapsed,
            )

        due = (
            state.last_alert_time is None
            or now - state.last_alert_time >= timings.repeat_interval_sec
        )
        if not due:
            return state, TransitionResult(
                phase=DetectorPhase.ALERTING,
                code=TransitionCode.REPEAT_HOLD,
                accepted=True,
                elapsed_sec=elapsed,
            )

        alert = AlertEvent(
            reason=result.reason,
            duration_seconds=int(elapsed),
            timestamp=now,
        )
        new_state = state.model_copy(update={"last_alert_time": now})
        return new_state, TransitionResult(
            phase=DetectorPhase.ALERTING,
            code=TransitionCode.ALERT,
            accepted=True,
            elapsed_sec=elapsed,
            alert=alert,
        )

    def phase_of(self, state: AlertLogicState, now: float) -> DetectorPhase:
        """Derive the phase of a state at a given time."""
        if not state.is_tracking:
            return DetectorPhase.CONNECTED

        elapsed = now - state.disconnect_start_time
        if elapsed >= self.timings.alert_ceiling_sec:
            return DetectorPhase.CEASED
        if elapsed >= self.timings.confirmation_window_sec:
            return DetectorPhase.ALERTING
        return DetectorPhase.SUSPECTED
