"""
Detector Graph Definition
=========================

LangGraph state machine for the disconnect detector.

LangGraph is used for CONTROL FLOW only, not LLM reasoning.

Graph Structure:
    START -> evaluate_verdict -> END

    The evaluate_verdict node:
    1. Receives the analyzer verdict for one tick
    2. Applies DisconnectPolicy
    3. Emits a TransitionResult (with an AlertEvent when one is due)

The graph owns the AlertLogicState of one monitoring session.
"""

import logging
import time
from typing import Any, Dict, Optional, TypedDict

from langgraph.graph import StateGraph, END

from gamewatch_agent.detector.transitions import (
    DetectorTimings,
    DisconnectPolicy,
    TransitionResult,
)
from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.models.reason_codes import TransitionCode
from gamewatch_agent.models.state import AlertLogicState, DetectorPhase


logger = logging.getLogger(__name__)


class DetectorGraphState(TypedDict):
    """
    State passed through the detector graph.

    Attributes:
        alert_state: Hysteresis state, persistent across ticks
        result: Current tick's verdict
        sensitivity: Acceptance threshold read for this tick
        timestamp: Evaluation time
        transition: Output of the last evaluation
    """
    alert_state: AlertLogicState
    result: Optional[DetectionResult]
    sensitivity: float
    timestamp: float
    transition: Optional[TransitionResult]


def create_initial_state() -> DetectorGraphState:
    """Create initial graph state."""
    return {
        "alert_state": AlertLogicState(),
        "result": None,
        "sensitivity": 0.7,
        "timestamp": time.time(),
        "transition": None,
    }


class DetectorGraph:
    """
    LangGraph-based disconnect detector.

    No LLM calls. One evaluation per tick. Only state changes are logged
    at warning; steady ticks are logged at debug.
    """

    def __init__(self, timings: Optional[DetectorTimings] = None) -> None:
        self.timings = timings or DetectorTimings()
        self.policy = DisconnectPolicy(self.timings)

        self._graph = self._build_graph()
        self._state: DetectorGraphState = create_initial_state()

        logger.info("DetectorGraph initialized")

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph workflow."""
        workflow = StateGraph(DetectorGraphState)

        workflow.add_node("evaluate_verdict", self._evaluate_verdict_node)

        workflow.set_entry_point("evaluate_verdict")
        workflow.add_edge("evaluate_verdict", END)

        return workflow.compile()

    def _evaluate_verdict_node(self, state: DetectorGraphState) -> Dict[str, Any]:
        result = state.get("result")
        alert_state = state.get("alert_state") or AlertLogicState()
        now = state.get("timestamp", time.time())

        if result is None:
            return {
                "transition": TransitionResult(
                    phase=self.policy.phase_of(alert_state, now),
                    code=TransitionCode.STABLE,
                    accepted=False,
                ),
            }

        new_state, transition = self.policy.evaluate(
            alert_state, result, state.get("sensitivity", 0.7), now
        )

        if transition.code is TransitionCode.SUSPECTED:
            logger.warning(f"Disconnect suspected: {result.reason}")
        elif transition.code is TransitionCode.ALERT:
            logger.warning(
                f"DISCONNECT CONFIRMED: duration={transition.alert.duration_seconds}s, "
                f"reason={result.reason}"
            )
        elif transition.code is TransitionCode.RESTORED:
            logger.warning(
                f"Connection restored after {transition.elapsed_sec:.1f}s"
            )
        elif transition.code is TransitionCode.INCONCLUSIVE:
            logger.info(f"Analysis failed, detector state kept: {result.reason}")
        else:
            logger.debug(f"Detector tick: {transition!r}")

        return {
            "alert_state": new_state,
            "transition": transition,
        }

    def process(
        self,
        result: DetectionResult,
        sensitivity: float,
        timestamp: Optional[float] = None,
    ) -> TransitionResult:
        """
        Feed one verdict through the detector.

        Args:
            result: Analyzer verdict
            sensitivity: Acceptance threshold for this tick
            timestamp: Evaluation time (defaults to now)

        Returns:
            TransitionResult, carrying an AlertEvent when an alert is due
        """
        if timestamp is None:
            timestamp = time.time()

        self._state["result"] = result
        self._state["sensitivity"] = sensitivity
        self._state["timestamp"] = timestamp

        self._state = self._graph.invoke(self._state)

        return self._state["transition"]

    @property
    def state(self) -> AlertLogicState:
        return self._state["alert_state"]

    def phase(self, now: Optional[float] = None) -> DetectorPhase:
        """Current phase, derived at the given time."""
        return self.policy.phase_of(self.state, time.time() if now is None else now)

    @property
    def last_transition(self) -> Optional[TransitionResult]:
        return self._state.get("transition")

    def reset(self) -> None:
        """Reset to a fresh session state."""
        self._state = create_initial_state()
        logger.info("DetectorGraph reset")
