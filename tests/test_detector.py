"""
Disconnect Detector Tests
=========================

Tests for the hysteresis policy and the LangGraph wrapper.
"""

import pytest

from gamewatch_agent.detector import DetectorGraph, DetectorTimings, DisconnectPolicy
from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.models.reason_codes import TransitionCode
from gamewatch_agent.models.state import AlertLogicState, DetectorPhase


T0 = 1_700_000_000.0


def accepted(confidence=0.9, reason='Detected: "网络错误"'):
    return DetectionResult(is_disconnected=True, confidence=confidence, reason=reason)


def connected():
    return DetectionResult(is_disconnected=False, confidence=0.9, reason="No error text detected")


def run_ticks(policy, verdict_at, start=0, end=700, step=5, sensitivity=0.7):
    """Drive the policy with one verdict every `step` seconds; return alerts by offset."""
    state = AlertLogicState()
    alerts = []
    codes = []
    for offset in range(start, end + 1, step):
        state, result = policy.evaluate(state, verdict_at(offset), sensitivity, T0 + offset)
        codes.append(result.code)
        if result.alert is not None:
            alerts.append((offset, result.alert))
    return state, alerts, codes


class TestAcceptance:
    """Tests for the sensitivity gate."""

    def test_threshold_is_inclusive(self):
        assert DisconnectPolicy.is_accepted(accepted(0.7), 0.7) is True
        assert DisconnectPolicy.is_accepted(accepted(0.69), 0.7) is False

    def test_connected_verdict_never_accepted(self):
        assert DisconnectPolicy.is_accepted(connected(), 0.0) is False


class TestDisconnectPolicy:
    """Tests for single transitions."""

    def test_first_accepted_verdict_only_suspects(self):
        policy = DisconnectPolicy()

        state, result = policy.evaluate(AlertLogicState(), accepted(), 0.7, T0)

        assert result.code is TransitionCode.SUSPECTED
        assert result.phase is DetectorPhase.SUSPECTED
        assert result.alert is None
        assert state.disconnect_start_time == T0
        assert state.last_alert_time is None

    def test_alert_exactly_at_window(self):
        policy = DisconnectPolicy(DetectorTimings(confirmation_window_sec=30))
        state = AlertLogicState(disconnect_start_time=T0)

        _, before = policy.evaluate(state, accepted(), 0.7, T0 + 29.9)
        new_state, at = policy.evaluate(state, accepted(), 0.7, T0 + 30)

        assert before.code is TransitionCode.CONFIRMING
        assert before.alert is None
        assert at.code is TransitionCode.ALERT
        assert at.alert.duration_seconds == 30
        assert at.alert.reason == 'Detected: "网络错误"'
        assert at.alert.timestamp == T0 + 30
        assert new_state.last_alert_time == T0 + 30

    def test_repeat_spacing(self):
        policy = DisconnectPolicy()
        state = AlertLogicState(disconnect_start_time=T0, last_alert_time=T0 + 30)

        _, held = policy.evaluate(state, accepted(), 0.7, T0 + 89)
        _, repeated = policy.evaluate(state, accepted(), 0.7, T0 + 90)

        assert held.code is TransitionCode.REPEAT_HOLD
        assert held.alert is None
        assert repeated.code is TransitionCode.ALERT
        assert repeated.alert.duration_seconds == 90

    def test_ceiling_suppresses_but_keeps_state(self):
        policy = DisconnectPolicy()
        state = AlertLogicState(disconnect_start_time=T0, last_alert_time=T0 + 570)

        new_state, result = policy.evaluate(state, accepted(), 0.7, T0 + 600)

        assert result.code is TransitionCode.CEASED
        assert result.phase is DetectorPhase.CEASED
        assert result.alert is None
        assert new_state == state

    def test_non_accepted_verdict_resets(self):
        policy = DisconnectPolicy()
        state = AlertLogicState(disconnect_start_time=T0, last_alert_time=T0 + 30)

        new_state, result = policy.evaluate(state, accepted(0.5), 0.7, T0 + 40)

        assert result.code is TransitionCode.RESTORED
        assert result.elapsed_sec == pytest.approx(40)
        assert new_state.disconnect_start_time is None
        assert new_state.last_alert_time is None

    def test_stable_when_nothing_tracked(self):
        policy = DisconnectPolicy()

        state, result = policy.evaluate(AlertLogicState(), connected(), 0.7, T0)

        assert result.code is TransitionCode.STABLE
        assert state.is_tracking is False

    def test_failed_analysis_keeps_outage(self):
        policy = DisconnectPolicy()
        state = AlertLogicState(disconnect_start_time=T0)

        new_state, result = policy.evaluate(
            state, DetectionResult.failure("Remote Analysis Failed: timeout"), 0.7, T0 + 10
        )

        assert result.code is TransitionCode.INCONCLUSIVE
        assert result.accepted is False
        assert result.alert is None
        assert new_state == state

    def test_new_outage_after_restore_waits_full_window(self):
        policy = DisconnectPolicy(DetectorTimings(confirmation_window_sec=15))
        state = AlertLogicState(disconnect_start_time=T0, last_alert_time=T0 + 15)

        state, _ = policy.evaluate(state, connected(), 0.7, T0 + 20)
        state, suspected = policy.evaluate(state, accepted(), 0.7, T0 + 25)
        state, confirming = policy.evaluate(state, accepted(), 0.7, T0 + 35)
        state, alert = policy.evaluate(state, accepted(), 0.7, T0 + 40)

        assert suspected.code is TransitionCode.SUSPECTED
        assert confirming.code is TransitionCode.CONFIRMING
        assert alert.code is TransitionCode.ALERT
        assert alert.alert.duration_seconds == 15


class TestScenarios:
    """Continuous tick sequences."""

    def test_window_15_first_alert_at_15(self):
        policy = DisconnectPolicy(DetectorTimings(confirmation_window_sec=15))

        _, alerts, codes = run_ticks(policy, lambda t: accepted(0.9), end=30)

        assert alerts[0][0] == 15
        assert alerts[0][1].duration_seconds == 15
        assert len(alerts) == 1
        assert codes[:4] == [
            TransitionCode.SUSPECTED,
            TransitionCode.CONFIRMING,
            TransitionCode.CONFIRMING,
            TransitionCode.ALERT,
        ]

    def test_below_sensitivity_never_suspects(self):
        policy = DisconnectPolicy(DetectorTimings(confirmation_window_sec=15))

        state, alerts, codes = run_ticks(policy, lambda t: accepted(0.5), end=30)

        assert alerts == []
        assert set(codes) == {TransitionCode.STABLE}
        assert state.is_tracking is False

    def test_alerts_stop_at_ceiling(self):
        policy = DisconnectPolicy(DetectorTimings(
            confirmation_window_sec=15,
            repeat_interval_sec=60,
            alert_ceiling_sec=600,
        ))

        state, alerts, codes = run_ticks(policy, lambda t: accepted(0.9), end=700)

        assert [offset for offset, _ in alerts] == list(range(15, 600, 60))
        assert len(alerts) == 10
        assert alerts[-1][0] == 555
        assert codes[-1] is TransitionCode.CEASED
        assert state.disconnect_start_time == T0

    def test_single_accepted_tick_never_alerts(self):
        policy = DisconnectPolicy(DetectorTimings(confirmation_window_sec=15))

        _, alerts, _ = run_ticks(
            policy,
            lambda t: accepted() if t % 10 == 0 else connected(),
            end=300,
        )

        assert alerts == []

    def test_failures_do_not_break_confirmation(self):
        policy = DisconnectPolicy(DetectorTimings(confirmation_window_sec=15))

        def verdict(t):
            if t == 5:
                return DetectionResult.failure("OCR Failed: timeout")
            return accepted()

        _, alerts, _ = run_ticks(policy, verdict, end=15)

        assert [offset for offset, _ in alerts] == [15]


class TestDetectorGraph:
    """Tests for the LangGraph wrapper."""

    def test_process_carries_state_between_ticks(self):
        graph = DetectorGraph(DetectorTimings(confirmation_window_sec=15))

        first = graph.process(accepted(), 0.7, timestamp=T0)
        second = graph.process(accepted(), 0.7, timestamp=T0 + 15)

        assert first.code is TransitionCode.SUSPECTED
        assert second.code is TransitionCode.ALERT
        assert graph.state.disconnect_start_time == T0
        assert graph.state.last_alert_time == T0 + 15
        assert graph.last_transition == second

    def test_phase_is_derived_from_time(self):
        graph = DetectorGraph()
        graph.process(accepted(), 0.7, timestamp=T0)

        assert graph.phase(T0 + 10) is DetectorPhase.SUSPECTED
        assert graph.phase(T0 + 30) is DetectorPhase.ALERTING
        assert graph.phase(T0 + 600) is DetectorPhase.CEASED

    def test_reset(self):
        graph = DetectorGraph()
        graph.process(accepted(), 0.7, timestamp=T0)

        graph.reset()

        assert graph.state.is_tracking is False
        assert graph.phase(T0) is DetectorPhase.CONNECTED
        assert graph.last_transition is None

    def test_sensitivity_read_per_call(self):
        graph = DetectorGraph()

        strict = graph.process(accepted(0.8), 0.9, timestamp=T0)
        lenient = graph.process(accepted(0.8), 0.5, timestamp=T0 + 5)

        assert strict.code is TransitionCode.STABLE
        assert lenient.code is TransitionCode.SUSPECTED
