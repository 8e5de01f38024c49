"""
Poll Loop Tests
===============

Tests for the monitoring session driver, settings hot reload,
connectivity signalling and the activity log.
"""

import asyncio

import pytest
from pydantic import ValidationError

from gamewatch_agent.alerts.dispatcher import AlertDispatcher
from gamewatch_agent.analysis.engine import MockFrameAnalyzer
from gamewatch_agent.connectivity import ConnectivityMonitor
from gamewatch_agent.detector import DetectorGraph, DetectorTimings
from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.models.monitor import LogType, MonitorStatus
from gamewatch_agent.models.reason_codes import TransitionCode
from gamewatch_agent.models.settings import MonitorSettings
from gamewatch_agent.monitor import ActivityLog, PollLoop, StaticSettingsProvider

from conftest import FakeCapture, FakeClock, FakeTransport


class FakeAlarm:
    def __init__(self):
        self.events = []

    def sound(self, event):
        self.events.append(event)


class BlockingAnalyzer:
    """Analyzer that waits for release before answering."""

    def __init__(self, result):
        self.result = result
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def analyze(self, frame, focus_mode=False):
        self.calls += 1
        self.entered.set()
        await self.release.wait()
        return self.result


def make_loop(
    analyzer,
    capture=None,
    settings=None,
    online=True,
    window=15.0,
    transport=None,
    alarm=None,
    clock=None,
):
    connectivity = ConnectivityMonitor(initial_online=online)
    dispatcher = AlertDispatcher(transport or FakeTransport(), replay_delay_sec=0)
    return PollLoop(
        capture=capture or FakeCapture(),
        analyzer=analyzer,
        detector=DetectorGraph(DetectorTimings(confirmation_window_sec=window)),
        dispatcher=dispatcher,
        settings_provider=StaticSettingsProvider(settings),
        connectivity=connectivity,
        local_alarm=alarm,
        clock=clock or FakeClock(),
    )


async def run_ticks(loop, clock, count, step=5.0):
    transitions = []
    for index in range(count):
        if index:
            clock.advance(step)
        transitions.append(await loop.tick())
    await loop.wait_idle()
    return transitions


class TestPollLoopTicks:
    """Tests for single-tick behavior."""

    def test_alert_after_window(self, disconnected_result):
        clock = FakeClock()
        transport = FakeTransport()
        alarm = FakeAlarm()
        settings = MonitorSettings(webhook_url="https://hooks.example.com/game")
        loop = make_loop(
            MockFrameAnalyzer([disconnected_result]),
            settings=settings,
            transport=transport,
            alarm=alarm,
            clock=clock,
        )

        transitions = asyncio.run(run_ticks(loop, clock, 4))

        assert [t.code for t in transitions] == [
            TransitionCode.SUSPECTED,
            TransitionCode.CONFIRMING,
            TransitionCode.CONFIRMING,
            TransitionCode.ALERT,
        ]
        assert transitions[-1].alert.duration_seconds == 15
        assert len(transport.sent) == 1
        assert transport.sent[0].json_body["duration"] == 15
        assert len(alarm.events) == 1

        messages = [entry.message for entry in loop.activity.entries()]
        assert messages[0].startswith("ALERT TRIGGERED: ")
        assert messages[1].startswith("Potential disconnection detected. Verifying for 15s")
        assert loop.activity.entries()[0].image_b64 is not None

    def test_local_sound_can_be_disabled(self, disconnected_result):
        clock = FakeClock()
        alarm = FakeAlarm()
        loop = make_loop(
            MockFrameAnalyzer([disconnected_result]),
            settings=MonitorSettings(enable_local_sound=False),
            alarm=alarm,
            clock=clock,
        )

        asyncio.run(run_ticks(loop, clock, 4))

        assert alarm.events == []
        assert loop.snapshot().alerts_emitted == 1

    def test_capture_failure_leaves_state_untouched(self):
        analyzer = MockFrameAnalyzer()
        loop = make_loop(analyzer, capture=FakeCapture(fail=True))

        result = asyncio.run(loop.tick())

        assert result is None
        assert analyzer.call_count == 0
        assert loop.detector.last_transition is None
        assert loop.snapshot().capture_failures == 1

    def test_analyzer_exception_is_contained(self, disconnected_result):
        class ExplodingAnalyzer:
            async def analyze(self, frame, focus_mode=False):
                raise RuntimeError("boom")

        loop = make_loop(ExplodingAnalyzer())

        result = asyncio.run(loop.tick())

        assert result.code is TransitionCode.INCONCLUSIVE
        assert loop.snapshot().analysis_failures == 1

    def test_failures_logged_once_per_reason(self, disconnected_result):
        clock = FakeClock()
        failure = DetectionResult.failure("Remote Analysis Failed: HTTP 502")
        loop = make_loop(
            MockFrameAnalyzer([disconnected_result, failure, failure, disconnected_result]),
            clock=clock,
        )

        transitions = asyncio.run(run_ticks(loop, clock, 4))

        assert transitions[1].code is TransitionCode.INCONCLUSIVE
        assert transitions[3].code is TransitionCode.ALERT
        errors = [e for e in loop.activity.entries() if e.type is LogType.ERROR
                  and e.message.startswith("Analysis failed")]
        assert len(errors) == 1
        assert loop.snapshot().analysis_failures == 2

    def test_restore_resets(self, disconnected_result, connected_result):
        clock = FakeClock()
        loop = make_loop(
            MockFrameAnalyzer([disconnected_result, connected_result]),
            clock=clock,
        )

        transitions = asyncio.run(run_ticks(loop, clock, 2))

        assert transitions[1].code is TransitionCode.RESTORED
        assert loop.detector.state.is_tracking is False
        assert loop.activity.entries()[0].message == "Connection restored. Logic reset."

    def test_sensitivity_hot_reload(self, weak_disconnected_result):
        clock = FakeClock()
        loop = make_loop(MockFrameAnalyzer([weak_disconnected_result]), clock=clock)

        async def scenario():
            first = await loop.tick()
            loop.settings_provider.update(sensitivity=0.4)
            clock.advance(5)
            second = await loop.tick()
            return first, second

        first, second = asyncio.run(scenario())

        assert first.code is TransitionCode.STABLE
        assert second.code is TransitionCode.SUSPECTED

    def test_ceiling_logged_once(self, disconnected_result):
        clock = FakeClock()
        loop = make_loop(MockFrameAnalyzer([disconnected_result]), clock=clock)

        async def scenario():
            await loop.tick()
            clock.advance(600)
            await loop.tick()
            clock.advance(5)
            await loop.tick()
            await loop.wait_idle()

        asyncio.run(scenario())

        ceiling = [e for e in loop.activity.entries() if e.message.startswith("Alert ceiling")]
        assert len(ceiling) == 1
        assert loop.snapshot().alerts_emitted == 0


class TestPollLoopConcurrency:
    """Tests for overlap, stop and replay."""

    def test_overlapping_tick_is_skipped(self, disconnected_result):
        analyzer = BlockingAnalyzer(disconnected_result)
        loop = make_loop(analyzer)

        async def scenario():
            first = asyncio.create_task(loop.tick())
            await analyzer.entered.wait()
            skipped = await loop.tick()
            analyzer.release.set()
            return skipped, await first

        skipped, first = asyncio.run(scenario())

        assert skipped is None
        assert first.code is TransitionCode.SUSPECTED
        assert analyzer.calls == 1
        assert loop.snapshot().skipped_ticks == 1

    def test_stop_discards_in_flight_verdict(self, disconnected_result):
        analyzer = BlockingAnalyzer(disconnected_result)
        loop = make_loop(analyzer)

        async def scenario():
            await loop.start()
            await analyzer.entered.wait()
            await loop.stop()
            analyzer.release.set()
            await asyncio.sleep(0)

        asyncio.run(scenario())

        assert loop.detector.last_transition is None
        assert loop.detector.state.is_tracking is False
        assert loop.is_monitoring is False
        assert loop.status() is MonitorStatus.IDLE
        assert loop.activity.entries()[0].message == "Monitoring paused."

    def test_start_resets_detector(self, disconnected_result):
        loop = make_loop(MockFrameAnalyzer([disconnected_result]))

        async def scenario():
            await loop.tick()
            tracking_before = loop.detector.state.is_tracking
            await loop.start()
            await asyncio.sleep(0)
            await loop.wait_idle()
            status = loop.status()
            await loop.stop()
            return tracking_before, status

        tracking_before, status = asyncio.run(scenario())

        assert tracking_before is True
        assert status is MonitorStatus.ALERT
        started = [e for e in loop.activity.entries() if e.message.startswith("Monitoring started")]
        assert started[0].message == "Monitoring started. Checking every 5s"

    def test_offline_alert_replayed_on_restore(self, disconnected_result):
        clock = FakeClock()
        transport = FakeTransport()
        loop = make_loop(
            MockFrameAnalyzer([disconnected_result]),
            settings=MonitorSettings(webhook_url="https://hooks.example.com/game"),
            online=False,
            transport=transport,
            clock=clock,
        )

        async def scenario():
            await run_ticks(loop, clock, 4)
            queued = len(loop.dispatcher.queue)
            loop.connectivity.set_online(True)
            await loop.wait_idle()
            return queued

        queued = asyncio.run(scenario())

        assert queued == 1
        assert len(transport.sent) == 1
        assert len(loop.dispatcher.queue) == 0
        assert loop.activity.entries()[0].message.startswith("Connectivity restored. Replayed 1")


class TestConnectivityMonitor:
    """Tests for online/offline edges and the TCP probe."""

    def test_listeners_fire_on_restore_only(self):
        monitor = ConnectivityMonitor()
        calls = []
        monitor.add_restored_listener(lambda: calls.append("restored"))

        monitor.set_online(True)
        monitor.set_online(False)
        monitor.set_online(False)
        monitor.set_online(True)

        assert calls == ["restored"]
        assert monitor.get_metrics()["transitions"] == 2

    def test_failing_listener_does_not_block_others(self):
        monitor = ConnectivityMonitor(initial_online=False)
        calls = []

        def broken():
            raise RuntimeError("listener bug")

        monitor.add_restored_listener(broken)
        monitor.add_restored_listener(lambda: calls.append("ok"))
        monitor.set_online(True)

        assert calls == ["ok"]
        assert monitor.is_online is True

    def test_probe_against_local_server(self):
        async def scenario():
            server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
            port = server.sockets[0].getsockname()[1]
            monitor = ConnectivityMonitor(probe_host="127.0.0.1", probe_port=port)
            reachable = await monitor.probe_once()
            server.close()
            await server.wait_closed()
            return reachable

        assert asyncio.run(scenario()) is True


class TestSettingsAndActivity:
    def test_settings_update_validates(self):
        provider = StaticSettingsProvider()

        provider.update(sensitivity=0.9, focus_mode=True)

        assert provider.current().sensitivity == 0.9
        assert provider.current().focus_mode is True
        with pytest.raises(ValidationError):
            provider.update(check_interval_seconds=1)
        assert provider.current().check_interval_seconds == 5.0

    def test_activity_log_is_bounded_newest_first(self):
        log = ActivityLog(maxlen=3)
        for index in range(5):
            log.add(LogType.INFO, f"entry {index}")

        assert len(log) == 3
        assert [e.message for e in log.entries()] == ["entry 4", "entry 3", "entry 2"]
        assert [e.message for e in log.entries(limit=1)] == ["entry 4"]
