"""
Poll Loop
=========

Top-level driver of one monitoring session.

Each tick, sequentially:
    1. Read MonitorSettings (hot reload happens here and only here)
    2. Grab a frame from the capture source
    3. Analyze it
    4. Feed the verdict to the detector
    5. Dispatch an alert if the detector emitted one

Concurrency:
    - One timeline. A tick that comes due while the previous one is
      still running is skipped, not queued
    - stop() cancels the timer and the in-flight tick and bumps the
      session generation; a verdict from an older generation is
      discarded before it can touch detector state
    - Alert dispatch and queue replay run as background tasks and never
      block the tick timeline

Design Rules:
    - Capture failure skips the tick without touching detector state
    - Nothing raised inside a tick escapes the loop
"""

import asyncio
import logging
import time
from typing import Callable, Coroutine, Optional, Set

from gamewatch_agent.alerts.dispatcher import AlertDispatcher
from gamewatch_agent.alerts.local import LocalAlarm
from gamewatch_agent.analysis.engine import FrameAnalyzer
from gamewatch_agent.capture.frame import Frame
from gamewatch_agent.capture.source import CaptureSource
from gamewatch_agent.connectivity import ConnectivityMonitor
from gamewatch_agent.detector.graph import DetectorGraph
from gamewatch_agent.detector.transitions import TransitionResult
from gamewatch_agent.models.alert import AlertEvent
from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.models.monitor import LogType, MonitorStatus, StatusSnapshot
from gamewatch_agent.models.reason_codes import TransitionCode
from gamewatch_agent.models.settings import MonitorSettings
from gamewatch_agent.monitor.activity import ActivityLog
from gamewatch_agent.monitor.settings_provider import SettingsProvider


logger = logging.getLogger(__name__)


class PollLoop:
    """
    Periodic capture -> analyze -> detect -> dispatch driver.

    Example:
        loop = PollLoop(capture, analyzer, DetectorGraph(), dispatcher,
                        StaticSettingsProvider(), ConnectivityMonitor())
        await loop.start()
        ...
        await loop.stop()
    """

    def __init__(
        self,
        capture: CaptureSource,
        analyzer: FrameAnalyzer,
        detector: DetectorGraph,
        dispatcher: AlertDispatcher,
        settings_provider: SettingsProvider,
        connectivity: ConnectivityMonitor,
        local_alarm: Optional[LocalAlarm] = None,
        activity: Optional[ActivityLog] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.capture = capture
        self.analyzer = analyzer
        self.detector = detector
        self.dispatcher = dispatcher
        self.settings_provider = settings_provider
        self.connectivity = connectivity
        self.local_alarm = local_alarm
        self.activity = activity or ActivityLog()
        self._clock = clock

        self._running: bool = False
        self._generation: int = 0
        self._in_flight: bool = False
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

        self._last_check: Optional[float] = None
        self._last_failure_reason: Optional[str] = None

        self._ticks: int = 0
        self._skipped_ticks: int = 0
        self._capture_failures: int = 0
        self._analysis_failures: int = 0
        self._alerts_emitted: int = 0

        self.connectivity.add_restored_listener(self.handle_connectivity_restored)

    @property
    def is_monitoring(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Session control
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Reset detector state, tick immediately, then tick on the interval."""
        if self._running:
            logger.info("Monitoring already running")
            return

        self.detector.reset()
        self._generation += 1
        self._running = True
        self._last_failure_reason = None

        interval = self.settings_provider.current().check_interval_seconds
        self.activity.add(LogType.INFO, f"Monitoring started. Checking every {interval:g}s")
        logger.info(f"Monitoring started (session {self._generation}, interval={interval:g}s)")

        self._timer_task = asyncio.create_task(
            self._run(self._generation),
            name="poll_timer",
        )

    async def stop(self) -> None:
        """Cancel the pending tick; an in-flight analysis can no longer mutate state."""
        if not self._running:
            return

        self._running = False
        self._generation += 1

        for task in (self._timer_task, self._tick_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._timer_task = None
        self._tick_task = None

        self.activity.add(LogType.INFO, "Monitoring paused.")
        logger.info("Monitoring stopped")

    async def _run(self, generation: int) -> None:
        while self._running and generation == self._generation:
            if self._in_flight:
                self._skipped_ticks += 1
                logger.warning("Previous check still in flight; tick skipped")
            else:
                self._tick_task = asyncio.create_task(
                    self._tick(generation),
                    name="poll_tick",
                )

            interval = self.settings_provider.current().check_interval_seconds
            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    async def tick(self) -> Optional[TransitionResult]:
        """
        Run one check now.

        Returns:
            The detector transition, or None if the tick was skipped,
            had no frame, or was invalidated by stop()
        """
        return await self._tick(self._generation)

    async def _tick(self, generation: int) -> Optional[TransitionResult]:
        if self._in_flight:
            self._skipped_ticks += 1
            logger.warning("Previous check still in flight; tick skipped")
            return None

        self._in_flight = True
        try:
            return await self._check(generation)
        except asyncio.CancelledError:
            logger.info("Tick cancelled")
            raise
        except Exception as e:
            logger.error(f"Tick failed: {e}")
            self.activity.add(LogType.ERROR, "Analysis cycle failed.")
            return None
        finally:
            self._in_flight = False

    async def _check(self, generation: int) -> Optional[TransitionResult]:
        settings = self.settings_provider.current()
        self._ticks += 1

        try:
            frame = await self.capture.grab()
        except Exception as e:
            self._capture_failures += 1
            logger.warning(f"No frame for this tick: {e}")
            return None

        try:
            result = await self.analyzer.analyze(frame, focus_mode=settings.focus_mode)
        except Exception as e:
            logger.error(f"Analyzer raised (frame={frame.frame_id}): {e}")
            result = DetectionResult.failure(f"Analysis Failed: {e}")

        if generation != self._generation:
            logger.info("Monitoring stopped during analysis; verdict discarded")
            return None

        now = self._clock()
        self._last_check = now

        previous = self.detector.last_transition
        transition = self.detector.process(result, settings.sensitivity, now)

        self._record(transition, previous, result, frame)

        if transition.alert is not None:
            self._on_alert(transition.alert, settings)

        return transition

    def _record(
        self,
        transition: TransitionResult,
        previous: Optional[TransitionResult],
        result: DetectionResult,
        frame: Frame,
    ) -> None:
        code = transition.code

        if code is TransitionCode.INCONCLUSIVE:
            self._analysis_failures += 1
            if result.reason != self._last_failure_reason:
                self.activity.add(LogType.ERROR, f"Analysis failed: {result.reason}")
            self._last_failure_reason = result.reason
            return

        self._last_failure_reason = None

        if code is TransitionCode.SUSPECTED:
            window = self.detector.timings.confirmation_window_sec
            self.activity.add(
                LogType.WARNING,
                f"Potential disconnection detected. Verifying for {window:g}s... "
                f"Reason: {result.reason}",
            )
        elif code is TransitionCode.ALERT:
            self.activity.add(
                LogType.ERROR,
                f"ALERT TRIGGERED: {result.reason} "
                f"(Duration: {transition.alert.duration_seconds}s)",
                image_b64=frame.image_b64,
            )
        elif code is TransitionCode.CEASED:
            if previous is None or previous.code is not TransitionCode.CEASED:
                self.activity.add(
                    LogType.WARNING,
                    "Alert ceiling reached. No further alerts until the connection is restored.",
                )
        elif code is TransitionCode.RESTORED:
            self.activity.add(LogType.SUCCESS, "Connection restored. Logic reset.")

    def _on_alert(self, event: AlertEvent, settings: MonitorSettings) -> None:
        self._alerts_emitted += 1

        if settings.enable_local_sound and self.local_alarm is not None:
            try:
                self.local_alarm.sound(event)
            except Exception as e:
                logger.error(f"Local alarm failed: {e}")

        self._spawn(self._dispatch(event, settings), name="alert_dispatch")

    async def _dispatch(self, event: AlertEvent, settings: MonitorSettings) -> None:
        try:
            report = await self.dispatcher.dispatch_event(
                event, settings, online=self.connectivity.is_online
            )
        except Exception as e:
            logger.error(f"Alert dispatch failed: {e}")
            return

        if report.queued:
            self.activity.add(
                LogType.WARNING,
                f"Offline: {report.queued} notification(s) queued until connectivity returns.",
            )
        if report.failed:
            self.activity.add(
                LogType.ERROR,
                f"Notification delivery failed: {'; '.join(report.errors)}",
            )

    # -------------------------------------------------------------------------
    # Connectivity
    # -------------------------------------------------------------------------

    def handle_connectivity_restored(self) -> None:
        """Replay queued alerts in the background."""
        self._spawn(self._replay(), name="alert_replay")

    async def _replay(self) -> None:
        try:
            report = await self.dispatcher.replay()
        except Exception as e:
            logger.error(f"Alert replay failed: {e}")
            return

        if report.attempted:
            self.activity.add(
                LogType.INFO,
                f"Connectivity restored. Replayed {report.sent} queued notification(s), "
                f"{report.failed} failed.",
            )

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait for the in-flight tick and background tasks to finish."""
        if self._tick_task is not None and not self._tick_task.done():
            await asyncio.gather(self._tick_task, return_exceptions=True)
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def status(self) -> MonitorStatus:
        if not self._running:
            return MonitorStatus.IDLE
        if not self.connectivity.is_online:
            return MonitorStatus.OFFLINE
        if self.detector.state.is_tracking:
            return MonitorStatus.ALERT
        return MonitorStatus.SCANNING

    def snapshot(self) -> StatusSnapshot:
        state = self.detector.state
        return StatusSnapshot(
            status=self.status(),
            is_monitoring=self._running,
            phase=self.detector.phase(self._clock()),
            last_check=self._last_check,
            disconnect_start_time=state.disconnect_start_time,
            last_alert_time=state.last_alert_time,
            ticks=self._ticks,
            skipped_ticks=self._skipped_ticks,
            capture_failures=self._capture_failures,
            analysis_failures=self._analysis_failures,
            alerts_emitted=self._alerts_emitted,
            queued_alerts=len(self.dispatcher.queue),
            online=self.connectivity.is_online,
        )
