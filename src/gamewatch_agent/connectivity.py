"""
Connectivity Monitor
====================

Tracks whether the monitoring host can reach the network.

Signals:
    - set_online(): explicit report (HTTP API, tests)
    - probe loop: periodic TCP connect to a well-known host

Only the offline -> online edge is interesting to the rest of the
system: it fires the restored listeners, which trigger retry-queue
replay.

Example:
    monitor = ConnectivityMonitor(probe_host="1.1.1.1", probe_port=53)
    monitor.add_restored_listener(lambda: print("back online"))
    await monitor.start()
"""

import asyncio
import logging
from typing import Callable, List, Optional


logger = logging.getLogger(__name__)


RestoredListener = Callable[[], None]


class ConnectivityMonitor:
    """
    Online/offline signal with a restored-edge callback.

    Attributes:
        probe_host: Host used by the TCP probe
        probe_port: Port used by the TCP probe
        probe_interval_sec: Seconds between probes
        probe_timeout_sec: Connect timeout per probe
    """

    def __init__(
        self,
        probe_host: str = "1.1.1.1",
        probe_port: int = 53,
        probe_interval_sec: float = 10.0,
        probe_timeout_sec: float = 3.0,
        initial_online: bool = True,
    ) -> None:
        self.probe_host = probe_host
        self.probe_port = probe_port
        self.probe_interval_sec = probe_interval_sec
        self.probe_timeout_sec = probe_timeout_sec

        self._online: bool = initial_online
        self._listeners: List[RestoredListener] = []

        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        self._transitions: int = 0
        self._probe_failures: int = 0

    @property
    def is_online(self) -> bool:
        return self._online

    def add_restored_listener(self, listener: RestoredListener) -> None:
        self._listeners.append(listener)

    def set_online(self, online: bool) -> None:
        """Record the current connectivity; fires listeners on offline -> online."""
        previous = self._online
        self._online = online

        if previous == online:
            return

        self._transitions += 1
        if not online:
            logger.warning("Connectivity lost; alerts will be queued")
            return

        logger.info("Connectivity restored")
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Connectivity listener failed: {e}")

    async def probe_once(self) -> bool:
        """Try a TCP connection to the probe target."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.probe_host, self.probe_port),
                timeout=self.probe_timeout_sec,
            )
        except (OSError, asyncio.TimeoutError) as e:
            self._probe_failures += 1
            logger.debug(f"Connectivity probe failed: {e}")
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def start(self) -> None:
        """Start the probe loop in a background task."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.run(), name="connectivity_probe")

    async def run(self) -> None:
        """Probe until stopped."""
        self._running = True
        self._stop_event.clear()

        logger.info(
            f"Connectivity probe started: {self.probe_host}:{self.probe_port} "
            f"every {self.probe_interval_sec}s"
        )

        while self._running:
            self.set_online(await self.probe_once())

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.probe_interval_sec
                )
                break
            except asyncio.TimeoutError:
                pass

        logger.info("Connectivity probe stopped")

    async def stop(self) -> None:
        self._running = False
        self._stop_event.set()

        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=self.probe_timeout_sec + 1.0)
            except asyncio.TimeoutError:
                self._task.cancel()
            self._task = None

    def get_metrics(self) -> dict:
        return {
            "online": self._online,
            "transitions": self._transitions,
            "probe_failures": self._probe_failures,
        }
