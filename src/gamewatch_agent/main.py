"""
GameWatch Agent Main Application
================================

FastAPI entry point for the disconnect monitor.

Endpoints:
    GET    /                - Service information
    GET    /health          - Liveness probe (is process alive?)
    GET    /ready           - Readiness probe (analyzer initialized?)
    GET    /status          - Poll loop status snapshot
    GET    /logs            - Activity log, newest first
    GET    /queue           - Offline retry queue contents
    DELETE /queue           - Flush the retry queue
    GET    /settings        - Current monitor settings
    PUT    /settings        - Partial settings update (applies next tick)
    POST   /monitor/start   - Start monitoring
    POST   /monitor/stop    - Stop monitoring
    POST   /connectivity    - Report host connectivity {"online": bool}
    POST   /api/analyze     - Remote analysis endpoint {"base64Image": str}
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from gamewatch_agent.alerts import AlertDispatcher, NotificationTransport, TerminalBell
from gamewatch_agent.analysis.factory import create_frame_analyzer, create_vision_client
from gamewatch_agent.analysis.engine import AnalyzerStatus, FrameAnalyzer
from gamewatch_agent.analysis.ocr_engine import LocalOcrAnalyzer
from gamewatch_agent.analysis.vision_model import VisionModelClient
from gamewatch_agent.capture import FileCaptureSource, FrameBuffer, StreamCaptureSource
from gamewatch_agent.config import settings
from gamewatch_agent.connectivity import ConnectivityMonitor
from gamewatch_agent.detector import DetectorGraph, DetectorTimings
from gamewatch_agent.models.detection import DetectionResult
from gamewatch_agent.monitor import ActivityLog, PollLoop, StaticSettingsProvider


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_capture: Optional[Union[FileCaptureSource, StreamCaptureSource]] = None
_analyzer: Optional[FrameAnalyzer] = None
_transport: Optional[NotificationTransport] = None
_dispatcher: Optional[AlertDispatcher] = None
_connectivity: Optional[ConnectivityMonitor] = None
_settings_provider: Optional[StaticSettingsProvider] = None
_poll_loop: Optional[PollLoop] = None
_vision_client: Optional[VisionModelClient] = None
_startup_time: float = time.time()


# =============================================================================
# Getters
# =============================================================================

def get_poll_loop() -> Optional[PollLoop]:
    return _poll_loop

def get_capture() -> Optional[Union[FileCaptureSource, StreamCaptureSource]]:
    return _capture

def get_analyzer() -> Optional[FrameAnalyzer]:
    return _analyzer

def get_dispatcher() -> Optional[AlertDispatcher]:
    return _dispatcher

def get_connectivity() -> Optional[ConnectivityMonitor]:
    return _connectivity

def get_settings_provider() -> Optional[StaticSettingsProvider]:
    return _settings_provider


def get_vision_client() -> Optional[VisionModelClient]:
    """Vision client backing /api/analyze, or None if no API key is configured."""
    global _vision_client

    if _vision_client is None and settings.analysis.vision.api_key:
        _vision_client = create_vision_client(settings.analysis.vision)
    return _vision_client


# =============================================================================
# Component Factories
# =============================================================================

def create_capture_source() -> Union[FileCaptureSource, StreamCaptureSource]:
    """Create the capture source selected in config."""
    source = settings.capture.source

    if source == "file":
        logger.info(f"Using FileCaptureSource: {settings.capture.file_path}")
        return FileCaptureSource(
            settings.capture.file_path,
            jpeg_quality=settings.capture.jpeg_quality,
        )

    elif source == "stream":
        logger.info(f"Using StreamCaptureSource: {settings.capture.stream_url}")
        return StreamCaptureSource(
            url=settings.capture.stream_url,
            buffer=FrameBuffer(maxsize=settings.capture.max_queue_size),
            reconnect_backoff_ms=settings.capture.reconnect_backoff_ms,
            max_reconnect_attempts=settings.capture.max_reconnect_attempts,
        )

    else:
        raise ValueError(f"Unknown capture source: {source}")


def _not_initialized() -> JSONResponse:
    return JSONResponse({"error": "Monitor not initialized"}, status_code=503)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire components on startup and tear them down in reverse on exit."""
    global _capture, _analyzer, _transport, _dispatcher
    global _connectivity, _settings_provider, _poll_loop, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.agent.name} {settings.agent.version}")

    # Capture
    _capture = create_capture_source()
    if isinstance(_capture, StreamCaptureSource):
        await _capture.start()

    # Analysis (backend selection)
    _analyzer = create_frame_analyzer(settings.analysis)
    if isinstance(_analyzer, LocalOcrAnalyzer):
        await _analyzer.start()

    # Alerts
    _transport = NotificationTransport(timeout_sec=settings.alerts.timeout_sec)
    _dispatcher = AlertDispatcher(
        _transport,
        replay_delay_sec=settings.alerts.replay_delay_sec,
        meow_base_url=settings.alerts.meow_base_url,
        pushplus_url=settings.alerts.pushplus_url,
        webhook_event=settings.alerts.webhook_event,
    )

    # Connectivity
    _connectivity = ConnectivityMonitor(
        probe_host=settings.connectivity.probe_host,
        probe_port=settings.connectivity.probe_port,
        probe_interval_sec=settings.connectivity.probe_interval_sec,
        probe_timeout_sec=settings.connectivity.probe_timeout_sec,
    )
    if settings.connectivity.probe_enabled:
        await _connectivity.start()

    # Poll loop
    _settings_provider = StaticSettingsProvider(settings.monitor.defaults)
    _poll_loop = PollLoop(
        capture=_capture,
        analyzer=_analyzer,
        detector=DetectorGraph(DetectorTimings(
            confirmation_window_sec=settings.detector.confirmation_window_sec,
            repeat_interval_sec=settings.detector.repeat_interval_sec,
            alert_ceiling_sec=settings.detector.alert_ceiling_sec,
        )),
        dispatcher=_dispatcher,
        settings_provider=_settings_provider,
        connectivity=_connectivity,
        local_alarm=TerminalBell(),
        activity=ActivityLog(maxlen=settings.monitor.activity_log_size),
    )

    if settings.monitor.auto_start:
        await _poll_loop.start()

    logger.info("All components started")

    yield

    # Shutdown
    logger.info("Stopping monitoring and releasing resources")

    await _poll_loop.stop()
    await _poll_loop.wait_idle()

    if len(_dispatcher.queue):
        logger.warning(
            f"{len(_dispatcher.queue)} queued alert(s) discarded at shutdown"
        )

    await _connectivity.stop()

    if isinstance(_capture, StreamCaptureSource):
        await _capture.stop()

    _transport.close()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="GameWatch Agent",
    description="Disconnect-screen monitor with rate-limited alerting",
    version=settings.agent.version,
    lifespan=lifespan,
)


class ConnectivityReport(BaseModel):
    online: bool


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Name, version and the active capture and analysis backends."""
    return JSONResponse({
        "service": "GameWatch Agent",
        "version": settings.agent.version,
        "name": settings.agent.name,
        "status": "running",
        "analyzer_backend": settings.analysis.backend,
        "capture_source": settings.capture.source,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe.

    Answers 200 whenever the event loop is responsive.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe.

    Returns 200 once the poll loop exists and the analyzer has finished
    initializing (successfully or not), 503 otherwise.
    """
    analyzer = get_analyzer()
    loop = get_poll_loop()

    analyzer_status = getattr(analyzer, "status", AnalyzerStatus.READY) if analyzer else None
    is_service_ready = (
        loop is not None
        and analyzer_status is not None
        and analyzer_status is not AnalyzerStatus.LOADING
    )

    body = {
        "status": "ready" if is_service_ready else "not_ready",
        "analyzer_status": analyzer_status.value if analyzer_status else None,
        "monitoring": loop.is_monitoring if loop else False,
    }
    return JSONResponse(body, status_code=200 if is_service_ready else 503)


@app.get("/status")
async def status() -> JSONResponse:
    """Poll loop status snapshot plus component metrics."""
    loop = get_poll_loop()
    if loop is None:
        return _not_initialized()

    analyzer = get_analyzer()
    analyzer_metrics: Dict[str, Any] = {}
    if analyzer is not None and hasattr(analyzer, "get_metrics"):
        analyzer_metrics = analyzer.get_metrics()

    capture = get_capture()
    capture_metrics: Dict[str, Any] = capture.get_metrics() if capture is not None else {}

    return JSONResponse({
        **loop.snapshot().model_dump(mode="json"),
        "capture": capture_metrics,
        "analyzer": analyzer_metrics,
        "dispatcher": get_dispatcher().get_metrics(),
        "connectivity": get_connectivity().get_metrics(),
    })


@app.get("/logs")
async def logs(limit: int = 50, include_images: bool = False) -> JSONResponse:
    """Activity log, newest first."""
    loop = get_poll_loop()
    if loop is None:
        return _not_initialized()

    exclude = None if include_images else {"image_b64"}
    return JSONResponse([
        entry.model_dump(mode="json", exclude=exclude)
        for entry in loop.activity.entries(limit)
    ])


@app.get("/queue")
async def queue() -> JSONResponse:
    """Offline retry queue contents, oldest first."""
    dispatcher = get_dispatcher()
    if dispatcher is None:
        return _not_initialized()

    items = dispatcher.queue.snapshot()
    return JSONResponse({
        "size": len(items),
        "items": [item.model_dump(mode="json") for item in items],
    })


@app.delete("/queue")
async def flush_queue() -> JSONResponse:
    """Discard every queued alert."""
    dispatcher = get_dispatcher()
    if dispatcher is None:
        return _not_initialized()

    dropped = await dispatcher.flush()
    return JSONResponse({"flushed": dropped})


@app.get("/settings")
async def get_settings() -> JSONResponse:
    provider = get_settings_provider()
    if provider is None:
        return _not_initialized()
    return JSONResponse(provider.current().model_dump(mode="json"))


@app.put("/settings")
async def update_settings(changes: Dict[str, Any]) -> JSONResponse:
    """Partial settings update; takes effect at the next tick."""
    provider = get_settings_provider()
    if provider is None:
        return _not_initialized()

    try:
        updated = provider.update(**changes)
    except ValidationError as e:
        return JSONResponse(
            {"error": "Invalid settings", "details": e.errors(include_url=False)},
            status_code=422,
        )
    return JSONResponse(updated.model_dump(mode="json"))


@app.post("/monitor/start")
async def start_monitoring() -> JSONResponse:
    loop = get_poll_loop()
    if loop is None:
        return _not_initialized()

    await loop.start()
    return JSONResponse(loop.snapshot().model_dump(mode="json"))


@app.post("/monitor/stop")
async def stop_monitoring() -> JSONResponse:
    loop = get_poll_loop()
    if loop is None:
        return _not_initialized()

    await loop.stop()
    return JSONResponse(loop.snapshot().model_dump(mode="json"))


@app.post("/connectivity")
async def report_connectivity(report: ConnectivityReport) -> JSONResponse:
    """External connectivity signal; offline -> online triggers queue replay."""
    connectivity = get_connectivity()
    dispatcher = get_dispatcher()
    if connectivity is None or dispatcher is None:
        return _not_initialized()

    connectivity.set_online(report.online)
    return JSONResponse({
        "online": connectivity.is_online,
        "queued_alerts": len(dispatcher.queue),
    })


@app.post("/api/analyze")
async def analyze(request: Request) -> JSONResponse:
    """
    Remote analysis endpoint.

    Request:  {"base64Image": "<base64 JPEG or data URL>"}
    Response: {"isDisconnected": bool, "confidence": float, "reason": str}
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    image = body.get("base64Image") if isinstance(body, dict) else None
    if not image:
        return JSONResponse({"error": "No image data provided"}, status_code=400)

    client = get_vision_client()
    if client is None:
        logger.error("Vision model API key is not configured")
        return JSONResponse(
            DetectionResult.failure(
                "Server Error: vision model API key is not configured"
            ).to_wire(),
            status_code=500,
        )

    try:
        result = await asyncio.to_thread(client.detect, image)
    except Exception as e:
        logger.error(f"Remote analysis failed: {e}")
        return JSONResponse(
            DetectionResult.failure(f"Server Analysis Failed: {e}").to_wire(),
            status_code=500,
        )

    return JSONResponse(result.to_wire())


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "gamewatch_agent.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
