"""
GameWatch Agent Configuration
=============================

This module handles configuration loading for the monitoring agent.

Values are merged from three sources; a later source wins:
    defaults, then config.yaml, then environment variables.

Environment variables:
    GAMEWATCH_CAPTURE_SOURCE   -> capture.source
    GAMEWATCH_CAPTURE_PATH     -> capture.file_path
    GAMEWATCH_STREAM_URL       -> capture.stream_url
    GAMEWATCH_ANALYZER_BACKEND -> analysis.backend
    GAMEWATCH_REMOTE_ENDPOINT  -> analysis.remote.endpoint
    GAMEWATCH_VISION_API_KEY   -> analysis.vision.api_key
    GAMEWATCH_VISION_MODEL     -> analysis.vision.model
    GAMEWATCH_CHECK_INTERVAL   -> monitor.defaults.check_interval_seconds
    GAMEWATCH_SENSITIVITY      -> monitor.defaults.sensitivity
    GAMEWATCH_MEOW_CODE        -> monitor.defaults.meow_code
    GAMEWATCH_PUSHPLUS_TOKEN   -> monitor.defaults.pushplus_token
    GAMEWATCH_WEBHOOK_URL      -> monitor.defaults.webhook_url
    GAMEWATCH_AGENT_PORT       -> server.port
    GAMEWATCH_LOG_LEVEL        -> logging.level
    PORT                       -> server.port (container platforms)

Example:
    from gamewatch_agent.config import settings

    print(settings.analysis.backend)
    print(settings.detector.confirmation_window_sec)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from gamewatch_agent.analysis.keywords import DEFAULT_KEYWORD_SET, KeywordSet
from gamewatch_agent.models.settings import MonitorSettings
from gamewatch_agent.preprocessing.preprocessor import (
    FOCUS_PRESET,
    NORMAL_PRESET,
    PreprocessConfig,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AgentConfig(BaseModel):
    """Name and version reported by /health."""

    name: str = Field(default="gamewatch-agent", description="Agent name")
    version: str = Field(default="v0.1.0", description="Agent version")


class CaptureConfig(BaseModel):
    """Capture source configuration."""

    source: str = Field(
        default="file",
        description="Capture source: 'file' or 'stream'",
    )
    file_path: str = Field(
        default="./screenshot.jpg",
        description="Screenshot file re-read on every tick (file source)",
    )
    jpeg_quality: int = Field(
        default=80,
        ge=1,
        le=100,
        description="JPEG quality of captured frames",
    )
    stream_url: str = Field(
        default="ws://localhost:8000/ws/stream",
        description="WebSocket frame feed URL (stream source)",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Pause before reconnecting the frame feed (ms)",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Consecutive failed reconnects before giving up (0 = never)",
    )
    max_queue_size: int = Field(
        default=5,
        ge=1,
        description="Maximum size of the stream frame buffer",
    )


class PreprocessPresets(BaseModel):
    """Preprocessing presets, selected per request by focus_mode."""

    normal: PreprocessConfig = Field(default=NORMAL_PRESET)
    focus: PreprocessConfig = Field(default=FOCUS_PRESET)


class OcrConfig(BaseModel):
    """Local text recognition backend configuration."""

    languages: str = Field(
        default="eng+chi_sim",
        description="Tesseract language codes joined by +",
    )
    tesseract_cmd: Optional[str] = Field(
        default=None,
        description="Path to the tesseract binary (default: search PATH)",
    )
    page_segmentation_mode: int = Field(
        default=6,
        ge=0,
        le=13,
        description="Tesseract --psm value",
    )


class RemoteAnalysisConfig(BaseModel):
    """Remote analysis endpoint configuration."""

    endpoint: str = Field(
        default="http://localhost:8001/api/analyze",
        description="URL of the remote analysis endpoint",
    )
    timeout_sec: float = Field(default=30.0, gt=0, description="Request timeout")


class VisionModelConfig(BaseModel):
    """Vision model configuration (OpenAI-compatible chat completions)."""

    api_key: Optional[str] = Field(default=None, description="API key")
    model: str = Field(
        default="google/gemini-2.0-flash-001",
        description="Vision model identifier",
    )
    base_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        description="Chat completions URL",
    )
    timeout_sec: float = Field(default=60.0, gt=0, description="Request timeout")
    max_tokens: int = Field(default=300, ge=16, description="Completion token budget")


class MockAnalysisConfig(BaseModel):
    """Mock analyzer configuration."""

    is_disconnected: bool = Field(default=False, description="Fixed verdict")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Fixed confidence")
    reason: str = Field(default="Mock analyzer", description="Fixed reason")


class AnalysisConfig(BaseModel):
    """Frame analyzer configuration."""

    backend: str = Field(
        default="ocr",
        description="Analyzer backend: 'ocr', 'remote', 'vision' or 'mock'",
    )
    preprocess: PreprocessPresets = Field(default_factory=PreprocessPresets)
    keywords: KeywordSet = Field(default=DEFAULT_KEYWORD_SET)
    ocr: OcrConfig = Field(default_factory=OcrConfig)
    remote: RemoteAnalysisConfig = Field(default_factory=RemoteAnalysisConfig)
    vision: VisionModelConfig = Field(default_factory=VisionModelConfig)
    mock: MockAnalysisConfig = Field(default_factory=MockAnalysisConfig)


class DetectorConfig(BaseModel):
    """Disconnect detector timing (hysteresis)."""

    confirmation_window_sec: float = Field(
        default=30.0,
        ge=15.0,
        le=30.0,
        description="Sustained disconnect time before the first alert",
    )
    repeat_interval_sec: float = Field(
        default=60.0,
        gt=0,
        description="Minimum spacing between alerts of one outage",
    )
    alert_ceiling_sec: float = Field(
        default=600.0,
        gt=0,
        description="Outage age after which alerting stops",
    )


class AlertsConfig(BaseModel):
    """Notification transport configuration."""

    meow_base_url: str = Field(
        default="https://api.chuckfang.com",
        description="MeoW push base URL; the push id is appended as a path segment",
    )
    pushplus_url: str = Field(
        default="https://www.pushplus.plus/send",
        description="PushPlus send URL",
    )
    webhook_event: str = Field(
        default="GAME_DISCONNECTED",
        description="Event name in webhook bodies",
    )
    timeout_sec: float = Field(default=10.0, gt=0, description="Delivery timeout")
    replay_delay_sec: float = Field(
        default=1.0,
        ge=0,
        description="Delay between replayed queue items",
    )


class ConnectivityConfig(BaseModel):
    """Host connectivity probe configuration."""

    probe_enabled: bool = Field(default=True, description="Run the TCP reachability probe")
    probe_host: str = Field(default="1.1.1.1", description="Probe target host")
    probe_port: int = Field(default=53, ge=1, le=65535, description="Probe target port")
    probe_interval_sec: float = Field(default=10.0, gt=0, description="Probe period")
    probe_timeout_sec: float = Field(default=3.0, gt=0, description="Probe connect timeout")


class MonitorConfig(BaseModel):
    """Poll loop configuration."""

    defaults: MonitorSettings = Field(default_factory=MonitorSettings)
    auto_start: bool = Field(
        default=False,
        description="Start monitoring when the service starts",
    )
    activity_log_size: int = Field(
        default=50,
        ge=1,
        description="Number of activity log entries kept",
    )


class ServerConfig(BaseModel):
    """HTTP control surface binding."""

    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=8001, ge=1, le=65535, description="Listen port")


class LoggingConfig(BaseModel):
    """Root logger setup."""

    level: str = Field(default="INFO", description="Root log level name")
    format: str = Field(default="json", description="'json' lines or plain 'text'")


class Settings(BaseModel):
    """
    Root of the configuration tree.

    Built by load_config(); see the module docstring for the order in
    which sources are merged.
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    connectivity: ConnectivityConfig = Field(default_factory=ConnectivityConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

CONFIG_SEARCH_PATHS = (
    Path("config.yaml"),
    Path("config.yml"),
    Path("/app/config.yaml"),
    Path(__file__).resolve().parents[2] / "config.yaml",
)

# (variable, key path inside the config tree, converter)
ENV_OVERRIDES = (
    ("GAMEWATCH_CAPTURE_SOURCE", ("capture", "source"), str),
    ("GAMEWATCH_CAPTURE_PATH", ("capture", "file_path"), str),
    ("GAMEWATCH_STREAM_URL", ("capture", "stream_url"), str),
    ("GAMEWATCH_ANALYZER_BACKEND", ("analysis", "backend"), str),
    ("GAMEWATCH_REMOTE_ENDPOINT", ("analysis", "remote", "endpoint"), str),
    ("GAMEWATCH_VISION_API_KEY", ("analysis", "vision", "api_key"), str),
    ("GAMEWATCH_VISION_MODEL", ("analysis", "vision", "model"), str),
    ("GAMEWATCH_CHECK_INTERVAL", ("monitor", "defaults", "check_interval_seconds"), float),
    ("GAMEWATCH_SENSITIVITY", ("monitor", "defaults", "sensitivity"), float),
    ("GAMEWATCH_MEOW_CODE", ("monitor", "defaults", "meow_code"), str),
    ("GAMEWATCH_PUSHPLUS_TOKEN", ("monitor", "defaults", "pushplus_token"), str),
    ("GAMEWATCH_WEBHOOK_URL", ("monitor", "defaults", "webhook_url"), str),
    ("GAMEWATCH_AGENT_PORT", ("server", "port"), int),
    # PORT is listed last so it wins over GAMEWATCH_AGENT_PORT
    ("PORT", ("server", "port"), int),
    ("GAMEWATCH_LOG_LEVEL", ("logging", "level"), str),
)


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Build Settings from defaults, the YAML file and the environment.

    Later sources win: defaults, then config.yaml, then environment
    variables.

    Args:
        config_path: Explicit config file. When None, the first existing
            entry of CONFIG_SEARCH_PATHS is used.
    """
    if config_path is None:
        found = next((p for p in CONFIG_SEARCH_PATHS if p.exists()), None)
        config_path = str(found) if found else None

    tree: dict = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Reading configuration file {config_path}")
        with open(config_path, "r", encoding="utf-8") as f:
            tree = yaml.safe_load(f) or {}
    else:
        logger.warning("Config file not found; running on defaults plus environment")

    _apply_env_overrides(tree)

    return Settings.model_validate(tree)


def _apply_env_overrides(tree: dict) -> None:
    for var, key_path, convert in ENV_OVERRIDES:
        raw = os.environ.get(var)
        if not raw:
            continue

        node = tree
        for key in key_path[:-1]:
            node = node.setdefault(key, {})
        node[key_path[-1]] = convert(raw)


def setup_logging(settings: Settings) -> None:
    """Install the root handler in the configured format."""
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        fmt = (
            '{"time": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}'
        )
    else:
        fmt = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

    logging.basicConfig(level=level, format=fmt, datefmt="%Y-%m-%dT%H:%M:%S")


# =============================================================================
# Module Settings
# =============================================================================

settings = load_config()
setup_logging(settings)
