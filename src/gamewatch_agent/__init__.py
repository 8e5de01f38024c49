"""
GameWatch Agent
===============

Watches a game screen feed, asks a frame analyzer whether each sampled
frame shows a disconnect/error screen, and turns the noisy per-frame
verdicts into a small number of confirmed, rate-limited alerts.

Components:
    - capture: Frame model, codec and capture sources
    - preprocessing: Crop / upscale / grayscale / binarize before OCR
    - analysis: Local OCR, remote endpoint and vision model analyzers
    - detector: LangGraph-based hysteresis state machine
    - alerts: Dispatcher, offline retry queue, notification transport
    - monitor: Poll loop, settings provider, activity log

Example:
    from gamewatch_agent.config import settings

    # The agent is started via the FastAPI application
    # See main.py for the entry point
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
