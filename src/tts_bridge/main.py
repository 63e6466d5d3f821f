"""
FastAPI Application Entry Point.

Usage:
    # Run with uvicorn
    uvicorn tts_bridge.main:app --host 0.0.0.0 --port 8000

    # Or through the CLI
    tts-bridge --serve --port 8000
"""

from __future__ import annotations

from fastapi import FastAPI

from tts_bridge import __version__
from tts_bridge.api.routes import router
from tts_bridge.core.logging import configure_logging


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Logging is configured first (reads TTS_BRIDGE_LOG_LEVEL and the
    logging section of the settings file), then the routes are mounted.
    The engine is created lazily on the first request.
    """
    configure_logging()

    app = FastAPI(title="tts-bridge", version=__version__)
    app.include_router(router)
    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
