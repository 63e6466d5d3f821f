"""
FastAPI Dependency Injection Providers.

Dependencies:
    get_settings()        - Loads and caches application configuration
    get_stream_service()  - Creates/returns the singleton SpeechStreamService

Both are singletons so that every request shares one engine, one usage
meter and one concurrency controller.

Usage in Route Handlers:
    from fastapi import Depends
    from tts_bridge.api.dependencies import get_stream_service

    @router.post("/v1/tts/stream")
    async def tts_stream(
        req: StreamRequest,
        service: SpeechStreamService = Depends(get_stream_service),
    ):
        ...

Tests override these with app.dependency_overrides.
"""
from __future__ import annotations

from functools import lru_cache

from tts_bridge.core.config import Settings, load_settings
from tts_bridge.services.stream_service import SpeechStreamService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The path comes from TTS_BRIDGE_SETTINGS (default config/settings.yaml);
    a missing file means built-in defaults.
    """
    return load_settings()


def get_stream_service() -> SpeechStreamService:
    """Get the singleton SpeechStreamService instance."""
    return get_service(get_settings())
