"""
tts-bridge: Streaming Text-to-Speech over HTTP.

A small FastAPI service that drives Azure Cognitive Services Speech and
forwards synthesized PCM audio to the HTTP client while it is still being
produced, instead of buffering the whole utterance first.

Key Features:
    - Chunked audio streaming (/v1/tts/stream)
    - Configurable voice alias table with gender defaults
    - Exactly-once response termination across engine and pull-loop signals
    - Admission control for concurrent streams
    - Usage metering and Prometheus metrics

Example Usage:
    >>> from tts_bridge.core.config import Settings
    >>> from tts_bridge.synthesis.voices import VoiceResolver
    >>>
    >>> resolver = VoiceResolver.from_settings(Settings(raw={}))
    >>> resolver.resolve(voice_name="FableNeural")
    'en-US-FableNeural'
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
