"""
tts-bridge Services Layer.

Business logic between the API layer and the synthesis layer.

Components:
    - stream_service.py: SpeechStreamService (streaming synthesis orchestrator)
    - validators.py: Input validation functions
"""
from tts_bridge.core.errors import (
    EngineNotReadyError,
    ErrorCode,
    InvalidInputError,
    QueueFullError,
    SynthesisError,
    TimeoutError,
    TTSError,
)

from .stream_service import (
    PreparedStream,
    SpeechStreamService,
    SynthesisRequest,
    get_service,
    reset_service,
)

__all__ = [
    "SpeechStreamService",
    "SynthesisRequest",
    "PreparedStream",
    "get_service",
    "reset_service",
    "TTSError",
    "SynthesisError",
    "TimeoutError",
    "QueueFullError",
    "InvalidInputError",
    "EngineNotReadyError",
    "ErrorCode",
]
