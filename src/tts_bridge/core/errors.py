"""
Error Codes and Exceptions for tts-bridge.

Every failure that can reach a client is a TTSError carrying one of the
ErrorCode constants. The API layer maps codes to HTTP status codes and
serializes errors with to_dict(), so clients always see:

    {"ok": false, "error": "<ERROR_CODE>", "message": "<fixed message>"}

Exceptions:
    - InvalidInputError: Empty or oversized text, rejected before the engine
    - SynthesisError: Engine failure or output stream read failure
    - TimeoutError: Admission wait or output stream inactivity timeout
    - QueueFullError: Too many streams waiting for a slot
    - EngineNotReadyError: Engine missing credentials or failed to start
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes for API responses."""
    MODEL_NOT_READY = "MODEL_NOT_READY"     # Engine not configured
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"   # Engine or output stream error
    TIMEOUT = "TIMEOUT"                     # Admission or inactivity timeout
    QUEUE_FULL = "QUEUE_FULL"               # Admission queue at capacity
    INVALID_INPUT = "INVALID_INPUT"         # Bad request data
    INTERNAL_ERROR = "INTERNAL_ERROR"       # Unexpected error


# Fixed client-facing messages. Engine error details are logged, never sent.
SYNTHESIS_FAILED_MESSAGE = "Speech synthesis failed"
NO_TEXT_MESSAGE = "No text provided"


class TTSError(Exception):
    """
    Base exception for streaming synthesis errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode class.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidInputError(TTSError):
    """Raised when request text is missing, blank or too long."""
    def __init__(self, message: str = NO_TEXT_MESSAGE, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class SynthesisError(TTSError):
    """Raised when the engine reports a failure or its output cannot be read."""
    def __init__(self, message: str = SYNTHESIS_FAILED_MESSAGE, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class TimeoutError(TTSError):
    """Raised when a stream waits too long for a slot or for audio."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.TIMEOUT, details)


class QueueFullError(TTSError):
    """Raised when the admission queue cannot accept more streams."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.QUEUE_FULL, details)


class EngineNotReadyError(TTSError):
    """Raised when the synthesis engine cannot be used (e.g. no credentials)."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.MODEL_NOT_READY, details)
