"""
Input Validation for the Streaming Endpoint.

Validation runs before any engine resource is allocated, so a bad
request costs nothing but the JSON error.

Validation Rules:
    - Text: Required, not whitespace-only, max markup.max_text_chars characters
    - Voice name: Optional; a name over 100 characters counts as not given

validate_text raises InvalidInputError (400 INVALID_INPUT). Voice names
never fail a request: anything unusable falls through to the gender
default in the voice resolver.
"""
from __future__ import annotations

from typing import Optional

from tts_bridge.core.errors import NO_TEXT_MESSAGE, InvalidInputError

MAX_VOICE_NAME_CHARS = 100


def validate_text(text: Optional[str], max_length: int = 4000) -> str:
    """
    Validate request text.

    The text is returned as given (not stripped); whitespace is only used
    to decide emptiness.

    Raises:
        InvalidInputError: If text is missing, blank or too long.
    """
    if text is None or not text.strip():
        raise InvalidInputError(NO_TEXT_MESSAGE)

    if len(text) > max_length:
        raise InvalidInputError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            details={"chars": len(text), "max_chars": max_length},
        )

    return text


def validate_voice_name(voice_name: Optional[str]) -> Optional[str]:
    """
    Validate an optional voice name.

    Empty and over-long names count as "not provided". Unknown names are
    allowed here; the voice resolver falls back to the gender default for
    them.
    """
    if voice_name is None:
        return None

    name = voice_name.strip()
    if not name:
        return None

    if len(name) > MAX_VOICE_NAME_CHARS:
        return None

    return name
