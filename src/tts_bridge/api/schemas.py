"""
API Request/Response Schemas.

Models:
    StreamRequest: Input schema for POST /v1/tts/stream
    UsageStats: Response schema for GET /v1/stats

Example Request:
    {
        "text": "Hello there",
        "voiceGender": "male",
        "voiceName": "AndrewNeural"
    }

Both camelCase (voiceGender, voiceName) and snake_case (voice_gender,
voice_name) field names are accepted.

Text is deliberately optional here: a missing or blank text must produce
the service's own 400 INVALID_INPUT error rather than a 422 validation
error, so emptiness is checked in services/validators.py. Non-string
values are read as "not provided" for the same reason.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StreamRequest(BaseModel):
    """
    Streaming synthesis request.

    Attributes:
        text: Text to synthesize.
        voice_gender: "male" or "female". Anything else means the
            female default voice.
        voice_name: Short alias (JennyNeural, AndrewNeural, FableNeural)
            or a locale-qualified voice id (en-US-AriaNeural). Takes
            precedence over voice_gender when it resolves.
    """
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = Field(
        default=None,
        description="Text to synthesize",
    )
    voice_gender: Optional[str] = Field(
        default=None,
        alias="voiceGender",
        description="male | female",
    )
    voice_name: Optional[str] = Field(
        default=None,
        alias="voiceName",
        description="Voice alias or locale-qualified voice id",
    )

    @field_validator("text", "voice_gender", "voice_name", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


class UsageStats(BaseModel):
    """Usage counters since start or the last reset."""
    audio_character_count: int = 0
    audio_seconds: float = 0.0
    requests: int = 0
