"""
Speech Stream Service.

Orchestrates one streaming synthesis request from validated input to the
last audio byte. It sits between the API layer (which owns the HTTP
response) and the synthesis layer (engine, bridge, arbiter).

Request Pipeline:
    prepare()  (synchronous, in the route handler)
        1. Validate text                      -> InvalidInputError (400)
        2. Resolve the voice
        3. Check the engine is configured     -> EngineNotReadyError (503)
        4. Record usage (failures only logged)
        5. Build SSML

    stream()   (inside the streaming response)
        6. Acquire a stream slot              -> QueueFullError (503) / TimeoutError (408)
        7. Run the bridge: engine job + pull loop + termination arbiter
        8. Record metrics and log the outcome

Everything in step 6 onward reports errors through the response itself;
nothing escapes to the server.

Usage:
    service = SpeechStreamService(settings)
    prepared = service.prepare(SynthesisRequest(text="Hello"), request_id="abc123")
    outcome = await service.stream(prepared, response)
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from tts_bridge.core.config import Settings
from tts_bridge.core.errors import EngineNotReadyError, QueueFullError, TimeoutError, TTSError
from tts_bridge.core.logging import debug, exception, get_logger, info, success, warn
from tts_bridge.core.metrics import metrics
from tts_bridge.services.validators import validate_text, validate_voice_name
from tts_bridge.synthesis.bridge import AudioResponse, StreamingSynthesisBridge, StreamOutcome
from tts_bridge.synthesis.concurrency import ConcurrencyController, get_controller
from tts_bridge.synthesis.engine import BaseSynthesisEngine, get_engine
from tts_bridge.synthesis.markup import build_ssml
from tts_bridge.synthesis.usage import UsageMeter, get_usage_meter
from tts_bridge.synthesis.voices import VoiceGender, VoiceResolver

_LOG = get_logger("tts-bridge.service")


@dataclass(frozen=True)
class SynthesisRequest:
    """
    One streaming synthesis request.

    Attributes:
        text: Text to speak (required, validated in prepare()).
        voice_gender: Gender used when no voice name resolves.
        voice_name: Short alias or locale-qualified voice id.
    """
    text: Optional[str]
    voice_gender: VoiceGender = VoiceGender.UNSPECIFIED
    voice_name: Optional[str] = None


@dataclass(frozen=True)
class PreparedStream:
    """Everything the stream needs, computed before the response starts."""
    request_id: str
    voice: str
    markup: str
    chars: int
    sample_rate: int
    media_type: str


class SpeechStreamService:
    """
    Streaming synthesis service.

    Both POST /v1/tts/stream and its legacy alias use this service through
    dependency injection (see api/dependencies.py).
    """

    def __init__(
        self,
        settings: Settings,
        engine: Optional[BaseSynthesisEngine] = None,
        usage: Optional[UsageMeter] = None,
    ):
        self._settings = settings
        self._config = settings.get_service_config()
        self._engine = engine or get_engine(settings)
        self._usage = usage or get_usage_meter()
        self._resolver = VoiceResolver.from_config(self._config.voices)

        # ─────────────────────────────────────────────────────────────────────
        # Streaming
        # ─────────────────────────────────────────────────────────────────────
        self._bridge = StreamingSynthesisBridge(
            self._engine,
            chunk_bytes=self._config.stream.chunk_bytes,
            inactivity_timeout_s=self._config.stream.inactivity_timeout_s,
        )

        # ─────────────────────────────────────────────────────────────────────
        # Concurrency Control
        # ─────────────────────────────────────────────────────────────────────
        self._controller: Optional[ConcurrencyController] = None
        if self._config.concurrency.enabled:
            self._controller = get_controller(
                max_concurrent=self._config.concurrency.max_concurrent,
                max_queue=self._config.concurrency.max_queue,
            )
        self._concurrency_timeout = self._config.concurrency.timeout_s

        self._text_preview_chars = self._config.logging.text_preview_chars

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def engine(self) -> BaseSynthesisEngine:
        return self._engine

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def resolver(self) -> VoiceResolver:
        return self._resolver

    @property
    def controller(self) -> Optional[ConcurrencyController]:
        return self._controller

    @property
    def usage(self) -> UsageMeter:
        return self._usage

    # =========================================================================
    # Request Pipeline
    # =========================================================================

    def resolve_voice(self, request: SynthesisRequest) -> str:
        return self._resolver.resolve(
            voice_name=validate_voice_name(request.voice_name),
            voice_gender=request.voice_gender,
        )

    def prepare(self, request: SynthesisRequest, request_id: str = "-") -> PreparedStream:
        """
        Validate and resolve a request without touching the engine.

        Raises:
            InvalidInputError: If the text is missing, blank or too long.
            EngineNotReadyError: If the engine has no credentials.
        """
        text = validate_text(request.text, max_length=self._config.markup.max_text_chars)
        voice = self.resolve_voice(request)

        if not self._engine.is_ready():
            raise EngineNotReadyError(
                "Speech engine is not configured",
                details={"engine": self._engine.name},
            )

        preview = text[:self._text_preview_chars] if self._text_preview_chars > 0 else ""
        info(_LOG, "request", chars=len(text), voice=voice, text_preview=preview)

        self._record_usage(len(text))

        markup = build_ssml(
            text,
            voice,
            language=self._config.markup.language,
            escape_text=self._config.markup.escape_text,
        )
        debug(_LOG, "markup", markup=markup)

        return PreparedStream(
            request_id=request_id,
            voice=voice,
            markup=markup,
            chars=len(text),
            sample_rate=self._config.engine.sample_rate,
            media_type=self._config.stream.media_type,
        )

    def _record_usage(self, chars: int) -> None:
        try:
            self._usage.record_audio_chars(chars)
        except Exception as e:
            warn(_LOG, "usage_record_failed", error=f"{type(e).__name__}: {e}")

    async def stream(self, prepared: PreparedStream, response: AudioResponse) -> Optional[StreamOutcome]:
        """
        Stream audio for a prepared request into the response.

        Returns:
            The stream outcome, or None if the stream was rejected before
            the engine started or failed unexpectedly.
        """
        metrics.stream_started()
        try:
            if self._controller is None:
                outcome = await self._bridge.stream(prepared.markup, prepared.voice, response)
            else:
                async with self._controller.acquire_async(timeout=self._concurrency_timeout):
                    outcome = await self._bridge.stream(prepared.markup, prepared.voice, response)
        except (QueueFullError, TimeoutError) as e:
            warn(_LOG, "stream_rejected", error=e.code, message=e.message)
            metrics.record_rejected(e.code)
            await response.fail(e)
            return None
        except Exception as e:
            exception(_LOG, "stream_unexpected_error", error=f"{type(e).__name__}: {e}")
            await self._fail_quietly(response, TTSError("Internal error"))
            return None
        finally:
            metrics.stream_finished()

        self._record_outcome(prepared, outcome)
        return outcome

    async def _fail_quietly(self, response: AudioResponse, error: TTSError) -> None:
        try:
            await response.fail(error)
        except OSError as e:
            debug(_LOG, "fail_after_disconnect", error=str(e))

    def _record_outcome(self, prepared: PreparedStream, outcome: StreamOutcome) -> None:
        metrics.record_stream(
            engine=self._engine.name,
            outcome=outcome.ended_by.value,
            duration=outcome.total_s,
            first_byte=outcome.first_byte_s,
            audio_bytes=outcome.bytes_streamed,
        )
        try:
            self._usage.record_audio_bytes(outcome.bytes_streamed, prepared.sample_rate)
        except Exception as e:
            warn(_LOG, "usage_record_failed", error=f"{type(e).__name__}: {e}")

        fields: Dict[str, Any] = {
            "voice": prepared.voice,
            "bytes": outcome.bytes_streamed,
            "chunks": outcome.chunks,
            "ended_by": outcome.ended_by.value,
        }
        if outcome.first_byte_s is not None:
            fields["first_byte_s"] = round(outcome.first_byte_s, 4)
        if outcome.bytes_dropped:
            fields["bytes_dropped"] = outcome.bytes_dropped

        if outcome.ok:
            success(_LOG, "stream_done", seconds=round(outcome.total_s, 4), **fields)
        else:
            warn(_LOG, "stream_ended", seconds=round(outcome.total_s, 4), error=outcome.error, **fields)

    # =========================================================================
    # Status
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """
        Health and status information.

        Returns a dictionary with:
            - Engine info (name, configured, output format, sample rate)
            - Voice table
            - Stream settings
            - Concurrency stats (if enabled)
        """
        engine_cfg = self._config.engine
        result: Dict[str, Any] = {
            "ok": True,
            "engine": self._engine.name,
            "configured": bool(self._engine.is_ready()),
            "output_format": engine_cfg.output_format,
            "sample_rate": engine_cfg.sample_rate,
            "voices": {
                "male_default": self._resolver.male_default,
                "female_default": self._resolver.female_default,
                "aliases": self._resolver.aliases,
            },
            "stream": {
                "chunk_bytes": self._config.stream.chunk_bytes,
                "inactivity_timeout_s": self._config.stream.inactivity_timeout_s,
                "media_type": self._config.stream.media_type,
            },
        }

        if self._controller is not None:
            result["concurrency"] = {"enabled": True, **self._controller.stats().to_dict()}
        else:
            result["concurrency"] = {"enabled": False}

        return result

    def get_stats(self) -> Dict[str, Any]:
        return self._usage.snapshot().to_dict()

    def reset_stats(self) -> None:
        self._usage.reset()
        info(_LOG, "stats_reset")


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[SpeechStreamService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> SpeechStreamService:
    """
    Get or create the global SpeechStreamService instance.

    Thread-safe lazy singleton.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = SpeechStreamService(settings)
    return _service


def reset_service() -> None:
    """Reset the global service instance (for testing)."""
    global _service
    with _service_lock:
        _service = None
