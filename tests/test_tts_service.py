"""
Tests for SpeechStreamService.

The service is exercised directly with a scripted engine and a recording
response, without the HTTP layer.
"""
from __future__ import annotations

import asyncio

import pytest

from conftest import FakeEngine, RecordingResponse, Script, make_settings

from tts_bridge.core.errors import EngineNotReadyError, InvalidInputError
from tts_bridge.services.stream_service import SpeechStreamService, SynthesisRequest, get_service, reset_service
from tts_bridge.synthesis.arbiter import Terminator
from tts_bridge.synthesis.usage import UsageMeter
from tts_bridge.synthesis.voices import VoiceGender


def _service(script=None, settings=None, ready=True):
    settings = settings or make_settings()
    engine = FakeEngine(script or Script(chunks=[b"\x00\x01" * 8]), settings=settings, ready=ready)
    return SpeechStreamService(settings, engine=engine, usage=UsageMeter()), engine


class TestPrepare:
    """Tests for SpeechStreamService.prepare()."""

    def test_prepared_stream(self):
        service, engine = _service()

        prepared = service.prepare(
            SynthesisRequest(text="Hello", voice_gender=VoiceGender.MALE),
            request_id="rid-1",
        )

        assert prepared.request_id == "rid-1"
        assert prepared.voice == "en-US-AndrewNeural"
        assert prepared.chars == 5
        assert prepared.sample_rate == 16000
        assert prepared.media_type == "audio/wav"
        assert prepared.markup.startswith('<speak version="1.0" xml:lang="en-US">')
        assert engine.start_calls == []

    def test_usage_recorded_before_engine(self):
        service, engine = _service()

        service.prepare(SynthesisRequest(text="Hello there"))

        assert service.get_stats()["audio_character_count"] == 11
        assert service.get_stats()["requests"] == 1

    def test_blank_text(self):
        service, _ = _service()

        with pytest.raises(InvalidInputError):
            service.prepare(SynthesisRequest(text="  "))
        assert service.get_stats()["requests"] == 0

    def test_engine_not_ready(self):
        service, _ = _service(ready=False)

        with pytest.raises(EngineNotReadyError):
            service.prepare(SynthesisRequest(text="Hello"))

    def test_raw_markup_mode(self):
        service, _ = _service(settings=make_settings(markup={"escape_text": False}))

        prepared = service.prepare(SynthesisRequest(text='a<break time="1s"/>b'))

        assert '<break time="1s"/>' in prepared.markup

    def test_output_format_sample_rate(self):
        settings = make_settings(engine={"key": "k", "output_format": "Raw24Khz16BitMonoPcm"})
        service, _ = _service(settings=settings)

        assert service.prepare(SynthesisRequest(text="Hi")).sample_rate == 24000


class TestStream:
    """Tests for SpeechStreamService.stream()."""

    def test_stream_outcome(self):
        service, engine = _service(Script(chunks=[b"\x00" * 3200, b"\x00" * 3200]))
        response = RecordingResponse()

        prepared = service.prepare(SynthesisRequest(text="Hello"))
        outcome = asyncio.run(service.stream(prepared, response))

        assert outcome.ended_by is Terminator.SINK_EXHAUSTED
        assert response.bytes_written == 6400
        assert service.get_stats()["audio_seconds"] == pytest.approx(0.2)
        assert service.controller.active_count == 0

    def test_engine_failure_outcome(self):
        service, _ = _service(Script(fail_on_start=True))
        response = RecordingResponse()

        prepared = service.prepare(SynthesisRequest(text="Hello"))
        outcome = asyncio.run(service.stream(prepared, response))

        assert outcome.ended_by is Terminator.ENGINE_FAILURE
        assert response.error["error"] == "SYNTHESIS_FAILED"

    def test_without_concurrency(self):
        service, _ = _service(settings=make_settings(concurrency={"enabled": False}))
        assert service.controller is None

        prepared = service.prepare(SynthesisRequest(text="Hello"))
        outcome = asyncio.run(service.stream(prepared, RecordingResponse()))

        assert outcome.ok

    def test_rejected_stream(self):
        service, engine = _service(settings=make_settings(concurrency={"max_concurrent": 1, "max_queue": 0}))
        service.controller.try_acquire()
        response = RecordingResponse()

        prepared = service.prepare(SynthesisRequest(text="Hello"))
        outcome = asyncio.run(service.stream(prepared, response))

        assert outcome is None
        assert response.error["error"] == "QUEUE_FULL"
        assert engine.start_calls == []
        service.controller.release()

    def test_unexpected_error_answered(self):
        """An unexpected error inside the stream still finalizes the response."""
        service, _ = _service()
        prepared = service.prepare(SynthesisRequest(text="Hello"))

        async def explode(*args, **kwargs):
            raise RuntimeError("bug")

        service._bridge.stream = explode
        response = RecordingResponse()
        outcome = asyncio.run(service.stream(prepared, response))

        assert outcome is None
        assert response.error["error"] == "INTERNAL_ERROR"


class TestStatus:
    """Tests for health and stats."""

    def test_health_info(self):
        service, _ = _service()
        info = service.get_health_info()

        assert info["ok"] is True
        assert info["engine"] == "fake"
        assert info["voices"]["male_default"] == "en-US-AndrewNeural"
        assert info["concurrency"]["max_concurrent"] == 8

    def test_reset_stats(self):
        service, _ = _service()
        service.prepare(SynthesisRequest(text="Hello"))
        service.reset_stats()
        assert service.get_stats()["requests"] == 0


class TestServiceSingleton:
    """Tests for get_service()."""

    def test_singleton(self, monkeypatch):
        settings = make_settings()
        engine = FakeEngine(settings=settings)
        monkeypatch.setattr("tts_bridge.services.stream_service.get_engine", lambda s: engine)

        first = get_service(settings)
        assert get_service(settings) is first
        assert first.engine is engine

        reset_service()
        assert get_service(settings) is not first
