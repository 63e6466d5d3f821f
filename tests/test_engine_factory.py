"""Tests for the engine factory, job handle and Azure engine wiring."""
from __future__ import annotations

import pytest

from tts_bridge.core.config import Settings
from tts_bridge.core.errors import EngineNotReadyError


class TestSynthesisJob:
    """Tests for SynthesisJob close/cancel semantics."""

    def test_close_idempotent(self):
        from tts_bridge.synthesis.engine import SynthesisJob

        released = []

        class Job(SynthesisJob):
            def _release(self):
                released.append(True)

        job = Job(sink=None)
        job.close()
        job.close()
        assert job.closed is True
        assert released == [True]

    def test_cancel_stops_then_closes(self):
        from tts_bridge.synthesis.engine import SynthesisJob

        calls = []

        class Job(SynthesisJob):
            def _stop(self):
                calls.append("stop")

            def _release(self):
                calls.append("release")

        job = Job(sink=None)
        job.cancel()
        job.cancel()
        assert calls == ["stop", "release"]
        assert job.cancelled is True

    def test_cancel_after_close_is_noop(self):
        from tts_bridge.synthesis.engine import SynthesisJob

        calls = []

        class Job(SynthesisJob):
            def _stop(self):
                calls.append("stop")

        job = Job(sink=None)
        job.close()
        job.cancel()
        assert calls == []
        assert job.cancelled is False

    def test_stop_after_close(self):
        """stop() still reaches the engine once the job is released."""
        from tts_bridge.synthesis.engine import SynthesisJob

        calls = []

        class Job(SynthesisJob):
            def _stop(self):
                calls.append("stop")

        job = Job(sink=None)
        job.close()
        job.stop()
        job.stop()
        assert calls == ["stop"]
        assert job.cancelled is False

    def test_cancel_after_stop_does_not_stop_twice(self):
        from tts_bridge.synthesis.engine import SynthesisJob

        calls = []

        class Job(SynthesisJob):
            def _stop(self):
                calls.append("stop")

            def _release(self):
                calls.append("release")

        job = Job(sink=None)
        job.stop()
        job.cancel()
        assert calls == ["stop", "release"]
        assert job.cancelled is True


class TestEngineFactory:
    """Tests for get_engine()."""

    def test_unknown_engine(self):
        from tts_bridge.synthesis.engine import get_engine

        with pytest.raises(ValueError, match="Unknown engine type"):
            get_engine(Settings(raw={"engine": {"type": "nope"}}))

    def test_azure_singleton(self):
        from tts_bridge.synthesis.engine import get_engine
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine

        settings = Settings(raw={"engine": {"type": "azure"}})
        engine = get_engine(settings)
        assert isinstance(engine, AzureSpeechEngine)
        assert get_engine(settings) is engine

    def test_base_engine_abstract(self):
        from tts_bridge.synthesis.engine import BaseSynthesisEngine

        engine = BaseSynthesisEngine(Settings(raw={}))
        assert engine.sample_rate == 16000
        with pytest.raises(NotImplementedError):
            engine.is_ready()


class TestAzureEngine:
    """Tests for AzureSpeechEngine that do not reach the service."""

    def test_not_ready_without_key(self):
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine

        engine = AzureSpeechEngine(Settings(raw={}))
        assert engine.is_ready() is False

        with pytest.raises(EngineNotReadyError):
            engine.start("<speak/>", "en-US-JennyNeural", lambda job: None, lambda job, detail: None)

    def test_ready_with_key_and_region(self):
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine

        engine = AzureSpeechEngine(Settings(raw={"engine": {"key": "k", "region": "eastus"}}))
        assert engine.is_ready() is True
        assert engine.name == "azure"

    def test_ready_with_endpoint(self):
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine

        engine = AzureSpeechEngine(Settings(raw={"engine": {
            "key": "k",
            "region": "",
            "endpoint": "https://example.invalid/tts",
        }}))
        assert engine.is_ready() is True

    def test_lazy_engine_export(self):
        from tts_bridge.synthesis import engines
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine

        assert engines.AzureSpeechEngine is AzureSpeechEngine
        with pytest.raises(AttributeError):
            engines.NoSuchEngine


class TestPullStreamSink:
    """Tests for the pull stream adapter."""

    def test_trims_to_filled(self):
        from tts_bridge.synthesis.engines.azure_engine import PullStreamSink

        class FakeStream:
            def __init__(self, sizes):
                self.sizes = list(sizes)
                self.requested = []

            def read(self, buffer):
                self.requested.append(len(buffer))
                return self.sizes.pop(0)

        stream = FakeStream([4096, 100, 0])
        sink = PullStreamSink(stream)

        assert len(sink.pull(4096)) == 4096
        assert len(sink.pull(4096)) == 100
        assert sink.pull(4096) == b""
        assert stream.requested == [4096, 4096, 4096]


# ─────────────────────────────────────────────────────────────────────────────
# Recording stand-in for the Speech SDK surface the engine touches
# ─────────────────────────────────────────────────────────────────────────────

class _Signal:
    def __init__(self):
        self.handlers = []

    def connect(self, handler):
        self.handlers.append(handler)

    def fire(self, evt):
        for handler in self.handlers:
            handler(evt)


class _SpeechConfig:
    def __init__(self, subscription=None, region=None, endpoint=None):
        self.subscription = subscription
        self.region = region
        self.endpoint = endpoint
        self.speech_synthesis_voice_name = None
        self.output_format = None

    def set_speech_synthesis_output_format(self, output_format):
        self.output_format = output_format


class _PullStream:
    def read(self, buffer):
        return 0


class _AudioOutputConfig:
    def __init__(self, stream=None):
        self.stream = stream


class _Synthesizer:
    def __init__(self, speech_config=None, audio_config=None):
        self.speech_config = speech_config
        self.audio_config = audio_config
        self.synthesis_completed = _Signal()
        self.synthesis_canceled = _Signal()
        self.spoken = []
        self.stop_calls = 0

    def speak_ssml_async(self, ssml):
        self.spoken.append(ssml)

    def stop_speaking_async(self):
        self.stop_calls += 1


@pytest.fixture
def fake_sdk(monkeypatch):
    from types import SimpleNamespace

    from tts_bridge.synthesis.engines import azure_engine

    synthesizers = []

    def make_synthesizer(**kwargs):
        synthesizer = _Synthesizer(**kwargs)
        synthesizers.append(synthesizer)
        return synthesizer

    sdk = SimpleNamespace(
        SpeechConfig=_SpeechConfig,
        SpeechSynthesizer=make_synthesizer,
        SpeechSynthesisOutputFormat=SimpleNamespace(
            Raw16Khz16BitMonoPcm="fmt-raw-16k",
            Raw24Khz16BitMonoPcm="fmt-raw-24k",
        ),
        audio=SimpleNamespace(
            PullAudioOutputStream=_PullStream,
            AudioOutputConfig=_AudioOutputConfig,
        ),
        synthesizers=synthesizers,
    )
    monkeypatch.setattr(azure_engine, "speechsdk", sdk)
    return sdk


def _canceled_event(reason=None, error_details=None):
    from types import SimpleNamespace

    details = None
    if reason is not None:
        details = SimpleNamespace(reason=reason, error_details=error_details)
    return SimpleNamespace(result=SimpleNamespace(cancellation_details=details))


class TestAzureEngineWiring:
    """Tests for AzureSpeechEngine.start() against a recording SDK."""

    MARKUP = '<speak version="1.0" xml:lang="en-US"><voice name="en-US-AndrewNeural">Hi</voice></speak>'

    def _start(self, engine_section=None, callbacks=None):
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine

        section = {"key": "test-key", "region": "eastus"}
        section.update(engine_section or {})
        engine = AzureSpeechEngine(Settings(raw={"engine": section}))
        calls = callbacks if callbacks is not None else []
        job = engine.start(
            self.MARKUP,
            "en-US-AndrewNeural",
            lambda handle: calls.append(("success", handle)),
            lambda handle, detail: calls.append(("failure", handle, detail)),
        )
        return job, calls

    def test_speech_config(self, fake_sdk):
        self._start()

        config = fake_sdk.synthesizers[0].speech_config
        assert config.subscription == "test-key"
        assert config.region == "eastus"
        assert config.endpoint is None
        assert config.speech_synthesis_voice_name == "en-US-AndrewNeural"
        assert config.output_format == "fmt-raw-16k"

    def test_endpoint_and_output_format(self, fake_sdk):
        self._start({
            "region": "",
            "endpoint": "https://example.invalid/tts",
            "output_format": "Raw24Khz16BitMonoPcm",
        })

        config = fake_sdk.synthesizers[0].speech_config
        assert config.endpoint == "https://example.invalid/tts"
        assert config.region is None
        assert config.output_format == "fmt-raw-24k"

    def test_pull_stream_bound_and_markup_spoken(self, fake_sdk):
        from tts_bridge.synthesis.engines.azure_engine import PullStreamSink

        job, _ = self._start()

        synthesizer = fake_sdk.synthesizers[0]
        stream = synthesizer.audio_config.stream
        assert isinstance(stream, _PullStream)
        assert isinstance(job.sink, PullStreamSink)
        assert job.sink._stream is stream
        assert synthesizer.spoken == [self.MARKUP]
        assert job.sink.pull(1024) == b""

    def test_completed_calls_on_success(self, fake_sdk):
        calls = []
        job, _ = self._start(callbacks=calls)

        fake_sdk.synthesizers[0].synthesis_completed.fire(object())

        assert calls == [("success", job)]

    def test_success_callback_can_close_job(self, fake_sdk):
        """The bridge closes the job from inside the SDK's completion event."""
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine

        calls = []

        def on_success(handle):
            handle.close()
            calls.append("closed")

        engine = AzureSpeechEngine(Settings(raw={"engine": {"key": "k", "region": "eastus"}}))
        job = engine.start(
            self.MARKUP,
            "en-US-AndrewNeural",
            on_success,
            lambda handle, detail: calls.append(detail),
        )

        fake_sdk.synthesizers[0].synthesis_completed.fire(object())

        assert calls == ["closed"]
        assert job.closed is True
        assert job.cancelled is False

    def test_canceled_calls_on_failure_with_detail(self, fake_sdk):
        calls = []
        job, _ = self._start(callbacks=calls)

        fake_sdk.synthesizers[0].synthesis_canceled.fire(
            _canceled_event("CancellationReason.Error", "bad key")
        )

        assert calls == [("failure", job, "CancellationReason.Error: bad key")]

    def test_canceled_without_error_details(self, fake_sdk):
        calls = []
        self._start(callbacks=calls)

        fake_sdk.synthesizers[0].synthesis_canceled.fire(_canceled_event("CancellationReason.Error"))

        assert calls[0][2] == "CancellationReason.Error"

    def test_canceled_without_cancellation_details(self, fake_sdk):
        calls = []
        self._start(callbacks=calls)

        fake_sdk.synthesizers[0].synthesis_canceled.fire(_canceled_event())

        assert calls[0][2] == "canceled"

    def test_cancel_stops_speaking(self, fake_sdk):
        job, _ = self._start()

        job.cancel()
        job.cancel()

        assert fake_sdk.synthesizers[0].stop_calls == 1
        assert job.cancelled is True
        assert job.closed is True

    def test_stop_after_close_stops_speaking(self, fake_sdk):
        job, _ = self._start()

        job.close()
        job.stop()

        assert fake_sdk.synthesizers[0].stop_calls == 1
