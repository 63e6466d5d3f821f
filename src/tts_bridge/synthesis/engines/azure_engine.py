"""
Azure Cognitive Services Speech Engine.

Synthesizes SSML into a PullAudioOutputStream configured for raw PCM
(Raw16Khz16BitMonoPcm by default), so audio can be forwarded to the
client while the service is still producing it.

SDK events mapped to the engine contract:
    synthesis_completed -> on_success(job)
    synthesis_canceled  -> on_failure(job, "<reason>: <error details>")

Both events arrive on SDK threads.

Credentials:
    AZURE_SPEECH_KEY + AZURE_SPEECH_REGION, or AZURE_SPEECH_ENDPOINT,
    or the engine section of settings.yaml.
"""
from __future__ import annotations

import azure.cognitiveservices.speech as speechsdk

from tts_bridge.core.errors import EngineNotReadyError
from tts_bridge.core.logging import debug, verbose
from tts_bridge.synthesis.engine import (
    BaseSynthesisEngine,
    FailureCallback,
    SuccessCallback,
    SynthesisJob,
)


class PullStreamSink:
    """Adapts PullAudioOutputStream.read(buffer) -> int to pull() -> bytes."""

    def __init__(self, stream: speechsdk.audio.PullAudioOutputStream):
        self._stream = stream

    def pull(self, max_bytes: int) -> bytes:
        buffer = bytes(max_bytes)
        filled = self._stream.read(buffer)
        return buffer[:filled]


class AzureSynthesisJob(SynthesisJob):
    """Holds the synthesizer until the job is dropped, so stop() works after close()."""

    def __init__(
        self,
        synthesizer: speechsdk.SpeechSynthesizer,
        stream: speechsdk.audio.PullAudioOutputStream,
    ):
        super().__init__(PullStreamSink(stream))
        self._synthesizer = synthesizer

    def _stop(self) -> None:
        self._synthesizer.stop_speaking_async()


def _describe_cancellation(evt: speechsdk.SpeechSynthesisEventArgs) -> str:
    details = getattr(evt.result, "cancellation_details", None)
    if details is None:
        return "canceled"
    error_details = getattr(details, "error_details", "") or ""
    return f"{details.reason}: {error_details}".rstrip(": ")


class AzureSpeechEngine(BaseSynthesisEngine):
    """Streaming engine backed by the Azure Speech SDK."""
    name = "azure"

    def is_ready(self) -> bool:
        engine = self.config.engine
        return bool(engine.key and (engine.region or engine.endpoint))

    def _speech_config(self, voice: str) -> speechsdk.SpeechConfig:
        engine = self.config.engine
        if engine.endpoint:
            speech_config = speechsdk.SpeechConfig(subscription=engine.key, endpoint=engine.endpoint)
        else:
            speech_config = speechsdk.SpeechConfig(subscription=engine.key, region=engine.region)

        speech_config.speech_synthesis_voice_name = voice
        speech_config.set_speech_synthesis_output_format(
            getattr(speechsdk.SpeechSynthesisOutputFormat, engine.output_format)
        )
        return speech_config

    def start(
        self,
        markup: str,
        voice: str,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> SynthesisJob:
        if not self.is_ready():
            raise EngineNotReadyError(
                "Speech engine is not configured",
                details={"engine": self.name},
            )

        pull_stream = speechsdk.audio.PullAudioOutputStream()
        audio_config = speechsdk.audio.AudioOutputConfig(stream=pull_stream)
        synthesizer = speechsdk.SpeechSynthesizer(
            speech_config=self._speech_config(voice),
            audio_config=audio_config,
        )
        job = AzureSynthesisJob(synthesizer, pull_stream)

        def completed(evt: speechsdk.SpeechSynthesisEventArgs) -> None:
            debug(self.logger, "azure_synthesis_completed")
            on_success(job)

        def canceled(evt: speechsdk.SpeechSynthesisEventArgs) -> None:
            on_failure(job, _describe_cancellation(evt))

        synthesizer.synthesis_completed.connect(completed)
        synthesizer.synthesis_canceled.connect(canceled)

        verbose(self.logger, "azure_synthesis_start", voice=voice, format=self.output_format)
        synthesizer.speak_ssml_async(markup)
        return job
