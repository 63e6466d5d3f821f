"""
Command-Line Interface for tts-bridge.

Streams one synthesis to a WAV file through the same service, bridge and
arbiter as the HTTP endpoint, or starts the HTTP server.

Usage Examples:
    # Synthesize to a file
    tts-bridge --text "Hello there" --out hello.wav

    # Positional text (same as above)
    tts-bridge "Hello there" --out hello.wav

    # Pick a voice
    tts-bridge "Hello" --voice-name FableNeural
    tts-bridge "Hello" --gender male

    # Dry-run mode (no engine; shows the resolved voice and SSML)
    tts-bridge --text "Test" --dry-run --json

    # Run the HTTP server
    tts-bridge --serve --host 0.0.0.0 --port 8000

Environment Variables:
    AZURE_SPEECH_KEY / AZURE_SPEECH_REGION: Engine credentials
    TTS_BRIDGE_SETTINGS: Settings file (default config/settings.yaml)
    TTS_BRIDGE_LOG_LEVEL: Log level (1-4)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import wave
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from tts_bridge.core.config import load_settings
from tts_bridge.core.errors import TTSError
from tts_bridge.core.logging import configure_logging, fail, get_logger, info, set_request_id


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-bridge CLI (streaming synth)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--out", default="out.wav", help="Output WAV path")

    parser.add_argument("--voice-name", help="Voice alias or locale-qualified voice id")
    parser.add_argument("--gender", choices=["male", "female"], help="Voice gender fallback")
    parser.add_argument("--settings", help="Settings YAML path")

    parser.add_argument("--dry-run", action="store_true",
                        help="Resolve voice and build SSML without synthesis")
    parser.add_argument("--json", action="store_true",
                        help="Print JSON summary")

    parser.add_argument("--serve", action="store_true", help="Run the HTTP server")
    parser.add_argument("--host", default="127.0.0.1", help="Server host (with --serve)")
    parser.add_argument("--port", type=int, default=8000, help="Server port (with --serve)")

    return parser.parse_args(argv)


class WaveFileResponse:
    """
    Writes streamed PCM into a WAV container.

    The WAV header is written by the wave module when the file is closed,
    once the total frame count is known.
    """

    def __init__(self, path: Path, sample_rate: int, sample_width: int = 2):
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.error: Optional[TTSError] = None
        self._bytes_written = 0
        self._wav = wave.open(str(path), "wb")
        self._wav.setnchannels(1)
        self._wav.setsampwidth(sample_width)
        self._wav.setframerate(sample_rate)
        self._closed = False

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    async def write(self, chunk: bytes) -> None:
        self._wav.writeframes(chunk)
        self._bytes_written += len(chunk)

    async def end(self) -> None:
        self._close()

    async def fail(self, error: TTSError) -> None:
        self.error = error
        self._close()

    def _close(self) -> None:
        if not self._closed:
            self._closed = True
            self._wav.close()


def _emit(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for synthesis errors, 2 for bad input).
    """
    args = _parse_args(argv)

    if args.serve:
        import uvicorn
        uvicorn.run("tts_bridge.main:app", host=args.host, port=args.port)
        return 0

    configure_logging()
    log = get_logger("tts-bridge.cli")
    rid = str(uuid4())[:12]
    set_request_id(rid)

    text = args.text or args.text_pos
    if not text:
        raise SystemExit("Provide --text or a positional text.")

    settings = load_settings(args.settings, required=bool(args.settings))
    config = settings.get_service_config()

    from tts_bridge.services.stream_service import SynthesisRequest
    from tts_bridge.synthesis.markup import build_ssml
    from tts_bridge.synthesis.voices import VoiceGender, VoiceResolver

    request = SynthesisRequest(
        text=text,
        voice_gender=VoiceGender.parse(args.gender),
        voice_name=args.voice_name,
    )

    if args.dry_run:
        voice = VoiceResolver.from_config(config.voices).resolve(
            voice_name=request.voice_name,
            voice_gender=request.voice_gender,
        )
        try:
            markup = build_ssml(
                text,
                voice,
                language=config.markup.language,
                escape_text=config.markup.escape_text,
            )
        except TTSError as e:
            _emit({"ok": False, "dry_run": True, **e.to_dict()}, args.json)
            return 2
        payload = {
            "ok": True,
            "dry_run": True,
            "voice": voice,
            "chars": len(text),
            "output_format": config.engine.output_format,
            "sample_rate": config.engine.sample_rate,
            "markup": markup,
        }
        info(log, "dry_run", voice=voice, chars=len(text))
        _emit(payload, args.json)
        print("DRY_RUN_OK")
        return 0

    from tts_bridge.services.stream_service import SpeechStreamService

    service = SpeechStreamService(settings)
    try:
        prepared = service.prepare(request, request_id=rid)
    except TTSError as e:
        _emit(e.to_dict(), args.json)
        return 2

    out = WaveFileResponse(Path(args.out), prepared.sample_rate)
    info(log, "synth_start", chars=prepared.chars, voice=prepared.voice, out=str(out.path))
    outcome = asyncio.run(service.stream(prepared, out))

    if out.error is not None:
        fail(log, "synth_failed", error=out.error.code, bytes=out.bytes_written)
        _emit({**out.error.to_dict(), "out": str(out.path)}, args.json)
        return 1

    payload = {
        "ok": True,
        "out": str(out.path),
        "voice": prepared.voice,
        "bytes": out.bytes_written,
        "sample_rate": prepared.sample_rate,
        "ended_by": outcome.ended_by.value if outcome else None,
    }
    _emit(payload, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
