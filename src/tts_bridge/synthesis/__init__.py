"""
Streaming Synthesis.

    voices.py       - Voice name / gender -> locale-qualified voice id
    markup.py       - SSML document builder
    engine.py       - Engine contract, job handle and factory
    engines/        - Vendor engines (Azure Speech)
    arbiter.py      - Exactly-once stream termination
    bridge.py       - Pull loop racing the engine's failure callback
    concurrency.py  - Stream admission control
    usage.py        - Usage counters
"""
from tts_bridge.synthesis.arbiter import TerminationArbiter, Terminator
from tts_bridge.synthesis.bridge import AudioResponse, StreamingSynthesisBridge, StreamOutcome
from tts_bridge.synthesis.markup import build_ssml
from tts_bridge.synthesis.voices import VoiceGender, VoiceResolver

__all__ = [
    "AudioResponse",
    "StreamingSynthesisBridge",
    "StreamOutcome",
    "TerminationArbiter",
    "Terminator",
    "VoiceGender",
    "VoiceResolver",
    "build_ssml",
]
