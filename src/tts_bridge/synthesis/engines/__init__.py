"""
Synthesis Engine Implementations.

Engine classes are imported lazily so that importing tts_bridge does not
load vendor SDKs until an engine is actually created.

Available Engines:
    - AzureSpeechEngine: Azure Cognitive Services Speech
"""
from __future__ import annotations

__all__ = ["AzureSpeechEngine"]


def __getattr__(name: str):
    if name == "AzureSpeechEngine":
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine
        return AzureSpeechEngine
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
