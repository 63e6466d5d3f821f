"""
Usage Metering.

Process-local counters of how much text was sent for synthesis and how
much audio came back. Callers treat metering as fire-and-forget: a
failure here is logged by the caller and never affects a stream.

Counters:
    audio_character_count  - characters of request text (recorded before the engine starts)
    audio_seconds          - seconds of PCM audio written to clients
    requests               - streams that reached the engine
"""
from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from tts_bridge.core.metrics import metrics


@dataclass
class UsageSnapshot:
    audio_character_count: int = 0
    audio_seconds: float = 0.0
    requests: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UsageMeter:
    """Thread-safe usage counters."""

    def __init__(self):
        self._lock = threading.Lock()
        self._usage = UsageSnapshot()

    def record_audio_chars(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        with self._lock:
            self._usage.audio_character_count += count
            self._usage.requests += 1
        metrics.record_chars(count)

    def record_audio_bytes(self, byte_count: int, sample_rate: int, sample_width: int = 2) -> None:
        """Convert streamed mono PCM bytes into seconds of audio."""
        if byte_count <= 0:
            return
        seconds = byte_count / float(sample_rate * sample_width)
        with self._lock:
            self._usage.audio_seconds += seconds

    def snapshot(self) -> UsageSnapshot:
        with self._lock:
            return UsageSnapshot(**asdict(self._usage))

    def reset(self) -> None:
        with self._lock:
            self._usage = UsageSnapshot()


_meter: Optional[UsageMeter] = None
_meter_lock = threading.Lock()


def get_usage_meter() -> UsageMeter:
    global _meter
    if _meter is None:
        with _meter_lock:
            if _meter is None:
                _meter = UsageMeter()
    return _meter


def reset_usage_meter() -> None:
    global _meter
    with _meter_lock:
        _meter = None
