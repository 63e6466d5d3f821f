"""
Synthesis Engine Base Class and Factory.

This module provides:
    - OutputSink: Pull-style byte source exposed by a running job
    - SynthesisJob: Handle for one in-flight synthesis
    - BaseSynthesisEngine: Abstract base class for streaming engines
    - get_engine(): Factory function to create/get the engine instance

Engine Contract:
    start(markup, voice, on_success, on_failure) begins synthesis and
    returns immediately with a SynthesisJob. Audio is read from
    job.sink.pull(max_bytes) until it returns b"". Exactly one of the two
    callbacks fires, at most once, possibly on an engine-owned thread and
    possibly before start() has returned:

        on_success(job)           engine finished producing audio; the
                                  sink may still hold buffered bytes
        on_failure(job, detail)   engine failed; detail is for logs only

Engine Selection:
    The engine is selected via the TTS_BRIDGE_ENGINE environment variable
    or engine.type in settings. Supported engines:
        - azure: Azure Cognitive Services Speech (raw PCM over a pull stream)

Implementing a New Engine:
    1. Create engines/<name>_engine.py
    2. Inherit from BaseSynthesisEngine and SynthesisJob
    3. Implement is_ready() and start()
    4. Register in _create_engine()
"""
from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol

from tts_bridge.core.config import ServiceConfig, Settings
from tts_bridge.core.logging import get_logger


class OutputSink(Protocol):
    def pull(self, max_bytes: int) -> bytes:
        """Block until audio is available; b"" means the sink is exhausted."""
        ...


class SynthesisJob:
    """
    Handle for one synthesis owned by the engine.

    close() releases engine resources; stop() halts synthesis and wakes a
    blocked pull; cancel() does both. All three are idempotent and safe to
    call from any thread. Subclasses override _stop() and _release().
    """

    def __init__(self, sink: OutputSink):
        self.sink = sink
        self._lock = threading.Lock()
        self._closed = False
        self._cancelled = False
        self._stopped = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._release()

    def stop(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self._stop()

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled or self._closed:
                return
            self._cancelled = True
        self.stop()
        self.close()

    def _stop(self) -> None:
        pass

    def _release(self) -> None:
        pass


SuccessCallback = Callable[[SynthesisJob], None]
FailureCallback = Callable[[SynthesisJob, str], None]


class BaseSynthesisEngine:
    """
    Abstract base class for streaming synthesis engines.

    Attributes:
        name: Engine identifier (e.g., "azure").
        settings: Application settings.
        config: Validated service configuration.
        logger: Logger instance for this engine.
    """
    name: str = "base"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.config: ServiceConfig = settings.get_service_config()
        self.logger = get_logger(f"tts-bridge.engine.{self.name}")

    @property
    def output_format(self) -> str:
        return self.config.engine.output_format

    @property
    def sample_rate(self) -> int:
        return self.config.engine.sample_rate

    def is_ready(self) -> bool:
        """Whether start() can be called (credentials present, etc.)."""
        raise NotImplementedError

    def start(
        self,
        markup: str,
        voice: str,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> SynthesisJob:
        """
        Start synthesizing markup with the given voice.

        Raises:
            EngineNotReadyError: If the engine is not configured.
            NotImplementedError: If not overridden.
        """
        raise NotImplementedError


# =============================================================================
# Engine Factory (Singleton Pattern)
# =============================================================================

_ENGINE: Optional[BaseSynthesisEngine] = None
_ENGINE_TYPE: Optional[str] = None
_ENGINE_LOCK = threading.Lock()


def _create_engine(engine_type: str, settings: Settings) -> BaseSynthesisEngine:
    """
    Create an engine instance. SDK imports are deferred to here.

    Raises:
        ValueError: If engine_type is unknown.
    """
    if engine_type == "azure":
        from tts_bridge.synthesis.engines.azure_engine import AzureSpeechEngine
        return AzureSpeechEngine(settings)

    raise ValueError(f"Unknown engine type: {engine_type}")


def get_engine(settings: Settings) -> BaseSynthesisEngine:
    """
    Get or create the global engine instance.

    A new engine replaces the current one if the configured type changed.
    """
    global _ENGINE
    global _ENGINE_TYPE

    engine_type = settings.get_service_config().engine.type
    with _ENGINE_LOCK:
        if _ENGINE is None or _ENGINE_TYPE != engine_type:
            _ENGINE = _create_engine(engine_type, settings)
            _ENGINE_TYPE = engine_type
        return _ENGINE


def reset_engine() -> None:
    """Drop the global engine instance (used by tests)."""
    global _ENGINE
    global _ENGINE_TYPE
    with _ENGINE_LOCK:
        _ENGINE = None
        _ENGINE_TYPE = None
