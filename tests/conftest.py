"""
Shared fixtures: a scripted synthesis engine and a recording response.

The fake engine never talks to a real service. Each job's sink returns a
fixed list of chunks and can fire the engine's terminal callbacks at a
chosen point:

    fail_on_start=True        failure callback fires inside start(), before
                              the first pull
    fail_at_pull=N            failure callback fires inside pull N (0-based),
                              before that pull returns
    raise_at_pull=N           pull N raises
    block_at_pull=N           pull N blocks until the job is stopped
    succeed_on_exhaust=True   success callback fires on the pull returning b""
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from tts_bridge.core.config import Settings
from tts_bridge.core.errors import TTSError
from tts_bridge.synthesis.engine import BaseSynthesisEngine, SynthesisJob


@dataclass
class Script:
    chunks: List[bytes] = field(default_factory=list)
    fail_on_start: bool = False
    fail_at_pull: Optional[int] = None
    raise_at_pull: Optional[int] = None
    block_at_pull: Optional[int] = None
    succeed_on_exhaust: bool = True
    detail: str = "scripted failure"


class ScriptedSink:
    def __init__(self, script: Script):
        self.script = script
        self.job: Optional["FakeJob"] = None
        self.pull_sizes: List[int] = []
        self.unblocked = threading.Event()

    def pull(self, max_bytes: int) -> bytes:
        index = len(self.pull_sizes)
        self.pull_sizes.append(max_bytes)

        if self.script.block_at_pull == index:
            self.unblocked.wait(timeout=5.0)
            return b""
        if self.script.raise_at_pull == index:
            raise IOError("sink read failed")
        if self.script.fail_at_pull == index:
            self.job.fail(self.script.detail)

        if index < len(self.script.chunks):
            return self.script.chunks[index]

        if self.script.succeed_on_exhaust:
            self.job.succeed()
        return b""


class FakeJob(SynthesisJob):
    def __init__(self, sink: ScriptedSink, on_success, on_failure):
        super().__init__(sink)
        self._on_success = on_success
        self._on_failure = on_failure
        self.stop_calls = 0
        self.release_calls = 0

    def succeed(self) -> None:
        self._on_success(self)

    def fail(self, detail: str = "scripted failure") -> None:
        self._on_failure(self, detail)

    def _stop(self) -> None:
        self.stop_calls += 1
        self.sink.unblocked.set()

    def _release(self) -> None:
        self.release_calls += 1


@dataclass
class StartCall:
    markup: str
    voice: str


class FakeEngine(BaseSynthesisEngine):
    """Engine whose jobs follow a Script."""
    name = "fake"

    def __init__(self, script: Optional[Script] = None, settings: Optional[Settings] = None, ready: bool = True):
        super().__init__(settings or Settings(raw={}))
        self.script = script or Script()
        self.ready = ready
        self.start_calls: List[StartCall] = []
        self.jobs: List[FakeJob] = []

    @property
    def last_job(self) -> FakeJob:
        return self.jobs[-1]

    def is_ready(self) -> bool:
        return self.ready

    def start(self, markup, voice, on_success, on_failure) -> SynthesisJob:
        self.start_calls.append(StartCall(markup=markup, voice=voice))
        sink = ScriptedSink(self.script)
        job = FakeJob(sink, on_success, on_failure)
        sink.job = job
        self.jobs.append(job)

        if self.script.fail_on_start:
            job.fail(self.script.detail)
        return job


class RecordingResponse:
    """
    AudioResponse that records every call.

    fail() behaves like the HTTP response: a JSON error when nothing was
    written, otherwise just the end of the body.
    """

    def __init__(self):
        self.events: List[tuple] = []
        self.body = bytearray()
        self.finalized = 0
        self.writes_after_final = 0
        self.error: Optional[Dict[str, Any]] = None

    @property
    def bytes_written(self) -> int:
        return len(self.body)

    async def write(self, chunk: bytes) -> None:
        if self.finalized:
            self.writes_after_final += 1
        self.events.append(("write", len(chunk)))
        self.body.extend(chunk)

    async def end(self) -> None:
        self.finalized += 1
        self.events.append(("end",))

    async def fail(self, error: TTSError) -> None:
        self.finalized += 1
        if self.body:
            self.events.append(("end",))
        else:
            self.error = error.to_dict()
            self.events.append(("error", error.code))


def make_settings(**sections: Dict[str, Any]) -> Settings:
    raw: Dict[str, Any] = {"engine": {"key": "test-key", "region": "eastus"}}
    raw.update(sections)
    return Settings(raw=raw)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture(autouse=True)
def _reset_singletons():
    from tts_bridge.services.stream_service import reset_service
    from tts_bridge.synthesis.concurrency import reset_controller
    from tts_bridge.synthesis.engine import reset_engine
    from tts_bridge.synthesis.usage import reset_usage_meter

    reset_controller()
    reset_service()
    reset_engine()
    reset_usage_meter()
    yield
    reset_controller()
    reset_service()
    reset_engine()
    reset_usage_meter()
