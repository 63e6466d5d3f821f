"""
Streaming Synthesis Bridge.

Drives one synthesis job and forwards its audio to an HTTP response as
the bytes become available.

Two activities run per stream:

    Pull loop (this coroutine)
        pull(chunk_bytes) on a worker thread, write each non-empty chunk,
        stop on b"". Sink exhaustion is the only normal end of the body;
        the engine's success callback is not waited for.

    Failure delivery
        The engine's failure callback may fire on an SDK thread. It is
        handed to the event loop with call_soon_threadsafe and races the
        pull loop through the TerminationArbiter.

Whoever wins the arbiter finalizes the response:

    sink exhausted   -> end the body
    engine failure   -> JSON 500 if nothing was written yet, else end the body
    sink read error  -> same as engine failure, job cancelled
    timeout          -> same as engine failure with TIMEOUT, job cancelled
    client gone      -> nothing to send, job cancelled

Losers touch nothing. Every write and finalization goes through one
asyncio.Lock and re-checks the arbiter under it, so no byte can follow
finalization.

Both terminal callbacks release the job handle whether or not they won.
"""
from __future__ import annotations

import asyncio
import contextvars
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Set

from tts_bridge.core.errors import SynthesisError, TimeoutError, TTSError
from tts_bridge.core.logging import debug, get_logger, verbose, warn
from tts_bridge.core.metrics import metrics
from tts_bridge.synthesis.arbiter import TerminationArbiter, Terminator
from tts_bridge.synthesis.engine import BaseSynthesisEngine, SynthesisJob

_LOG = get_logger("tts-bridge.bridge")


class AudioResponse(Protocol):
    """The response side of a stream."""

    @property
    def bytes_written(self) -> int: ...

    async def write(self, chunk: bytes) -> None: ...

    async def end(self) -> None: ...

    async def fail(self, error: TTSError) -> None:
        """Send error JSON if no bytes were written, otherwise end the body."""
        ...


@dataclass
class StreamOutcome:
    """Summary of one finished stream."""
    ended_by: Terminator
    bytes_streamed: int
    chunks: int
    bytes_dropped: int
    first_byte_s: Optional[float]
    total_s: float
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.ended_by is Terminator.SINK_EXHAUSTED


class _GuardedResponse:
    """Serializes writes and finalization, skipping writes once ended."""

    def __init__(self, response: AudioResponse, arbiter: TerminationArbiter):
        self._response = response
        self._arbiter = arbiter
        self._lock = asyncio.Lock()
        self._started = time.perf_counter()
        self.chunks = 0
        self.bytes_dropped = 0
        self.first_byte_s: Optional[float] = None

    @property
    def bytes_written(self) -> int:
        return self._response.bytes_written

    async def write(self, chunk: bytes) -> bool:
        async with self._lock:
            if self._arbiter.ended:
                self.bytes_dropped += len(chunk)
                return False
            await self._response.write(chunk)
            if self.first_byte_s is None:
                self.first_byte_s = time.perf_counter() - self._started
            self.chunks += 1
            return True

    async def end(self) -> None:
        async with self._lock:
            await self._response.end()

    async def fail(self, error: TTSError) -> None:
        async with self._lock:
            await self._response.fail(error)


class StreamingSynthesisBridge:
    """
    Streams one engine job into one response.

    Args:
        engine: Engine used to start jobs.
        chunk_bytes: Maximum bytes requested per pull.
        inactivity_timeout_s: Maximum seconds a single pull may block;
            0 or None disables the timeout.
    """

    def __init__(
        self,
        engine: BaseSynthesisEngine,
        chunk_bytes: int = 4096,
        inactivity_timeout_s: Optional[float] = 30.0,
    ):
        if chunk_bytes <= 0:
            raise ValueError(f"chunk_bytes must be positive, got {chunk_bytes}")
        self.engine = engine
        self.chunk_bytes = chunk_bytes
        self.inactivity_timeout_s = inactivity_timeout_s or None

    async def stream(self, markup: str, voice: str, response: AudioResponse) -> StreamOutcome:
        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        arbiter = TerminationArbiter()
        guarded = _GuardedResponse(response, arbiter)
        pending: Set[asyncio.Task] = set()
        failure_detail: list[str] = []

        # ─────────────────────────────────────────────────────────────────────
        # Terminal callbacks (any thread)
        # ─────────────────────────────────────────────────────────────────────
        def deliver_failure(job: SynthesisJob, detail: str) -> None:
            if arbiter.try_end(Terminator.ENGINE_FAILURE):
                # Unblock a pull that is still waiting on the sink.
                job.stop()
                failure_detail.append(detail)
                warn(_LOG, "engine_failure", error=detail, bytes_streamed=guarded.bytes_written)
                task = loop.create_task(guarded.fail(SynthesisError()))
                pending.add(task)
                task.add_done_callback(pending.discard)
            else:
                debug(_LOG, "late_failure_ignored", error=detail, ended_by=arbiter.ended_by.value)
                metrics.record_late_callback(Terminator.ENGINE_FAILURE.value)

        def on_success(job: SynthesisJob) -> None:
            job.close()
            verbose(_LOG, "engine_completed")

        def on_failure(job: SynthesisJob, detail: str) -> None:
            job.close()
            try:
                loop.call_soon_threadsafe(deliver_failure, job, detail)
            except RuntimeError:
                # Event loop already closed; the response is long gone.
                metrics.record_late_callback(Terminator.ENGINE_FAILURE.value)

        success_ctx = contextvars.copy_context()
        failure_ctx = contextvars.copy_context()

        try:
            job = self.engine.start(
                markup,
                voice,
                lambda handle: success_ctx.run(on_success, handle),
                lambda handle, detail: failure_ctx.run(on_failure, handle, detail),
            )
        except TTSError as e:
            if arbiter.try_end(Terminator.ENGINE_FAILURE):
                await guarded.fail(e)
            return self._outcome(arbiter, guarded, started, e.message)
        except Exception as e:
            if arbiter.try_end(Terminator.ENGINE_FAILURE):
                await guarded.fail(SynthesisError())
            warn(_LOG, "engine_start_failed", error=f"{type(e).__name__}: {e}")
            return self._outcome(arbiter, guarded, started, str(e))

        # ─────────────────────────────────────────────────────────────────────
        # Pull loop
        # ─────────────────────────────────────────────────────────────────────
        error: Optional[str] = None
        try:
            while not arbiter.ended:
                try:
                    chunk = await asyncio.wait_for(
                        asyncio.to_thread(job.sink.pull, self.chunk_bytes),
                        timeout=self.inactivity_timeout_s,
                    )
                except asyncio.TimeoutError:
                    job.cancel()
                    error = f"no audio for {self.inactivity_timeout_s}s"
                    if arbiter.try_end(Terminator.TIMEOUT):
                        warn(_LOG, "stream_inactivity_timeout", timeout_s=self.inactivity_timeout_s)
                        await guarded.fail(TimeoutError("Audio stream timed out"))
                    break
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    job.cancel()
                    error = f"{type(e).__name__}: {e}"
                    if arbiter.try_end(Terminator.SINK_ERROR):
                        warn(_LOG, "sink_read_failed", error=error)
                        await guarded.fail(SynthesisError())
                    break

                if not chunk:
                    if arbiter.try_end(Terminator.SINK_EXHAUSTED):
                        await guarded.end()
                    break

                try:
                    await guarded.write(chunk)
                except OSError as e:
                    job.cancel()
                    error = f"{type(e).__name__}: {e}"
                    if arbiter.try_end(Terminator.CLIENT_GONE):
                        warn(_LOG, "client_gone", bytes_streamed=guarded.bytes_written)
                    break
        except asyncio.CancelledError:
            # The server cancels the stream when the client disconnects.
            job.cancel()
            arbiter.try_end(Terminator.CLIENT_GONE)
            raise
        finally:
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if failure_detail and error is None:
            error = failure_detail[0]
        return self._outcome(arbiter, guarded, started, error)

    @staticmethod
    def _outcome(
        arbiter: TerminationArbiter,
        guarded: _GuardedResponse,
        started: float,
        error: Optional[str],
    ) -> StreamOutcome:
        return StreamOutcome(
            ended_by=arbiter.ended_by or Terminator.SINK_EXHAUSTED,
            bytes_streamed=guarded.bytes_written,
            chunks=guarded.chunks,
            bytes_dropped=guarded.bytes_dropped,
            first_byte_s=guarded.first_byte_s,
            total_s=time.perf_counter() - started,
            error=error,
        )
