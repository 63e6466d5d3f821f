"""
Chunked Audio Response.

A Starlette response whose body is pushed by the synthesis bridge instead
of pulled from an iterator. It implements the bridge's AudioResponse
interface:

    write(chunk)  first call sends the 200 start message, then body chunks
    end()         closes the body (sends the start message if nothing was written)
    fail(error)   nothing written yet -> JSON error with its HTTP status
                  otherwise           -> closes the body like end()

The start message is deferred until the first byte so that a failure
before any audio can still become a JSON error response. Headers are
fixed when the response is constructed, in the route handler, before
the stream runs.

Like StreamingResponse there is no body attribute, so no content-length
header is added and the server uses chunked transfer encoding.

A client disconnect cancels the stream task; the bridge cancels the
engine job in response.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Mapping, Optional

from starlette.background import BackgroundTask
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from tts_bridge.core.errors import TTSError
from tts_bridge.core.logging import debug, get_logger

_LOG = get_logger("tts-bridge.api.streaming")

StreamRunner = Callable[["AudioStreamResponse"], Awaitable[Any]]
StatusMapper = Callable[[TTSError], int]


class AudioStreamResponse(Response):
    def __init__(
        self,
        run: StreamRunner,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None,
        background: Optional[BackgroundTask] = None,
        error_status: Optional[StatusMapper] = None,
    ) -> None:
        self.run = run
        self.status_code = status_code
        self.media_type = self.media_type if media_type is None else media_type
        self.background = background
        self.error_status = error_status or (lambda error: 500)
        self.init_headers(headers)

        self._send: Optional[Send] = None
        self._request_id = (headers or {}).get("X-Request-Id")
        self._started = False
        self._finished = False
        self._bytes_written = 0

    # ─────────────────────────────────────────────────────────────────────────
    # AudioResponse
    # ─────────────────────────────────────────────────────────────────────────
    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def started(self) -> bool:
        return self._started

    @property
    def finished(self) -> bool:
        return self._finished

    async def write(self, chunk: bytes) -> None:
        if self._finished:
            raise RuntimeError("write after the response has ended")
        if not chunk:
            return
        await self._start()
        await self._send_body(chunk, more_body=True)
        self._bytes_written += len(chunk)

    async def end(self) -> None:
        if self._finished:
            return
        self._finished = True
        await self._start()
        await self._send_body(b"", more_body=False)

    async def fail(self, error: TTSError) -> None:
        if self._finished:
            return
        if self._started:
            debug(_LOG, "fail_after_start", error=error.code, bytes_streamed=self._bytes_written)
            await self.end()
            return

        self._finished = True
        self._started = True
        payload = error.to_dict()
        if self._request_id:
            payload["request_id"] = self._request_id
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")

        raw_headers = [
            (b"content-type", b"application/json"),
            (b"content-length", str(len(body)).encode("latin-1")),
        ]
        if self._request_id:
            raw_headers.append((b"x-request-id", self._request_id.encode("latin-1")))

        assert self._send is not None
        await self._send({
            "type": "http.response.start",
            "status": self.error_status(error),
            "headers": raw_headers,
        })
        await self._send({"type": "http.response.body", "body": body, "more_body": False})

    async def _start(self) -> None:
        if self._started:
            return
        self._started = True
        assert self._send is not None
        await self._send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self.raw_headers,
        })

    async def _send_body(self, body: bytes, more_body: bool) -> None:
        assert self._send is not None
        await self._send({"type": "http.response.body", "body": body, "more_body": more_body})

    # ─────────────────────────────────────────────────────────────────────────
    # ASGI
    # ─────────────────────────────────────────────────────────────────────────
    async def _listen_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break

    async def _run_stream(self) -> None:
        await self.run(self)
        if not self._finished:
            await self.end()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self._send = send

        stream_task = asyncio.ensure_future(self._run_stream())
        disconnect_task = asyncio.ensure_future(self._listen_for_disconnect(receive))
        try:
            await asyncio.wait({stream_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED)
            if not stream_task.done() and self._finished:
                # Body already complete; let the stream finish its bookkeeping.
                await stream_task
        finally:
            for task in (stream_task, disconnect_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(stream_task, disconnect_task, return_exceptions=True)

        if not stream_task.cancelled() and stream_task.exception() is not None:
            raise stream_task.exception()

        if stream_task.cancelled():
            debug(_LOG, "client_disconnected", bytes_streamed=self._bytes_written)

        if self.background is not None:
            await self.background()
