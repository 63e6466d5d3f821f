"""
Stream Admission Control.

Each stream holds an engine job, a worker thread blocked in pull() and an
open client connection for as long as audio keeps coming. The
ConcurrencyController caps how many streams run at once and how many may
wait for a slot.

Backpressure Strategy:
    1. If a slot is free: acquire immediately
    2. If the queue has space: wait up to timeout_s for a slot
    3. If the queue is full: reject immediately (503 QUEUE_FULL)

    A wait that runs out of time is rejected with 408 TIMEOUT.

Usage:
    controller = ConcurrencyController(max_concurrent=8, max_queue=32)

    async with controller.acquire_async(timeout=10.0):
        outcome = await bridge.stream(markup, voice, response)

    stats = controller.stats()
    print(f"Active: {stats.current_active}/{stats.max_concurrent}")

Configuration (settings.yaml):
    concurrency:
      enabled: true
      max_concurrent: 8
      max_queue: 32
      timeout_s: 10
"""
from __future__ import annotations

import asyncio
import threading
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from tts_bridge.core.errors import QueueFullError, TimeoutError
from tts_bridge.core.logging import get_logger, info

_LOG = get_logger("tts-bridge.concurrency")

# How often a waiting stream re-checks for a free slot
_POLL_INTERVAL_S = 0.01


@dataclass
class ConcurrencyStats:
    """Statistics for the concurrency controller."""
    max_concurrent: int
    max_queue: int
    current_active: int
    current_waiting: int
    total_processed: int
    total_rejected: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConcurrencyController:
    """
    Counts active and waiting streams behind one threading.Lock.

    The counter is lock-protected rather than an asyncio.Semaphore so that
    stats() can be read from any thread (e.g. the CLI or a health probe).
    """

    def __init__(self, max_concurrent: int = 8, max_queue: int = 32):
        self.max_concurrent = max_concurrent
        self.max_queue = max_queue

        self._lock = threading.Lock()
        self._active = 0
        self._waiting = 0
        self._total_processed = 0
        self._total_rejected = 0

    @property
    def queue_depth(self) -> int:
        with self._lock:
            return self._waiting

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    def stats(self) -> ConcurrencyStats:
        with self._lock:
            return ConcurrencyStats(
                max_concurrent=self.max_concurrent,
                max_queue=self.max_queue,
                current_active=self._active,
                current_waiting=self._waiting,
                total_processed=self._total_processed,
                total_rejected=self._total_rejected,
            )

    def try_acquire(self) -> bool:
        """Take a slot without waiting. Returns False if none is free."""
        with self._lock:
            if self._active < self.max_concurrent:
                self._active += 1
                return True
            return False

    def release(self) -> None:
        with self._lock:
            self._active = max(0, self._active - 1)
            self._total_processed += 1

    @asynccontextmanager
    async def acquire_async(self, timeout: float = 10.0):
        """
        Hold a slot for the duration of the block.

        Raises:
            QueueFullError: If max_queue streams are already waiting.
            TimeoutError: If no slot frees up within timeout seconds.
        """
        if not self.try_acquire():
            await self._wait_for_slot(timeout)

        try:
            yield
        finally:
            self.release()

    async def _wait_for_slot(self, timeout: float) -> None:
        with self._lock:
            if self._waiting >= self.max_queue:
                self._total_rejected += 1
                raise QueueFullError(
                    "Too many streams waiting",
                    details={"waiting": self._waiting, "max_queue": self.max_queue},
                )
            self._waiting += 1

        deadline = time.monotonic() + timeout
        try:
            while True:
                with self._lock:
                    if self._active < self.max_concurrent:
                        self._active += 1
                        return

                if time.monotonic() >= deadline:
                    with self._lock:
                        self._total_rejected += 1
                    raise TimeoutError(
                        f"Timeout after {timeout}s waiting for a stream slot",
                        details={"timeout_s": timeout},
                    )

                await asyncio.sleep(_POLL_INTERVAL_S)
        finally:
            with self._lock:
                self._waiting = max(0, self._waiting - 1)


# Global controller instance (created on first use)
_controller: Optional[ConcurrencyController] = None
_controller_lock = threading.Lock()


def get_controller(max_concurrent: int = 8, max_queue: int = 32) -> ConcurrencyController:
    """Get or create the global concurrency controller."""
    global _controller
    if _controller is None:
        with _controller_lock:
            if _controller is None:
                _controller = ConcurrencyController(max_concurrent=max_concurrent, max_queue=max_queue)
                info(_LOG, "concurrency_init", max_concurrent=max_concurrent, max_queue=max_queue)
    return _controller


def reset_controller() -> None:
    """Reset the global controller (for testing)."""
    global _controller
    with _controller_lock:
        _controller = None
