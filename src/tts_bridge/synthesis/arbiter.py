"""
Termination Arbiter.

One stream, two independent activities that both want to finish the
HTTP response:

    - the pull loop, when the output sink is exhausted (or a read fails,
      times out, or the client goes away)
    - the engine's failure callback, which may run on an SDK thread at
      any moment relative to the pull loop

The arbiter is a compare-and-set gate from OPEN to ENDED. Whoever wins
finalizes the response; every loser does nothing to the response. The
engine's success callback never goes through the arbiter at all: audio
can still be buffered in the sink after the engine reports completion,
so only the pull loop decides when the body is complete.

Example:
    arbiter = TerminationArbiter()
    if arbiter.try_end(Terminator.SINK_EXHAUSTED):
        await response.end()
"""
from __future__ import annotations

import threading
from enum import Enum
from typing import Optional


class StreamState(str, Enum):
    OPEN = "open"
    ENDED = "ended"


class Terminator(str, Enum):
    """Which actor ended the stream."""
    SINK_EXHAUSTED = "sink_exhausted"   # Normal completion
    ENGINE_FAILURE = "engine_failure"   # Failure callback won
    SINK_ERROR = "sink_error"           # Pull raised
    TIMEOUT = "timeout"                 # Pull exceeded the inactivity timeout
    CLIENT_GONE = "client_gone"         # Writing to the client failed

    @property
    def is_failure(self) -> bool:
        return self is not Terminator.SINK_EXHAUSTED


class TerminationArbiter:
    """Exactly-once OPEN -> ENDED transition, safe across threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._state = StreamState.OPEN
        self._ended_by: Optional[Terminator] = None

    def try_end(self, by: Terminator) -> bool:
        """
        Attempt the OPEN -> ENDED transition.

        Returns:
            True if this call performed the transition, False if the
            stream had already ended.
        """
        with self._lock:
            if self._state is StreamState.ENDED:
                return False
            self._state = StreamState.ENDED
            self._ended_by = by
            return True

    @property
    def state(self) -> StreamState:
        with self._lock:
            return self._state

    @property
    def ended(self) -> bool:
        return self.state is StreamState.ENDED

    @property
    def ended_by(self) -> Optional[Terminator]:
        with self._lock:
            return self._ended_by
