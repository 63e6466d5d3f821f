"""
Prometheus Metrics for tts-bridge.

Metrics Exposed:
    tts_bridge_streams_total            - Counter of finished streams by engine and outcome
    tts_bridge_audio_bytes_total        - Counter of audio bytes written to clients
    tts_bridge_first_byte_seconds       - Histogram of time from request to first audio byte
    tts_bridge_stream_duration_seconds  - Histogram of total stream duration
    tts_bridge_active_streams           - Gauge of streams currently in flight
    tts_bridge_synthesized_chars_total  - Counter of characters sent for synthesis
    tts_bridge_late_callbacks_total     - Counter of terminal signals that lost the race
    tts_bridge_admission_rejected_total - Counter of streams rejected before starting

Outcomes are the terminator names from the arbiter (sink_exhausted,
engine_failure, sink_error, timeout, client_gone) plus "rejected" for
streams that never acquired a slot.

Usage:
    from tts_bridge.core.metrics import metrics

    metrics.record_stream(
        engine="azure",
        outcome="sink_exhausted",
        duration=0.8,
        first_byte=0.12,
        audio_bytes=48000,
    )

    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 'tts-bridge'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class StreamMetrics:
    """
    Stream metrics collection.

    A private CollectorRegistry keeps these metrics apart from anything
    else registered in the process (and lets tests build fresh instances).

    Thread Safety:
        Prometheus metric operations are thread-safe, so engine callback
        threads may record directly.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._streams_total = Counter(
            "tts_bridge_streams_total",
            "Finished audio streams",
            ["engine", "outcome"],
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_bridge_audio_bytes_total",
            "Audio bytes written to clients",
            registry=self._registry,
        )
        self._first_byte = Histogram(
            "tts_bridge_first_byte_seconds",
            "Time from request to the first audio byte",
            ["engine"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )
        self._stream_duration = Histogram(
            "tts_bridge_stream_duration_seconds",
            "Total stream duration in seconds",
            ["engine"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._active_streams = Gauge(
            "tts_bridge_active_streams",
            "Streams currently in flight",
            registry=self._registry,
        )
        self._chars_total = Counter(
            "tts_bridge_synthesized_chars_total",
            "Characters of text sent for synthesis",
            registry=self._registry,
        )
        self._late_callbacks = Counter(
            "tts_bridge_late_callbacks_total",
            "Terminal signals that arrived after the response had ended",
            ["terminator"],
            registry=self._registry,
        )
        self._rejected = Counter(
            "tts_bridge_admission_rejected_total",
            "Streams rejected before starting",
            ["reason"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_stream(
        self,
        engine: str,
        outcome: str,
        duration: float,
        first_byte: Optional[float] = None,
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a finished stream.

        Args:
            engine: Engine name (e.g., "azure")
            outcome: Terminator name that ended the stream
            duration: Stream duration in seconds
            first_byte: Seconds until the first audio byte, if any was sent
            audio_bytes: Audio bytes written to the client
        """
        self._streams_total.labels(engine=engine, outcome=outcome).inc()
        self._stream_duration.labels(engine=engine).observe(duration)
        if first_byte is not None:
            self._first_byte.labels(engine=engine).observe(first_byte)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_chars(self, count: int) -> None:
        if count > 0:
            self._chars_total.inc(count)

    def record_late_callback(self, terminator: str) -> None:
        self._late_callbacks.labels(terminator=terminator).inc()

    def record_rejected(self, reason: str) -> None:
        self._rejected.labels(reason=reason).inc()

    def stream_started(self) -> None:
        self._active_streams.inc()

    def stream_finished(self) -> None:
        self._active_streams.dec()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global metrics instance
metrics = StreamMetrics()
