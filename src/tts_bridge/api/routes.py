"""
tts-bridge API Routes.

Endpoints:
    POST /v1/tts/stream                   - Stream raw PCM audio as it is synthesized
    POST /api/speech/synthesize/stream    - Alias of /v1/tts/stream for existing clients
    GET  /health                          - Health check for load balancers and probes
    GET  /metrics                         - Prometheus metrics
    GET  /v1/stats                        - Usage counters
    POST /v1/stats/reset                  - Zero the usage counters (204)

Request Flow (streaming):
    1. Generate a request ID for tracing
    2. Validate, resolve the voice and build SSML (synchronously)
    3. Fix the response headers: Content-Type audio/wav, chunked transfer
    4. Return an AudioStreamResponse whose body is driven by the service

Error Handling:
    Errors that happen before the first audio byte are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<fixed message>",
        "request_id": "<id>"
    }

    HTTP status codes are mapped from TTSError codes:
        - INVALID_INPUT -> 400 Bad Request
        - TIMEOUT -> 408 Request Timeout
        - SYNTHESIS_FAILED -> 500 Internal Server Error
        - QUEUE_FULL -> 503 Service Unavailable
        - MODEL_NOT_READY -> 503 Service Unavailable

    Once audio has started the status is already 200; a later failure
    only closes the body early.

Example Usage:
    curl -X POST http://localhost:8000/v1/tts/stream \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello there", "voiceGender": "male"}' \\
        --output speech.pcm
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from tts_bridge.api.dependencies import get_stream_service
from tts_bridge.api.schemas import StreamRequest, UsageStats
from tts_bridge.api.streaming import AudioStreamResponse
from tts_bridge.core.errors import ErrorCode, TTSError
from tts_bridge.core.logging import get_logger, set_request_id
from tts_bridge.core.metrics import metrics
from tts_bridge.services.stream_service import SpeechStreamService, SynthesisRequest
from tts_bridge.synthesis.voices import VoiceGender

router = APIRouter()

_LOG = get_logger("tts-bridge.api")

_STATUS_MAP = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.TIMEOUT: 408,
    ErrorCode.SYNTHESIS_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.QUEUE_FULL: 503,
    ErrorCode.MODEL_NOT_READY: 503,
}


def status_for_error(error: TTSError) -> int:
    """HTTP status code for a TTSError."""
    return _STATUS_MAP.get(error.code, 500)


def _error_response(error: TTSError, request_id: str) -> JSONResponse:
    content = error.to_dict()
    content["request_id"] = request_id
    return JSONResponse(
        status_code=status_for_error(error),
        content=content,
        headers={"X-Request-Id": request_id},
    )


@router.post("/v1/tts/stream")
@router.post("/api/speech/synthesize/stream", include_in_schema=False)
async def tts_stream(
    req: StreamRequest,
    service: SpeechStreamService = Depends(get_stream_service),
):
    """
    Streaming synthesis endpoint.

    Returns raw 16-bit mono PCM (no WAV header) in arrival order with:
        - Content-Type: audio/wav
        - Transfer-Encoding: chunked
        - X-Request-Id: Unique request identifier for tracing
        - X-Sample-Rate: PCM sample rate (16000 by default)
        - X-Voice: Resolved voice identifier

    Raises:
        400: Missing or blank text
        408: Timed out waiting for a stream slot
        500: Engine failed before the first audio byte
        503: Engine not configured, or too many streams waiting
    """
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)

    try:
        prepared = service.prepare(
            SynthesisRequest(
                text=req.text,
                voice_gender=VoiceGender.parse(req.voice_gender),
                voice_name=req.voice_name,
            ),
            request_id=rid,
        )
    except TTSError as e:
        return _error_response(e, rid)

    headers = {
        "Transfer-Encoding": "chunked",
        "X-Request-Id": rid,
        "X-Sample-Rate": str(prepared.sample_rate),
        "X-Voice": prepared.voice,
    }

    async def run(response: AudioStreamResponse) -> None:
        await service.stream(prepared, response)

    return AudioStreamResponse(
        run,
        media_type=prepared.media_type,
        headers=headers,
        error_status=status_for_error,
    )


@router.get("/health")
def health(service: SpeechStreamService = Depends(get_stream_service)):
    """
    Health check endpoint.

    Returns engine name, whether credentials are configured, output
    format, voice table, stream settings and concurrency stats.
    """
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics endpoint."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)


@router.get("/v1/stats", response_model=UsageStats)
@router.get("/api/stats", response_model=UsageStats, include_in_schema=False)
def usage_stats(service: SpeechStreamService = Depends(get_stream_service)):
    """Usage counters since start or the last reset."""
    return service.get_stats()


@router.post("/v1/stats/reset", status_code=204)
@router.post("/api/stats/reset", status_code=204, include_in_schema=False)
def reset_usage_stats(service: SpeechStreamService = Depends(get_stream_service)):
    """Zero the usage counters."""
    service.reset_stats()
    return Response(status_code=204)
