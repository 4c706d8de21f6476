"""
src/orchestrator.py
====================
Analysis Orchestrator — CallBrain

Responsibility:
    - Decide whether the upload must be converted (MP4 / M4A)
    - Enforce the inline payload ceiling after conversion
    - Resolve the MIME type and base64-encode the payload
    - Issue the remote request with bounded retries and backoff
    - Hand the reply to the response parser

Stage order:
    IDLE -> CONVERTING | SKIP_CONVERSION -> SIZE_CHECK -> ENCODING
         -> REQUESTING (attempt 1..N) -> PARSING -> DONE | FAILED

Every call owns its own RetryState and buffers; nothing is shared
between concurrent calls, so no locking is needed.

This module does NOT:
    - Decode audio itself (src.audio.normalizer)
    - Talk to the SDK directly (src.analysis_client)
    - Store results (src.records)
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from src.analysis_client import ANALYSIS_PROMPT, AnalysisClient, RemoteResponse
from src.audio.backend import AudioBackend
from src.audio.normalizer import normalize
from src.audio.wav_encoder import WAV_MIME_TYPE, parse_header
from src.config import Settings, load_settings
from src.errors import (
    AnalysisCancelledError,
    CallAnalysisError,
    EmptyResponseError,
    ExhaustedRetriesError,
    InvalidRequestError,
    ServerError,
    SizeLimitError,
    UploadRejectedError,
    UploadTooLargeError,
)
from src.payload import AudioBlob, resolve_mime_type, to_base64
from src.response_parser import parse
from src.retry_policy import RetryDecision, RetryState, classify, status_of
from src.schemas.analysis import CallAnalysis

logger = logging.getLogger("callbrain.orchestrator")

SendFn = Callable[[str, str, str], RemoteResponse]

_CONVERTIBLE_EXTENSIONS: tuple[str, ...] = (".mp4", ".m4a")


class AnalysisStage(str, Enum):
    IDLE = "idle"
    CONVERTING = "converting"
    SKIP_CONVERSION = "skip_conversion"
    SIZE_CHECK = "size_check"
    ENCODING = "encoding"
    REQUESTING = "requesting"
    PARSING = "parsing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PreparedPayload:
    """Payload ready for transmission."""

    base64_data: str
    mime_type: str
    size_bytes: int
    filename: str
    converted: bool = False
    duration_seconds: float | None = None


@dataclass(frozen=True)
class AnalysisOutcome:
    analysis: CallAnalysis
    payload: PreparedPayload


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


def needs_conversion(content_type: str | None, filename: str | None) -> bool:
    """True for MP4 containers: declared type contains 'mp4' or name ends .mp4/.m4a."""
    if content_type and "mp4" in content_type:
        return True
    return bool(filename) and filename.lower().endswith(_CONVERTIBLE_EXTENSIONS)


def validate_upload(
    size_bytes: int,
    content_type: str | None,
    filename: str | None,
    settings: Settings | None = None,
) -> None:
    """
    Reject uploads that are too large or obviously not audio, before any work.

    Raises:
        UploadRejectedError: On an oversized or unsupported upload.
    """
    settings = settings or load_settings()
    _check_upload_size(size_bytes, settings)

    content_type = content_type or ""
    name = (filename or "").lower()
    is_valid_type = (
        content_type.startswith("audio/")
        or content_type.startswith("video/mp4")
        or name.endswith(_CONVERTIBLE_EXTENSIONS)
    )
    if not is_valid_type:
        raise UploadRejectedError(
            "Please upload a valid audio file (MP3, WAV, M4A, MP4)."
        )


def _check_upload_size(size_bytes: int, settings: Settings) -> None:
    if size_bytes > settings.upload_limit_bytes:
        raise UploadTooLargeError(
            "File is too large. Please upload a file smaller than "
            f"{settings.upload_limit_bytes // (1024 * 1024)}MB."
        )


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def prepare_payload(
    audio_bytes: bytes,
    filename: str,
    content_type: str | None = None,
    settings: Settings | None = None,
    backend: AudioBackend | None = None,
) -> PreparedPayload:
    """
    Run the CONVERTING / SIZE_CHECK / ENCODING stages.

    Raises:
        UploadRejectedError: Upload above the upfront ceiling.
        ConversionError:     Decode / resample failure.
        SizeLimitError:      Payload above the inline ceiling after conversion.
        EncodingError:       Payload could not be read.
    """
    settings = settings or load_settings()
    _check_upload_size(len(audio_bytes), settings)

    payload = audio_bytes
    mime_type = content_type or ""
    converted = False
    duration_seconds = None

    if needs_conversion(content_type, filename):
        _enter(AnalysisStage.CONVERTING, "Converting %s to WAV...", filename)
        payload = normalize(audio_bytes, filename, backend=backend)
        mime_type = WAV_MIME_TYPE
        converted = True
        header = parse_header(payload)
        duration_seconds = header.data_length / header.byte_rate
        logger.info(
            "Conversion complete. New size: %.2f MB", len(payload) / 1024 / 1024
        )
    else:
        _enter(AnalysisStage.SKIP_CONVERSION, "No conversion needed for %s", filename)

    _enter(AnalysisStage.SIZE_CHECK, "Payload size: %d bytes", len(payload))
    if len(payload) > settings.inline_limit_bytes:
        raise SizeLimitError(len(payload), settings.inline_limit_bytes)

    _enter(AnalysisStage.ENCODING, "Encoding payload for %s", filename)
    blob = AudioBlob(data=payload, content_type=mime_type)
    mime_type = resolve_mime_type(blob.content_type, filename)
    base64_data = to_base64(blob)

    return PreparedPayload(
        base64_data=base64_data,
        mime_type=mime_type,
        size_bytes=len(payload),
        filename=filename,
        converted=converted,
        duration_seconds=duration_seconds,
    )


def request_analysis(
    prepared: PreparedPayload,
    send: SendFn,
    settings: Settings | None = None,
    sleep: Callable[[float], None] | None = None,
    cancel_event: threading.Event | None = None,
    strict: bool = False,
) -> CallAnalysis:
    """
    Run the REQUESTING / PARSING stages with bounded retries.

    A failure is retried only for HTTP 500 / 503 and only while attempts
    remain; the wait before retry ``n`` is ``base * factor ** n`` ms.

    Raises:
        InvalidRequestError:   The service rejected the request (4xx).
        EmptyResponseError:    The service replied without text.
        ParseError:            The reply held no recoverable JSON object.
        ExhaustedRetriesError: Every attempt failed with a transient error.
        AnalysisCancelledError: ``cancel_event`` was set between attempts.
    """
    settings = settings or load_settings()
    state = RetryState(
        max_attempts=settings.max_attempts,
        base_delay_ms=settings.base_delay_ms,
        backoff_factor=settings.backoff_factor,
    )
    last_error: ServerError | None = None

    while state.has_attempts_left:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("Analysis was cancelled.")

        _enter(
            AnalysisStage.REQUESTING,
            "Attempt %d/%d for %s", state.attempt + 1, state.max_attempts, prepared.filename,
        )
        try:
            response = send(prepared.mime_type, prepared.base64_data, ANALYSIS_PROMPT)
        except Exception as exc:
            logger.error("Attempt %d Failed: %s", state.attempt + 1, exc)
            decision = classify(exc)

            if decision is RetryDecision.RETRYABLE:
                last_error = ServerError(str(exc), status=status_of(exc))
                last_error.__cause__ = exc
                if state.is_last_attempt:
                    break
                delay_ms = state.advance()
                logger.warning("Transient server error, retrying in %.1fs", delay_ms / 1000)
                _wait(delay_ms / 1000, sleep, cancel_event)
                continue

            if decision is RetryDecision.INVALID_REQUEST:
                raise InvalidRequestError(
                    "Invalid request. The file format might not be supported."
                ) from exc
            raise

        if not response.text:
            raise EmptyResponseError("Empty response from the analysis service.")

        _enter(AnalysisStage.PARSING, "Parsing %d characters of model output", len(response.text))
        return parse(response.text, strict=strict)

    raise ExhaustedRetriesError(state.max_attempts) from last_error


def analyze_recording(
    audio_bytes: bytes,
    filename: str,
    content_type: str | None = None,
    settings: Settings | None = None,
    send: SendFn | None = None,
    backend: AudioBackend | None = None,
    sleep: Callable[[float], None] | None = None,
    cancel_event: threading.Event | None = None,
    strict: bool = False,
) -> AnalysisOutcome:
    """
    Full analysis of one recording: convert if needed, check size,
    encode, request with retries, parse.

    Args:
        audio_bytes:  Raw uploaded bytes.
        filename:     Original filename.
        content_type: MIME type declared by the uploader.
        settings:     Runtime settings; loaded from the environment by default.
        send:         Transport; an OpenAI-backed AnalysisClient by default.
        backend:      Audio decode/resample backend; pydub by default.
        sleep:        Backoff sleeper; ``time.sleep`` by default.
        cancel_event: Set it to abandon the call before the next attempt.
        strict:       Enforce the result shape when parsing.

    Returns:
        AnalysisOutcome with the parsed CallAnalysis and the payload it
        was computed from.

    Raises:
        CallAnalysisError: Subclass naming the failed stage.
    """
    settings = settings or load_settings()
    _enter(AnalysisStage.IDLE, "Analysis requested for %s", filename)

    try:
        if send is None:
            send = build_client(settings).send_inline_multimodal_request
        prepared = prepare_payload(audio_bytes, filename, content_type, settings, backend)
        result = request_analysis(prepared, send, settings, sleep, cancel_event, strict)
    except CallAnalysisError as exc:
        _enter(AnalysisStage.FAILED, "%s failed at %s: %s", filename, exc.stage, exc)
        raise

    _enter(AnalysisStage.DONE, "Analysis complete for %s", filename)
    return AnalysisOutcome(analysis=result, payload=prepared)


def analyze_audio(
    audio_bytes: bytes,
    filename: str,
    content_type: str | None = None,
    **kwargs,
) -> CallAnalysis:
    """Same as ``analyze_recording`` but returns only the CallAnalysis."""
    return analyze_recording(audio_bytes, filename, content_type, **kwargs).analysis


def build_client(settings: Settings) -> AnalysisClient:
    """
    Create the default transport.

    Raises:
        ConfigurationError: If the API key is missing.
    """
    return AnalysisClient(api_key=settings.require_api_key(), model=settings.model)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _enter(stage: AnalysisStage, message: str, *args: object) -> None:
    logger.info("[%s] " + message, stage.value, *args)


def _wait(
    seconds: float,
    sleep: Callable[[float], None] | None,
    cancel_event: threading.Event | None,
) -> None:
    """Backoff wait; returns early with AnalysisCancelledError if cancelled."""
    if cancel_event is not None:
        if cancel_event.wait(seconds):
            raise AnalysisCancelledError("Analysis was cancelled.")
        return
    (sleep or time.sleep)(seconds)
