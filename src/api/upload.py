"""
src/api/upload.py
==================
API Endpoints — CallBrain

Responsibility:
    - Expose POST /api/v1/analyze-call
    - Accept a single audio/video file (.mp3, .wav, .m4a, .mp4) via
      multipart/form-data
    - Reject oversized or non-audio uploads before any processing
    - Run the analysis off the event loop and track it as a CallRecord
    - Expose the session's records and dashboard summary

Records live in memory only; they are gone after a restart.
"""

import asyncio
import logging

import aiohttp
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import Settings, load_settings
from src.errors import (
    CallAnalysisError,
    ConfigurationError,
    ConversionError,
    EncodingError,
    InvalidRequestError,
    SizeLimitError,
    UploadRejectedError,
    UploadTooLargeError,
)
from src.orchestrator import analyze_recording, build_client, validate_upload
from src.payload import AudioBlob, read_payload
from src.records import CallRecord, CallRecordStore

logger = logging.getLogger("callbrain.api")

store = CallRecordStore()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CallBrain",
    description="Call recording analysis — transcript, sentiment and insights.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: CallAnalysisError) -> int:
    """Map an analysis failure onto an HTTP status."""
    if isinstance(exc, UploadRejectedError):
        return 413 if isinstance(exc, UploadTooLargeError) else 415
    if isinstance(exc, (ConversionError, SizeLimitError, InvalidRequestError)):
        return 422
    if isinstance(exc, ConfigurationError):
        return 500
    return 502


def _run_analysis(
    audio_bytes: bytes,
    filename: str,
    content_type: str | None,
    settings: Settings,
    record: CallRecord,
) -> CallRecord:
    """Blocking analysis of one upload; runs in a worker thread."""
    client = build_client(settings)
    outcome = analyze_recording(
        audio_bytes,
        filename,
        content_type,
        settings=settings,
        send=client.send_inline_multimodal_request,
    )
    return store.complete(record.id, outcome.analysis, outcome.payload.duration_seconds)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post("/api/v1/analyze-call")
async def analyze_call(audio_file: UploadFile = File(...)):
    """
    Accept a recording and return its completed CallRecord.

    Args:
        audio_file: Uploaded audio file (.mp3, .wav, .m4a or .mp4).

    Returns:
        The CallRecord with transcript, summary, sentiment, action items
        and key insights.
    """

    # Guard: file must be provided
    if audio_file is None or not audio_file.filename:
        raise HTTPException(status_code=400, detail="Audio file is required.")

    logger.info("Audio file received: %s (%s)", audio_file.filename, audio_file.content_type)

    try:
        settings = load_settings()
        settings.require_api_key()
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))

    # Read raw bytes
    blob = AudioBlob(data=audio_file.file, content_type=audio_file.content_type or "")
    try:
        audio_bytes = await asyncio.to_thread(read_payload, blob)
    except EncodingError as exc:
        logger.error("Upload read failed: %s", exc)
        raise HTTPException(status_code=400, detail="Failed to read uploaded file.")

    logger.info("File size: %.2f KB", len(audio_bytes) / 1024)

    try:
        validate_upload(len(audio_bytes), audio_file.content_type, audio_file.filename, settings)
    except UploadRejectedError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc))

    record = store.create(audio_file.filename)

    try:
        record = await asyncio.to_thread(
            _run_analysis,
            audio_bytes,
            audio_file.filename,
            audio_file.content_type,
            settings,
            record,
        )
    except CallAnalysisError as exc:
        store.fail(record.id, str(exc))
        logger.error("Analysis failed at %s: %s", exc.stage, exc)
        raise HTTPException(status_code=_status_for(exc), detail=str(exc))
    except Exception as exc:
        store.fail(record.id, "Analysis failed. Please try again.")
        logger.error("Analysis unexpected error: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Analysis failed: {exc}")

    logger.info("Analysis complete — returning call record %s.", record.id)

    if settings.webhook_url:
        await _post_webhook(settings.webhook_url, record)
    else:
        logger.debug("WEBHOOK_URL not configured — skipping POST.")

    return JSONResponse(status_code=200, content=record.to_dict())


@app.get("/api/v1/calls")
async def list_calls():
    """All call records of this session, newest first."""
    return JSONResponse(content=[r.to_dict() for r in store.list_records()])


@app.get("/api/v1/calls/{record_id}")
async def get_call(record_id: str):
    record = store.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Call record not found.")
    return JSONResponse(content=record.to_dict())


@app.get("/api/v1/dashboard")
async def dashboard():
    return JSONResponse(content=store.dashboard_summary())


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


async def _post_webhook(url: str, record: CallRecord) -> None:
    """POST the completed record to the configured webhook; failures are logged only."""
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url,
                json=record.to_dict(),
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=30),
            ) as resp:
                logger.info("Webhook POST to %s — status %d", url, resp.status)
    except Exception as exc:
        logger.error("Webhook POST failed: %s", exc)
