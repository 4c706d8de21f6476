"""
src/audio/normalizer.py
========================
Audio Normalizer — CallBrain

Responsibility:
    - Decode an uploaded audio/video file into PCM via the audio backend
    - Down-mix to mono and resample to 16 kHz
    - Fix the output length at ``source duration x target rate`` frames
    - Serialize the result as canonical WAV bytes

Any decode or render failure is wrapped into a single ConversionError.
Conversion is never retried: a file that fails to decode once will fail
again.

This module does NOT:
    - Enforce payload size limits (handled by the orchestrator)
    - Encode payloads for transmission
"""

import logging

import numpy as np

from src.audio import wav_encoder
from src.audio.backend import AudioBackend, PydubAudioBackend
from src.audio.wav_encoder import AudioClip
from src.errors import ConversionError

logger = logging.getLogger("callbrain.audio.normalizer")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TARGET_SAMPLE_RATE = 16000  # Hz
TARGET_CHANNELS = 1  # mono

_CONVERSION_FAILED_MESSAGE = (
    "Failed to convert audio file. The file might be corrupted or incompatible."
)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize(
    audio_bytes: bytes,
    filename: str | None = None,
    backend: AudioBackend | None = None,
    target_rate: int = TARGET_SAMPLE_RATE,
    target_channels: int = TARGET_CHANNELS,
) -> bytes:
    """
    Decode, resample and re-encode a recording as 16 kHz mono WAV.

    Steps:
        1. Decode to PCM at the source's native rate / channel count
        2. Compute output frame count = source duration x target rate
        3. Render through the resampler
        4. Pad or trim to the computed frame count
        5. Encode as WAV

    Args:
        audio_bytes:     Raw bytes of the uploaded file.
        filename:        Original filename (format hint for the decoder).
        backend:         Decode/resample capability; pydub by default.
        target_rate:     Output sample rate in Hz.
        target_channels: Output channel count.

    Returns:
        WAV bytes.

    Raises:
        ConversionError: If decoding or resampling fails.
    """
    backend = backend or PydubAudioBackend()

    try:
        source = backend.decode(audio_bytes, filename)
    except Exception as exc:
        logger.error("Decoding %s failed: %s", filename, exc)
        raise ConversionError(_CONVERSION_FAILED_MESSAGE) from exc

    frame_count = int(source.duration_seconds * target_rate)
    if frame_count <= 0:
        raise ConversionError("Audio file has zero duration.")

    try:
        rendered = backend.resample(source, target_rate, target_channels)
    except Exception as exc:
        logger.error("Resampling %s failed: %s", filename, exc)
        raise ConversionError(_CONVERSION_FAILED_MESSAGE) from exc

    # Release the source buffers before encoding
    del source

    if rendered.sample_rate != target_rate or rendered.channel_count != target_channels:
        raise ConversionError(
            f"Resampler produced {rendered.sample_rate} Hz / "
            f"{rendered.channel_count} channel(s), expected "
            f"{target_rate} Hz / {target_channels}."
        )

    output = _fit_length(rendered, frame_count)
    wav_bytes = wav_encoder.encode(output)

    logger.info(
        "Normalized %s: %d frames at %d Hz (%.2f MB)",
        filename, output.frame_count, target_rate, len(wav_bytes) / 1024 / 1024,
    )
    return wav_bytes


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fit_length(clip: AudioClip, frame_count: int) -> AudioClip:
    """Trim or zero-pad every channel to exactly ``frame_count`` frames."""
    if clip.frame_count == frame_count:
        return clip

    fitted: list[np.ndarray] = []
    for channel in clip.channels:
        if len(channel) > frame_count:
            fitted.append(channel[:frame_count])
        else:
            fitted.append(np.pad(channel, (0, frame_count - len(channel))))
    return AudioClip(sample_rate=clip.sample_rate, channels=fitted)
