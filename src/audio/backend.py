"""
src/audio/backend.py
=====================
Audio Decode / Resample Backend — CallBrain

Responsibility:
    - Define the narrow capability the normalizer depends on:
      ``decode`` compressed bytes into PCM, ``resample`` PCM to a target
      rate and channel count
    - Provide the pydub (ffmpeg) implementation used in production

Tests substitute an in-memory backend, so nothing in the normalization
pipeline touches ffmpeg directly.
"""

import io
import logging
from typing import Protocol

import numpy as np
from pydub import AudioSegment

from src.audio.wav_encoder import BYTES_PER_SAMPLE, AudioClip

logger = logging.getLogger("callbrain.audio.backend")

# Container hints handed to ffmpeg; anything else is probed
_FORMAT_HINTS: dict[str, str] = {
    ".mp4": "mp4",
    ".m4a": "mp4",
    ".mp3": "mp3",
    ".wav": "wav",
    ".ogg": "ogg",
    ".webm": "webm",
    ".flac": "flac",
}


class AudioBackend(Protocol):
    """Decode and resample capability required by the normalizer."""

    def decode(self, audio_bytes: bytes, filename: str | None = None) -> AudioClip:
        ...

    def resample(
        self, clip: AudioClip, target_rate: int, target_channels: int
    ) -> AudioClip:
        ...


class PydubAudioBackend:
    """AudioBackend built on pydub's ffmpeg bindings."""

    def decode(self, audio_bytes: bytes, filename: str | None = None) -> AudioClip:
        """
        Decode compressed audio (or the audio track of a video) into PCM.

        Raises:
            pydub.exceptions.CouldntDecodeError: On corrupt or unsupported input.
        """
        fmt = _FORMAT_HINTS.get(_extract_extension(filename or ""))
        segment = AudioSegment.from_file(io.BytesIO(audio_bytes), format=fmt)
        logger.debug(
            "Decoded %s: %d Hz, %d channel(s), %.2fs",
            filename, segment.frame_rate, segment.channels, len(segment) / 1000.0,
        )
        return _segment_to_clip(segment)

    def resample(
        self, clip: AudioClip, target_rate: int, target_channels: int
    ) -> AudioClip:
        segment = AudioSegment(
            data=_clip_to_pcm16(clip),
            sample_width=BYTES_PER_SAMPLE,
            frame_rate=clip.sample_rate,
            channels=clip.channel_count,
        )
        if segment.channels != target_channels:
            segment = segment.set_channels(target_channels)
        if segment.frame_rate != target_rate:
            segment = segment.set_frame_rate(target_rate)
        return _segment_to_clip(segment)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _segment_to_clip(segment: AudioSegment) -> AudioClip:
    """Split a pydub segment into per-channel float buffers in [-1.0, 1.0]."""
    samples = np.array(segment.get_array_of_samples(), dtype=np.float32)
    full_scale = float(1 << (8 * segment.sample_width - 1))
    frames = (samples / full_scale).reshape(-1, segment.channels)
    return AudioClip(
        sample_rate=segment.frame_rate,
        channels=[frames[:, i] for i in range(segment.channels)],
    )


def _extract_extension(filename: str) -> str:
    """Return lowercase file extension including the dot, e.g. '.wav'."""
    dot_index = filename.rfind(".")
    if dot_index == -1:
        return ""
    return filename[dot_index:].lower()


def _clip_to_pcm16(clip: AudioClip) -> bytes:
    """
    Interleave a clip into int16 PCM for pydub.

    Scaling is the exact inverse of ``_segment_to_clip`` (x32768, rounded),
    so decoded samples pass through unchanged; the lossy WAV quantization
    happens once, in ``wav_encoder.encode``.
    """
    frames = np.stack(clip.channels, axis=1).astype(np.float64)
    frames = np.nan_to_num(frames, nan=0.0)
    scaled = np.clip(np.rint(frames * 32768.0), -32768, 32767)
    return scaled.astype("<i2").tobytes()
