"""
src/audio/wav_encoder.py
=========================
WAV Encoder — CallBrain

Responsibility:
    - Hold decoded PCM data (AudioClip)
    - Serialize an AudioClip into a canonical 44-byte-header,
      16-bit little-endian PCM WAV container
    - Read the header fields back from encoded bytes

Sample conversion keeps the asymmetric scaling of the original encoder:
negative samples are scaled by 32768, non-negative ones by 32767, and the
result is truncated toward zero. This keeps output bit-compatible with
files produced by earlier versions.

This module does NOT:
    - Decode compressed audio
    - Resample or down-mix
"""

import struct
from dataclasses import dataclass, field

import numpy as np


# ---------------------------------------------------------------------------
# Container constants
# ---------------------------------------------------------------------------

HEADER_SIZE: int = 44
BYTES_PER_SAMPLE: int = 2
BITS_PER_SAMPLE: int = 16
PCM_FORMAT: int = 1
FMT_CHUNK_LENGTH: int = 16
WAV_MIME_TYPE: str = "audio/wav"

# RIFF | size | WAVE | fmt  | fmt len | format | channels | rate |
# byte rate | block align | bits | data | data len
_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")

_NEGATIVE_SCALE: float = 32768.0  # 0x8000
_POSITIVE_SCALE: float = 32767.0  # 0x7FFF


@dataclass
class AudioClip:
    """Decoded PCM audio: one float buffer per channel, values in [-1.0, 1.0]."""

    sample_rate: int
    channels: list[np.ndarray] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if not self.channels:
            raise ValueError("AudioClip needs at least one channel")
        self.channels = [np.asarray(ch, dtype=np.float32) for ch in self.channels]
        lengths = {len(ch) for ch in self.channels}
        if len(lengths) != 1:
            raise ValueError(f"Channel buffers differ in length: {sorted(lengths)}")

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def frame_count(self) -> int:
        return len(self.channels[0])

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate


@dataclass(frozen=True)
class WavHeader:
    """Format fields recovered from a 44-byte WAV header."""

    sample_rate: int
    channel_count: int
    data_length: int
    byte_rate: int
    block_align: int
    bits_per_sample: int


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def encode(clip: AudioClip) -> bytes:
    """
    Serialize an AudioClip into WAV bytes.

    Output length is always ``44 + frame_count * channel_count * 2``.
    Samples are interleaved channel-fastest.

    Args:
        clip: Decoded PCM audio.

    Returns:
        Complete WAV container as bytes.
    """
    data_length = clip.frame_count * clip.channel_count * BYTES_PER_SAMPLE
    header = build_header(clip.sample_rate, clip.channel_count, data_length)
    return header + to_pcm16(clip)


def build_header(sample_rate: int, channel_count: int, data_length: int) -> bytes:
    """Pack the 44-byte WAV header for the given format and data length."""
    return _HEADER_STRUCT.pack(
        b"RIFF",
        data_length + 36,
        b"WAVE",
        b"fmt ",
        FMT_CHUNK_LENGTH,
        PCM_FORMAT,
        channel_count,
        sample_rate,
        sample_rate * channel_count * BYTES_PER_SAMPLE,
        channel_count * BYTES_PER_SAMPLE,
        BITS_PER_SAMPLE,
        b"data",
        data_length,
    )


def parse_header(wav_bytes: bytes) -> WavHeader:
    """
    Read the format fields back from an encoded container.

    Raises:
        ValueError: If the bytes do not start with a canonical WAV header.
    """
    if len(wav_bytes) < HEADER_SIZE:
        raise ValueError(f"WAV data too short: {len(wav_bytes)} bytes")

    (
        riff, _chunk_size, wave_tag, fmt_tag, _fmt_len, audio_format,
        channel_count, sample_rate, byte_rate, block_align, bits,
        data_tag, data_length,
    ) = _HEADER_STRUCT.unpack_from(wav_bytes)

    if riff != b"RIFF" or wave_tag != b"WAVE" or fmt_tag != b"fmt " or data_tag != b"data":
        raise ValueError("Not a canonical RIFF/WAVE container")
    if audio_format != PCM_FORMAT:
        raise ValueError(f"Unsupported WAV format code: {audio_format}")

    return WavHeader(
        sample_rate=sample_rate,
        channel_count=channel_count,
        data_length=data_length,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_pcm16(clip: AudioClip) -> bytes:
    """Clamp, scale and interleave all channels into little-endian int16 bytes."""
    if clip.frame_count == 0:
        return b""

    # shape (frames, channels) -> row-major flatten gives channel-fastest order
    frames = np.stack(clip.channels, axis=1).astype(np.float64)
    frames = np.nan_to_num(frames, nan=0.0)
    clamped = np.clip(frames, -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * _NEGATIVE_SCALE, clamped * _POSITIVE_SCALE)
    # float -> int cast truncates toward zero
    return scaled.astype("<i2").tobytes()
