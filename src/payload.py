"""
src/payload.py
===============
Payload Encoder — CallBrain

Responsibility:
    - Read uploaded or converted audio payloads (AudioBlob)
    - Base64-encode the payload
    - Resolve the MIME type sent alongside the inline payload

MIME precedence:
    1. Declared type is the canonical WAV type -> "audio/wav"
    2. Filename extension: .mp3 -> audio/mpeg, .wav -> audio/wav,
       .m4a -> audio/mp4
    3. Declared type, or "audio/mp3" when nothing is declared
"""

import base64
import logging
from dataclasses import dataclass
from typing import BinaryIO

from src.audio.wav_encoder import WAV_MIME_TYPE
from src.errors import EncodingError

logger = logging.getLogger("callbrain.payload")

DEFAULT_MIME_TYPE: str = "audio/mp3"

_EXTENSION_MIME_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": WAV_MIME_TYPE,
    "m4a": "audio/mp4",
}


@dataclass
class AudioBlob:
    """Binary payload with the content type declared by its producer."""

    data: bytes | BinaryIO
    content_type: str = ""

    def read(self) -> bytes:
        if isinstance(self.data, (bytes, bytearray, memoryview)):
            return bytes(self.data)
        return self.data.read()


def read_payload(blob: AudioBlob | bytes) -> bytes:
    """
    Read the whole payload into memory.

    Raises:
        EncodingError: If the payload cannot be read.
    """
    try:
        return blob.read() if isinstance(blob, AudioBlob) else bytes(blob)
    except (OSError, ValueError) as exc:
        raise EncodingError(f"Failed to read audio payload: {exc}") from exc


def to_base64(blob: AudioBlob | bytes) -> str:
    """
    Read the whole payload and return it as base64 text (no data-URL prefix).

    Raises:
        EncodingError: If the payload cannot be read.
    """
    return base64.b64encode(read_payload(blob)).decode("ascii")


def resolve_mime_type(content_type: str | None, filename: str | None = None) -> str:
    """Return the MIME type to declare for an inline audio payload."""
    if content_type == WAV_MIME_TYPE:
        return WAV_MIME_TYPE

    if filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        mapped = _EXTENSION_MIME_TYPES.get(ext)
        if mapped:
            return mapped

    return content_type or DEFAULT_MIME_TYPE
