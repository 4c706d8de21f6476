"""
tests/test_normalizer.py
=========================
Audio Normalizer Tests

Test categories:
    1. OFFLINE UNIT TESTS — synthetic in-memory backend
       - Output frame count = source duration x 16 kHz
       - Padding / trimming of the resampler output
       - Decode / resample failures wrapped in ConversionError
       - Zero-duration input

    2. PYDUB BACKEND TESTS — WAV input only (no ffmpeg needed)
       - Decoding our own WAV output
       - Down-mix and resample of raw PCM
       - Decoded samples survive the resample step unchanged
"""

import os
import sys
import unittest

import numpy as np

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.audio.backend import PydubAudioBackend
from src.audio.normalizer import normalize
from src.audio.wav_encoder import AudioClip, encode, parse_header
from src.errors import ConversionError


class FakeBackend:
    """In-memory AudioBackend returning canned clips."""

    def __init__(self, source=None, rendered_frames=None, decode_error=None, resample_error=None):
        self.source = source
        self.rendered_frames = rendered_frames
        self.decode_error = decode_error
        self.resample_error = resample_error
        self.resample_calls = []

    def decode(self, audio_bytes, filename=None):
        if self.decode_error:
            raise self.decode_error
        return self.source

    def resample(self, clip, target_rate, target_channels):
        self.resample_calls.append((target_rate, target_channels))
        if self.resample_error:
            raise self.resample_error
        frames = self.rendered_frames
        if frames is None:
            frames = int(clip.duration_seconds * target_rate)
        return AudioClip(
            sample_rate=target_rate,
            channels=[np.full(frames, 0.1) for _ in range(target_channels)],
        )


def _stereo(rate: int, seconds: float) -> AudioClip:
    frames = int(rate * seconds)
    return AudioClip(sample_rate=rate, channels=[np.zeros(frames), np.zeros(frames)])


class TestNormalize(unittest.TestCase):

    def test_output_is_16k_mono(self):
        backend = FakeBackend(source=_stereo(44100, 1.0))
        wav = normalize(b"fake", "call.mp4", backend=backend)

        header = parse_header(wav)
        self.assertEqual(header.sample_rate, 16000)
        self.assertEqual(header.channel_count, 1)
        self.assertEqual(header.data_length, 16000 * 2)
        self.assertEqual(len(wav), 44 + 16000 * 2)
        self.assertEqual(backend.resample_calls, [(16000, 1)])

    def test_short_render_is_zero_padded(self):
        backend = FakeBackend(source=_stereo(48000, 0.5), rendered_frames=7990)
        wav = normalize(b"fake", "call.m4a", backend=backend)
        self.assertEqual(parse_header(wav).data_length, 8000 * 2)
        # padded tail is silence
        self.assertEqual(wav[-2:], b"\x00\x00")

    def test_long_render_is_trimmed(self):
        backend = FakeBackend(source=_stereo(8000, 0.5), rendered_frames=8100)
        wav = normalize(b"fake", "call.m4a", backend=backend)
        self.assertEqual(parse_header(wav).data_length, 8000 * 2)

    def test_frame_count_truncates(self):
        # 44101 frames at 44.1 kHz -> 16000.36 frames at 16 kHz
        backend = FakeBackend(source=AudioClip(sample_rate=44100, channels=[np.zeros(44101)]))
        wav = normalize(b"fake", "x.mp4", backend=backend)
        self.assertEqual(parse_header(wav).data_length, 16000 * 2)

    def test_custom_target(self):
        backend = FakeBackend(source=_stereo(44100, 1.0))
        wav = normalize(b"fake", "x.mp4", backend=backend, target_rate=8000, target_channels=2)
        header = parse_header(wav)
        self.assertEqual((header.sample_rate, header.channel_count), (8000, 2))

    def test_decode_failure_wrapped(self):
        cause = RuntimeError("moov atom not found")
        backend = FakeBackend(decode_error=cause)
        with self.assertRaises(ConversionError) as ctx:
            normalize(b"garbage", "broken.mp4", backend=backend)
        self.assertIs(ctx.exception.__cause__, cause)
        self.assertEqual(ctx.exception.stage, "conversion")
        self.assertIn("Failed to convert audio file", str(ctx.exception))

    def test_resample_failure_wrapped(self):
        backend = FakeBackend(source=_stereo(44100, 1.0), resample_error=MemoryError("oom"))
        with self.assertRaises(ConversionError):
            normalize(b"fake", "call.mp4", backend=backend)

    def test_zero_duration_rejected(self):
        backend = FakeBackend(source=AudioClip(sample_rate=44100, channels=[np.zeros(0)]))
        with self.assertRaises(ConversionError):
            normalize(b"fake", "empty.mp4", backend=backend)
        self.assertEqual(backend.resample_calls, [])


class TestPydubBackend(unittest.TestCase):

    def setUp(self):
        self.backend = PydubAudioBackend()

    def test_decode_wav(self):
        left = np.full(800, 0.5)
        right = np.full(800, -0.5)
        wav = encode(AudioClip(sample_rate=8000, channels=[left, right]))

        clip = self.backend.decode(wav, "tone.wav")

        self.assertEqual(clip.sample_rate, 8000)
        self.assertEqual(clip.channel_count, 2)
        self.assertEqual(clip.frame_count, 800)
        self.assertAlmostEqual(float(clip.channels[0][0]), 0.5, places=3)
        self.assertAlmostEqual(float(clip.channels[1][0]), -0.5, places=3)

    def test_resample_downmixes_to_mono(self):
        clip = AudioClip(
            sample_rate=8000,
            channels=[np.full(8000, 0.25), np.full(8000, 0.25)],
        )
        out = self.backend.resample(clip, 16000, 1)

        self.assertEqual(out.sample_rate, 16000)
        self.assertEqual(out.channel_count, 1)
        self.assertAlmostEqual(out.frame_count, 16000, delta=4)
        self.assertAlmostEqual(float(out.channels[0][8000]), 0.25, places=2)

    def test_resample_keeps_decoded_samples_exact(self):
        samples = np.array([16384, -16384, 32767, -32768, 1, 0], dtype=np.float32) / 32768.0
        clip = AudioClip(sample_rate=16000, channels=[samples])

        out = self.backend.resample(clip, 16000, 1)

        np.testing.assert_array_equal(out.channels[0] * 32768.0, samples * 32768.0)

    def test_normalize_with_pydub(self):
        clip = AudioClip(sample_rate=8000, channels=[np.zeros(4000), np.zeros(4000)])
        wav = normalize(encode(clip), "call.wav", backend=self.backend)
        header = parse_header(wav)
        self.assertEqual((header.sample_rate, header.channel_count), (16000, 1))
        self.assertEqual(header.data_length, 8000 * 2)

    def test_corrupt_input_raises_conversion_error(self):
        with self.assertRaises(ConversionError):
            normalize(b"RIFF\x00\x00not really audio", "broken.wav", backend=self.backend)


if __name__ == "__main__":
    unittest.main()
