"""
tests/test_wav_encoder.py
==========================
WAV Encoder Tests

Test categories:
    1. Header layout — every field at its fixed offset
    2. Sample conversion — clamping, asymmetric scaling, truncation
    3. Interleaving — channel-fastest order
    4. Round trip — header fields read back by parse_header and ``wave``

All tests are offline.
"""

import io
import os
import struct
import sys
import unittest
import wave

import numpy as np

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.audio.wav_encoder import (
    HEADER_SIZE,
    AudioClip,
    build_header,
    encode,
    parse_header,
)


def _samples(wav_bytes: bytes) -> tuple[int, ...]:
    data = wav_bytes[HEADER_SIZE:]
    return struct.unpack(f"<{len(data) // 2}h", data)


class TestAudioClip(unittest.TestCase):

    def test_properties(self):
        clip = AudioClip(sample_rate=8000, channels=[np.zeros(4000), np.zeros(4000)])
        self.assertEqual(clip.channel_count, 2)
        self.assertEqual(clip.frame_count, 4000)
        self.assertAlmostEqual(clip.duration_seconds, 0.5)

    def test_mismatched_channel_lengths_rejected(self):
        with self.assertRaises(ValueError):
            AudioClip(sample_rate=16000, channels=[np.zeros(10), np.zeros(9)])

    def test_non_positive_rate_rejected(self):
        with self.assertRaises(ValueError):
            AudioClip(sample_rate=0, channels=[np.zeros(10)])

    def test_no_channels_rejected(self):
        with self.assertRaises(ValueError):
            AudioClip(sample_rate=16000, channels=[])


class TestHeaderLayout(unittest.TestCase):

    def setUp(self):
        self.clip = AudioClip(sample_rate=44100, channels=[np.zeros(100), np.zeros(100)])
        self.wav = encode(self.clip)
        self.data_length = 100 * 2 * 2

    def test_total_length(self):
        self.assertEqual(len(self.wav), 44 + self.data_length)

    def test_tags(self):
        self.assertEqual(self.wav[0:4], b"RIFF")
        self.assertEqual(self.wav[8:12], b"WAVE")
        self.assertEqual(self.wav[12:16], b"fmt ")
        self.assertEqual(self.wav[36:40], b"data")

    def test_numeric_fields(self):
        self.assertEqual(struct.unpack_from("<I", self.wav, 4)[0], self.data_length + 36)
        self.assertEqual(struct.unpack_from("<I", self.wav, 16)[0], 16)
        self.assertEqual(struct.unpack_from("<H", self.wav, 20)[0], 1)
        self.assertEqual(struct.unpack_from("<H", self.wav, 22)[0], 2)
        self.assertEqual(struct.unpack_from("<I", self.wav, 24)[0], 44100)
        self.assertEqual(struct.unpack_from("<I", self.wav, 28)[0], 44100 * 2 * 2)
        self.assertEqual(struct.unpack_from("<H", self.wav, 32)[0], 4)
        self.assertEqual(struct.unpack_from("<H", self.wav, 34)[0], 16)
        self.assertEqual(struct.unpack_from("<I", self.wav, 40)[0], self.data_length)

    def test_build_header_is_44_bytes(self):
        self.assertEqual(len(build_header(16000, 1, 0)), HEADER_SIZE)

    def test_empty_clip_is_header_only(self):
        wav = encode(AudioClip(sample_rate=16000, channels=[np.zeros(0)]))
        self.assertEqual(len(wav), HEADER_SIZE)
        self.assertEqual(parse_header(wav).data_length, 0)


class TestSampleConversion(unittest.TestCase):

    def test_full_scale_does_not_wrap(self):
        wav = encode(AudioClip(sample_rate=16000, channels=[np.array([1.0, -1.0])]))
        self.assertEqual(_samples(wav), (32767, -32768))

    def test_out_of_range_is_clamped(self):
        wav = encode(AudioClip(sample_rate=16000, channels=[np.array([2.5, -3.0])]))
        self.assertEqual(_samples(wav), (32767, -32768))

    def test_asymmetric_scaling_truncates(self):
        wav = encode(AudioClip(sample_rate=16000, channels=[np.array([0.5, -0.5, 0.0])]))
        # 0.5 * 32767 = 16383.5 -> 16383 ; -0.5 * 32768 = -16384
        self.assertEqual(_samples(wav), (16383, -16384, 0))

    def test_tiny_values_truncate_toward_zero(self):
        wav = encode(AudioClip(sample_rate=16000, channels=[np.array([0.00001, -0.00001])]))
        self.assertEqual(_samples(wav), (0, 0))

    def test_nan_is_silence(self):
        wav = encode(AudioClip(sample_rate=16000, channels=[np.array([np.nan])]))
        self.assertEqual(_samples(wav), (0,))


class TestInterleaving(unittest.TestCase):

    def test_channel_fastest_order(self):
        left = np.array([0.0, 1.0])
        right = np.array([-1.0, 0.0])
        wav = encode(AudioClip(sample_rate=16000, channels=[left, right]))
        self.assertEqual(_samples(wav), (0, -32768, 32767, 0))


class TestRoundTrip(unittest.TestCase):

    def test_parse_header_recovers_fields(self):
        for rate, n_channels, frames in ((16000, 1, 160), (48000, 2, 33), (8000, 6, 0)):
            with self.subTest(rate=rate, channels=n_channels, frames=frames):
                clip = AudioClip(
                    sample_rate=rate,
                    channels=[np.zeros(frames) for _ in range(n_channels)],
                )
                header = parse_header(encode(clip))
                self.assertEqual(header.sample_rate, rate)
                self.assertEqual(header.channel_count, n_channels)
                self.assertEqual(header.data_length, frames * n_channels * 2)
                self.assertEqual(header.bits_per_sample, 16)

    def test_stdlib_wave_reads_output(self):
        tone = 0.25 * np.sin(np.linspace(0, 2 * np.pi, 1600))
        wav = encode(AudioClip(sample_rate=16000, channels=[tone]))
        with wave.open(io.BytesIO(wav), "rb") as wf:
            self.assertEqual(wf.getframerate(), 16000)
            self.assertEqual(wf.getnchannels(), 1)
            self.assertEqual(wf.getsampwidth(), 2)
            self.assertEqual(wf.getnframes(), 1600)

    def test_parse_header_rejects_garbage(self):
        with self.assertRaises(ValueError):
            parse_header(b"\x00" * 44)
        with self.assertRaises(ValueError):
            parse_header(b"RIFF")


if __name__ == "__main__":
    unittest.main()
