# src/audio/__init__.py
# ======================
# Audio Processing Layer — CallBrain
#
# Responsibility:
#   - Decode uploads into PCM (backend.py, pydub / ffmpeg)
#   - Down-mix and resample to 16 kHz mono (normalizer.py)
#   - Serialize PCM as canonical 16-bit WAV (wav_encoder.py)
