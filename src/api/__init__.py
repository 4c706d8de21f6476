# src/api/__init__.py
# =====================
# API Layer — CallBrain
#
# Responsibility:
#   - POST /api/v1/analyze-call: upload (mp3 | wav | m4a | mp4) and analyze
#   - GET  /api/v1/calls, /api/v1/calls/{id}: session call records
#   - GET  /api/v1/dashboard: totals and sentiment counts
