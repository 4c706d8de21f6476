# src/schemas/__init__.py
# ========================
# Result Schemas — CallBrain
#
# Responsibility:
#   - CallAnalysis: structured transcript / sentiment / insight result
#   - CallSentiment: allowed sentiment labels

from src.schemas.analysis import CallAnalysis, CallSentiment

__all__ = ["CallAnalysis", "CallSentiment"]
