"""
src/schemas/analysis.py
========================
Call Analysis Result — CallBrain

A CallAnalysis is only built from a fully parsed model response. Field
shapes are not enforced by default: the model's output is not
contractually guaranteed, so ``from_dict`` takes what it is given and
fills absent keys with empty values. ``validate`` is the strict opt-in.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class CallSentiment(str, Enum):
    """Overall call sentiment labels."""

    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


_VALID_SENTIMENTS: set[str] = {member.value for member in CallSentiment}

REQUIRED_FIELDS: tuple[str, ...] = (
    "transcript",
    "summary",
    "sentiment",
    "actionItems",
    "keyInsights",
)


@dataclass(frozen=True)
class CallAnalysis:
    transcript: Any = ""
    summary: Any = ""
    sentiment: Any = CallSentiment.NEUTRAL.value
    action_items: Any = field(default_factory=list)
    key_insights: Any = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CallAnalysis":
        """Build a result from the model's JSON object, keeping values as-is."""
        return cls(
            transcript=data.get("transcript", ""),
            summary=data.get("summary", ""),
            sentiment=data.get("sentiment", CallSentiment.NEUTRAL.value),
            action_items=data.get("actionItems", []),
            key_insights=data.get("keyInsights", []),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the wire (camelCase) field names."""
        raw = asdict(self)
        return {
            "transcript": raw["transcript"],
            "summary": raw["summary"],
            "sentiment": raw["sentiment"],
            "actionItems": raw["action_items"],
            "keyInsights": raw["key_insights"],
        }


def validate(data: dict[str, Any]) -> None:
    """
    Strict shape check for a parsed model response.

    Raises:
        ValueError: If a key is missing or holds a value of the wrong type.
    """
    missing = [key for key in REQUIRED_FIELDS if key not in data]
    if missing:
        raise ValueError(f"Missing keys in analysis: {missing}")

    for key in ("transcript", "summary"):
        if not isinstance(data[key], str):
            raise ValueError(f"{key!r} must be a string, got {type(data[key]).__name__}")

    if data["sentiment"] not in _VALID_SENTIMENTS:
        raise ValueError(
            f"Invalid sentiment: {data['sentiment']!r}. "
            f"Must be one of {sorted(_VALID_SENTIMENTS)}"
        )

    for key in ("actionItems", "keyInsights"):
        items = data[key]
        if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
            raise ValueError(f"{key!r} must be a list of strings")
