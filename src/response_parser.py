"""
src/response_parser.py
=======================
Model Response Parser — CallBrain

Responsibility:
    - Strip an optional fenced code block (```json ... ```) from the
      model's reply
    - Parse the remaining text as a JSON object into a CallAnalysis

The model is told not to wrap its output in markdown but sometimes does
anyway, so the fence is removed when present and the whole reply is
parsed otherwise. Shape checking is off unless ``strict=True``.
"""

import json
import logging
import re

from src.errors import ParseError
from src.schemas.analysis import CallAnalysis, validate

logger = logging.getLogger("callbrain.response_parser")

_CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json_text(text: str) -> str:
    """Return the interior of the first fenced block, or the text unchanged."""
    match = _CODE_BLOCK_PATTERN.search(text)
    return match.group(1) if match else text


def parse(response_text: str, strict: bool = False) -> CallAnalysis:
    """
    Parse a model reply into a CallAnalysis.

    Args:
        response_text: Raw text returned by the model.
        strict:        Also require every field with the right type.

    Returns:
        The parsed analysis.

    Raises:
        ParseError: If no JSON object can be recovered (or, in strict
            mode, if the object has the wrong shape).
    """
    clean_text = extract_json_text(response_text)

    try:
        parsed = json.loads(clean_text)
    except json.JSONDecodeError as exc:
        logger.error("JSON parse error: %s", exc)
        raise ParseError("Failed to parse AI response.") from exc

    if not isinstance(parsed, dict):
        raise ParseError(
            f"Failed to parse AI response: expected a JSON object, "
            f"got {type(parsed).__name__}."
        )

    if strict:
        try:
            validate(parsed)
        except ValueError as exc:
            raise ParseError(f"AI response has an unexpected shape: {exc}") from exc

    return CallAnalysis.from_dict(parsed)
