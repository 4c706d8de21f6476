"""
src/analysis_client.py
=======================
Remote Analysis Client — CallBrain

Responsibility:
    - Send one inline multimodal request (base64 audio + instruction
      text) to an audio-capable OpenAI chat model
    - Return the reply text together with the HTTP status

SDK errors are NOT caught here: the orchestrator classifies them (via
their ``status_code``) to decide whether to retry. The SDK's own retry
loop is disabled so that the orchestrator's backoff is the only one.

This module does NOT:
    - Convert audio or enforce size limits
    - Parse the reply
"""

import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

logger = logging.getLogger("callbrain.analysis_client")


ANALYSIS_PROMPT: str = """
You are an expert Call Analyst AI (CallBrain).
Listen to the provided audio file.
Your task is to return a raw JSON object with this structure:
{
  "transcript": "Full text transcript...",
  "summary": "Concise summary...",
  "sentiment": "Positive | Neutral | Negative",
  "actionItems": ["Todo 1", "Todo 2"],
  "keyInsights": ["Insight 1", "Insight 2"]
}

Do not wrap in markdown. Return raw JSON.
Translate non-English parts to English.
"""

# input_audio formats accepted by the chat completions API
_MIME_AUDIO_FORMATS: dict[str, str] = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
}


@dataclass(frozen=True)
class RemoteResponse:
    """Text returned by the remote model, plus the HTTP status when known."""

    text: str | None
    status: int | None = None


def audio_format_for(mime_type: str) -> str:
    """Map a MIME type onto an ``input_audio`` format name."""
    mime = mime_type.split(";", 1)[0].strip().lower()
    if mime in _MIME_AUDIO_FORMATS:
        return _MIME_AUDIO_FORMATS[mime]
    # Unsupported containers are passed through; the API rejects them with a 400
    return mime.rsplit("/", 1)[-1]


class AnalysisClient:
    """Thin wrapper around ``client.chat.completions.create`` for audio input."""

    def __init__(self, api_key: str, model: str, client: Any = None):
        self.model = model
        self._client = client or OpenAI(api_key=api_key, max_retries=0)

    def send_inline_multimodal_request(
        self,
        mime_type: str,
        base64_data: str,
        prompt_text: str,
    ) -> RemoteResponse:
        """
        Issue a single analysis request.

        Raises:
            openai.APIStatusError: On a non-2xx reply (carries status_code).
            openai.APIConnectionError: On transport failure.
        """
        logger.debug(
            "Sending %s payload (%d base64 chars) to %s",
            mime_type, len(base64_data), self.model,
        )
        response = self._client.chat.completions.create(
            model=self.model,
            temperature=0.0,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "input_audio",
                            "input_audio": {
                                "data": base64_data,
                                "format": audio_format_for(mime_type),
                            },
                        },
                        {"type": "text", "text": prompt_text},
                    ],
                },
            ],
        )

        text = response.choices[0].message.content if response.choices else None
        return RemoteResponse(text=text, status=200)
