"""
src/errors.py
==============
Error Taxonomy — CallBrain

Responsibility:
    - Define one exception type per failure mode of the analysis flow
    - Carry the stage name so every failure renders as a single
      user-facing message
    - Keep the underlying cause chained (``raise ... from exc``)

Retry semantics live in src.retry_policy. These classes only describe
what went wrong and where.
"""


class CallAnalysisError(Exception):
    """Base class for every failure surfaced by the analysis flow."""

    stage: str = "analysis"

    def __init__(self, message: str, stage: str | None = None):
        self.message = message
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class ConfigurationError(CallAnalysisError):
    """Raised when a required setting (e.g. the API key) is missing or malformed."""

    stage = "configuration"


class UploadRejectedError(CallAnalysisError):
    """Raised when an upload is refused before any processing starts."""

    stage = "upload"


class ConversionError(CallAnalysisError):
    """Raised when decoding or resampling the input audio fails."""

    stage = "conversion"


class SizeLimitError(CallAnalysisError):
    """Raised when the payload to transmit exceeds the inline ceiling."""

    stage = "size_check"

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Processed file size ({size_bytes / (1024 * 1024):.1f}MB) exceeds the "
            f"{limit_bytes // (1024 * 1024)}MB limit. "
            "Please upload a shorter recording."
        )


class EncodingError(CallAnalysisError):
    """Raised when the payload cannot be read for base64 encoding."""

    stage = "encoding"


class InvalidRequestError(CallAnalysisError):
    """Raised when the remote service rejects the request as malformed (4xx)."""

    stage = "requesting"


class ServerError(CallAnalysisError):
    """Transient remote failure (HTTP 500/503 class)."""

    stage = "requesting"

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class EmptyResponseError(CallAnalysisError):
    """Raised when the remote service answers without any text."""

    stage = "requesting"


class ParseError(CallAnalysisError):
    """Raised when no valid JSON object can be recovered from the response."""

    stage = "parsing"


class ExhaustedRetriesError(CallAnalysisError):
    """Raised when every allowed attempt was consumed without a result."""

    stage = "requesting"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Analysis failed after {attempts} attempts.")


class AnalysisCancelledError(CallAnalysisError):
    """Raised when the caller cancels an in-flight analysis."""

    stage = "requesting"


class UploadTooLargeError(UploadRejectedError):
    """Raised when an upload exceeds the upfront size ceiling."""
