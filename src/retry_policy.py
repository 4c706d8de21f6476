"""
src/retry_policy.py
====================
Retry Policy — CallBrain

Provides the pure pieces of the request retry loop so they can be tested
without a network:

    - ``classify(exc)``     -> RetryDecision for a failed request
    - ``RetryState``        -> per-call attempt counter and backoff schedule

Only HTTP 500 / 503 are treated as transient. A 4xx (other than 429)
means the request itself is bad and retrying cannot help.

Usage::

    state = RetryState(max_attempts=3)
    ...
    if classify(exc) is RetryDecision.RETRYABLE and not state.is_last_attempt:
        delay_ms = state.advance()

This module does NOT:
    - Perform requests or sleep
    - Create or manage API clients
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("callbrain.retry_policy")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_ATTEMPTS: int = 3          # total attempts including the first
BASE_DELAY_MS: int = 2000      # multiplied by BACKOFF_FACTOR ** attempt
BACKOFF_FACTOR: int = 2        # exponential multiplier

# HTTP status codes worth retrying on
_RETRYABLE_STATUS_CODES: set[int] = {500, 503}

# Client errors that are not a malformed request
_NON_INVALID_CLIENT_CODES: set[int] = {429}


class RetryDecision(str, Enum):
    """Outcome of classifying a failed request."""

    RETRYABLE = "retryable"
    INVALID_REQUEST = "invalid_request"
    FATAL = "fatal"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def status_of(exc: BaseException) -> int | None:
    """Return the HTTP status carried by an exception, if any."""
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify(exc: BaseException) -> RetryDecision:
    """
    Decide how the orchestrator should react to a failed request.

    An explicit status code is authoritative. The message is scanned only
    for transports that report the code as text and carry no status.
    """
    status = status_of(exc)

    if status is not None:
        if status in _RETRYABLE_STATUS_CODES:
            return RetryDecision.RETRYABLE
        if 400 <= status < 500 and status not in _NON_INVALID_CLIENT_CODES:
            return RetryDecision.INVALID_REQUEST
        return RetryDecision.FATAL

    # Fallback: look for status code patterns in the message
    exc_str = str(exc)
    for code in _RETRYABLE_STATUS_CODES:
        if str(code) in exc_str:
            return RetryDecision.RETRYABLE

    if "400" in exc_str:
        return RetryDecision.INVALID_REQUEST

    return RetryDecision.FATAL


def backoff_delay_ms(
    attempt: int,
    base_delay_ms: int = BASE_DELAY_MS,
    backoff_factor: int = BACKOFF_FACTOR,
) -> int:
    """Delay before retry number ``attempt`` (1-based): 4000, 8000, ... ms by default."""
    return base_delay_ms * backoff_factor ** attempt


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass
class RetryState:
    """Attempt counter for one orchestration call. Never shared."""

    attempt: int = 0
    max_attempts: int = MAX_ATTEMPTS
    base_delay_ms: int = BASE_DELAY_MS
    backoff_factor: int = BACKOFF_FACTOR

    @property
    def has_attempts_left(self) -> bool:
        return self.attempt < self.max_attempts

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts - 1

    def advance(self) -> int:
        """Move to the next attempt and return the backoff to wait first, in ms."""
        self.attempt += 1
        return backoff_delay_ms(self.attempt, self.base_delay_ms, self.backoff_factor)
