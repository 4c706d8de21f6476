"""
src/config.py
==============
Runtime Settings — CallBrain

Responsibility:
    - Load settings from the environment (``.env`` via python-dotenv)
    - Provide the size ceilings and retry constants used by the
      orchestrator
    - Fail fast with ConfigurationError on a missing credential or a
      malformed numeric value

This module does NOT:
    - Create API clients
    - Validate uploads
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from src.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger("callbrain.config")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_MODEL: str = "gpt-4o-audio-preview"
DEFAULT_MAX_ATTEMPTS: int = 3
DEFAULT_BASE_DELAY_MS: int = 2000
DEFAULT_BACKOFF_FACTOR: int = 2
DEFAULT_INLINE_LIMIT_BYTES: int = 10 * 1024 * 1024   # post-conversion ceiling
DEFAULT_UPLOAD_LIMIT_BYTES: int = 100 * 1024 * 1024  # upfront ceiling


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings for one process."""

    api_key: str | None = None
    model: str = DEFAULT_MODEL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    backoff_factor: int = DEFAULT_BACKOFF_FACTOR
    inline_limit_bytes: int = DEFAULT_INLINE_LIMIT_BYTES
    upload_limit_bytes: int = DEFAULT_UPLOAD_LIMIT_BYTES
    webhook_url: str | None = None

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigurationError."""
        if not self.api_key:
            raise ConfigurationError(
                "API Key is missing. Please check your environment configuration."
            )
        return self.api_key


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}.") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}.")
    return value


def load_settings() -> Settings:
    """
    Build Settings from environment variables.

    Raises:
        ConfigurationError: If a numeric variable is not a positive integer.
    """
    settings = Settings(
        api_key=os.environ.get("OPENAI_API_KEY") or None,
        model=os.environ.get("CALLBRAIN_MODEL") or DEFAULT_MODEL,
        max_attempts=_int_env("CALLBRAIN_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
        base_delay_ms=_int_env("CALLBRAIN_BASE_DELAY_MS", DEFAULT_BASE_DELAY_MS),
        backoff_factor=_int_env("CALLBRAIN_BACKOFF_FACTOR", DEFAULT_BACKOFF_FACTOR),
        inline_limit_bytes=_int_env(
            "CALLBRAIN_INLINE_LIMIT_BYTES", DEFAULT_INLINE_LIMIT_BYTES
        ),
        upload_limit_bytes=_int_env(
            "CALLBRAIN_UPLOAD_LIMIT_BYTES", DEFAULT_UPLOAD_LIMIT_BYTES
        ),
        webhook_url=os.environ.get("WEBHOOK_URL") or None,
    )
    logger.debug("Settings loaded: model=%s, max_attempts=%d", settings.model, settings.max_attempts)
    return settings
