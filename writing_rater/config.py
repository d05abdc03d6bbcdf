"""
Runtime settings for the writing rater.

Rationale:
- Read the environment once at startup and pass the result around explicitly.
- The provider credential lives here and is injected into the gateway; nothing
  else reads it from the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional

SERVICE_NAME = "writing-rater"
SERVICE_VERSION = "1.0.0"

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_API_VERSION = "2023-06-01"


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    api_version: str = DEFAULT_API_VERSION
    max_tokens: int = 1500
    timeout_seconds: float = 25.0
    min_text_length: int = 10
    max_text_length: int = 10_000
    sample_text_length: int = 150
    environment: str = "production"

    @property
    def api_key_configured(self) -> bool:
        return bool(self.api_key)

    def __repr__(self) -> str:
        # Keep the credential out of tracebacks and debug logs
        return (
            f"Settings(model={self.model!r}, api_url={self.api_url!r}, "
            f"max_tokens={self.max_tokens}, timeout_seconds={self.timeout_seconds}, "
            f"api_key_configured={self.api_key_configured})"
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def load_settings() -> Settings:
    """Build Settings from the process environment (call after .env loading)."""
    api_key = os.getenv("CLAUDE_API_KEY") or os.getenv("ANTHROPIC_API_KEY")
    return Settings(
        api_key=api_key.strip() if api_key and api_key.strip() else None,
        model=os.getenv("CLAUDE_MODEL", DEFAULT_MODEL),
        api_url=os.getenv("CLAUDE_API_URL", DEFAULT_API_URL),
        api_version=os.getenv("ANTHROPIC_VERSION", DEFAULT_API_VERSION),
        max_tokens=_env_int("MAX_LLM_TOKENS", 1500),
        timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 25.0),
        min_text_length=_env_int("MIN_TEXT_LENGTH", 10),
        max_text_length=_env_int("MAX_TEXT_LENGTH", 10_000),
        sample_text_length=_env_int("SAMPLE_TEXT_LENGTH", 150),
        environment=os.getenv("APP_ENV", "production"),
    )
