"""
Minimal LLM gateway for the Anthropic Messages API.

Rationale:
- One outbound call per analysis, bounded by a hard deadline.
- Classify the outcome instead of raising, so the caller maps it to an error code.
- No retries / no fallback; resubmitting is up to the client.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


class GatewayStatus(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    TIMEOUT = "timeout"
    MALFORMED_ENVELOPE = "malformed_envelope"


@dataclass
class GatewayOutcome:
    status: GatewayStatus
    text: str = ""
    status_code: Optional[int] = None
    error_message: str = ""
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == GatewayStatus.SUCCESS


def extract_text(data: Any) -> Optional[str]:
    """Pull the generated text out of a Messages API envelope, or None if absent."""
    if not isinstance(data, dict):
        return None
    content = data.get("content")
    if not isinstance(content, list) or not content:
        return None

    parts = []
    for block in content:
        if not isinstance(block, dict):
            continue
        if block.get("type", "text") != "text":
            continue
        text = block.get("text")
        if isinstance(text, str):
            parts.append(text)
    if not parts:
        return None
    return "".join(parts)


class ClaudeGateway:
    """Sends one prompt to the provider and classifies what came back."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        api_url: str,
        api_version: str,
        max_tokens: int = 1500,
        timeout_seconds: float = 25.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self.model = model
        self.api_url = api_url
        self.api_version = api_version
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ClaudeGateway":
        return cls(
            settings.api_key,
            model=settings.model,
            api_url=settings.api_url,
            api_version=settings.api_version,
            max_tokens=settings.max_tokens,
            timeout_seconds=settings.timeout_seconds,
            transport=transport,
        )

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": self.api_version,
        }

    async def _post(self, prompt: str) -> httpx.Response:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        ) as client:
            return await client.post(self.api_url, json=payload, headers=self._headers())

    async def complete(self, prompt: str) -> GatewayOutcome:
        start = time.monotonic()

        def _elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            resp = await asyncio.wait_for(self._post(prompt), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("gateway.timeout model=%s after=%.1fs", self.model, self.timeout_seconds)
            return GatewayOutcome(
                status=GatewayStatus.TIMEOUT,
                error_message=f"Timeout after {self.timeout_seconds}s",
                latency_ms=_elapsed(),
            )
        except httpx.HTTPError as e:
            logger.error("gateway.transport_error model=%s err=%s", self.model, type(e).__name__)
            return GatewayOutcome(
                status=GatewayStatus.UPSTREAM_ERROR,
                error_message=f"{type(e).__name__}: {e}",
                latency_ms=_elapsed(),
            )

        latency_ms = _elapsed()
        logger.info(
            "gateway.call model=%s status=%d latency_ms=%d",
            self.model,
            resp.status_code,
            latency_ms,
        )

        if resp.status_code == 429:
            return GatewayOutcome(
                status=GatewayStatus.RATE_LIMITED,
                status_code=429,
                error_message="Rate limited by provider",
                latency_ms=latency_ms,
            )

        if resp.status_code != 200:
            return GatewayOutcome(
                status=GatewayStatus.UPSTREAM_ERROR,
                status_code=resp.status_code,
                error_message=f"Claude API error: {resp.status_code}",
                latency_ms=latency_ms,
            )

        try:
            data = resp.json()
        except ValueError:
            data = None

        text = extract_text(data)
        if text is None:
            return GatewayOutcome(
                status=GatewayStatus.MALFORMED_ENVELOPE,
                status_code=200,
                error_message="Provider envelope has no text content",
                latency_ms=latency_ms,
            )

        return GatewayOutcome(
            status=GatewayStatus.SUCCESS,
            text=text,
            status_code=200,
            latency_ms=latency_ms,
        )
