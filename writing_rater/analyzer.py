"""
Core orchestration / pipeline.

Flow:
1. Validate the raw payload (presence, types, text length)
2. Render the evaluation prompt
3. Single LLM call through the gateway (hard deadline, no retries)
4. Normalize the reply into a result dict (fence strip, brace recovery)
5. Attach processing metadata and return

Every stage short-circuits with an AnalysisError; nothing partial is returned.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import SERVICE_NAME, SERVICE_VERSION, Settings
from .errors import AnalysisError, ErrorCode
from .llm_client import ClaudeGateway, GatewayOutcome, GatewayStatus
from .normalizer import normalize_response, require_result
from .prompts import build_prompt
from .schemas import AnalysisMeta
from .validation import validate_request

logger = logging.getLogger(__name__)

_GATEWAY_ERRORS = {
    GatewayStatus.RATE_LIMITED: ErrorCode.RATE_LIMITED,
    GatewayStatus.TIMEOUT: ErrorCode.TIMEOUT,
    GatewayStatus.UPSTREAM_ERROR: ErrorCode.API_ERROR,
    GatewayStatus.MALFORMED_ENVELOPE: ErrorCode.INVALID_RESPONSE,
}


def assemble_result(data: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Return a copy of `data` with the `_meta` record attached."""
    processed_at = (now or datetime.now(timezone.utc)).isoformat()
    meta = AnalysisMeta(processed_at=processed_at, version=SERVICE_VERSION, service=SERVICE_NAME)
    result = dict(data)
    result["_meta"] = meta.model_dump()
    return result


def _check_outcome(outcome: GatewayOutcome) -> str:
    if outcome.ok:
        return outcome.text
    code = _GATEWAY_ERRORS[outcome.status]
    raise AnalysisError(code, outcome.error_message or outcome.status.value)


async def analyze(
    payload: Any,
    gateway: Optional[ClaudeGateway],
    settings: Settings,
) -> Dict[str, Any]:
    """
    Main analysis pipeline with a single LLM call.

    Args:
        payload: Raw JSON body of the request
        gateway: Configured gateway, or None when no credential is set
        settings: Runtime settings (length bounds, sample size)

    Returns:
        Result dict: one entry per criterion, `overall`, `writing_info`, `_meta`.
    """
    request = validate_request(payload, settings)

    if gateway is None:
        logger.error("analyze: provider credential not configured")
        raise AnalysisError(ErrorCode.SERVICE_ERROR, "provider credential not configured")

    context = build_prompt(request, sample_length=settings.sample_text_length)
    logger.info(
        "analyze: prompt built type=%s criteria=%d words=%d chars=%d",
        request.writing_type,
        len(request.criteria),
        context.word_count,
        context.character_count,
    )

    outcome = await gateway.complete(context.prompt)
    raw = _check_outcome(outcome)
    logger.debug("LLM raw response: %s", raw[:1000])

    parsed = normalize_response(raw)
    data = require_result(parsed)
    logger.info("analyze: parsed kind=%s keys=%d", parsed.kind.value, len(data))

    return assemble_result(data)
