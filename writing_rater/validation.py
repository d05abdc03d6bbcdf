"""
Input validation for /analyze.

Runs before anything touches the model: a payload that fails here never
reaches the prompt builder.
"""

import logging
from typing import Any, List

from .config import Settings
from .errors import AnalysisError, ErrorCode
from .schemas import AnalysisRequest

logger = logging.getLogger(__name__)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple)) and len(value) == 0:
        return True
    return False


def _dedupe(criteria: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for name in criteria:
        if name not in seen:
            seen.add(name)
            out.append(name)
    return out


def validate_request(payload: Any, settings: Settings) -> AnalysisRequest:
    """
    Check presence and text length bounds of a raw /analyze payload.

    Text is judged first so that its length errors do not depend on the
    other fields. A field of the wrong type or left blank counts as missing.
    Raises AnalysisError; returns the validated request.
    """
    if not isinstance(payload, dict):
        raise AnalysisError(ErrorCode.MISSING_FIELDS, "payload is not a JSON object")

    text = payload.get("text")
    if _is_missing(text):
        raise AnalysisError(ErrorCode.MISSING_FIELDS, "text is missing")
    if not isinstance(text, str):
        raise AnalysisError(ErrorCode.MISSING_FIELDS, f"text has type {type(text).__name__}")

    if len(text) < settings.min_text_length:
        raise AnalysisError(
            ErrorCode.TEXT_TOO_SHORT,
            f"text length={len(text)}",
            message=f"Text must be at least {settings.min_text_length} characters",
        )
    if len(text) > settings.max_text_length:
        raise AnalysisError(
            ErrorCode.TEXT_TOO_LONG,
            f"text length={len(text)}",
            message=f"Text must be at most {settings.max_text_length:,} characters",
        )

    writing_type = payload.get("writingType")
    criteria = payload.get("criteria")
    missing = [k for k, v in (("writingType", writing_type), ("criteria", criteria)) if _is_missing(v)]
    if missing:
        raise AnalysisError(ErrorCode.MISSING_FIELDS, "missing: " + ", ".join(missing))

    if not isinstance(writing_type, str) or not writing_type.strip():
        raise AnalysisError(ErrorCode.MISSING_FIELDS, "writingType is not a non-blank string")
    if not isinstance(criteria, list) or not all(isinstance(c, str) and c.strip() for c in criteria):
        raise AnalysisError(ErrorCode.MISSING_FIELDS, "criteria is not a list of non-blank strings")

    unique = _dedupe(criteria)
    if len(unique) != len(criteria):
        logger.debug("validation: collapsed duplicate criteria %d -> %d", len(criteria), len(unique))

    return AnalysisRequest(text=text, writingType=writing_type, criteria=unique)
