"""
Response Normalizer: turn the model's free text into a result dict.

Two tiers, both followed by the same required-key check:
  1. strict JSON parse of the reply with surrounding code fences removed
  2. parse of the outermost {...} substring
The outcome is tagged (ParseKind) instead of raised; require_result() turns a
failure into an AnalysisError for the pipeline.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import AnalysisError, ErrorCode

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("overall", "writing_info")

_LEADING_FENCE = re.compile(r"\A\s*```[\w+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```\s*\Z")


class ParseKind(str, Enum):
    PARSED = "parsed"
    FENCE_STRIPPED = "fence_stripped"
    BRACE_RECOVERED = "brace_recovered"
    FAILED = "failed"


@dataclass
class ParseOutcome:
    kind: ParseKind
    data: Optional[Dict[str, Any]] = None
    failure: Optional[ErrorCode] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.kind != ParseKind.FAILED


def strip_fences(text: str) -> Tuple[str, bool]:
    """Remove a leading ```lang and trailing ``` marker. Returns (text, stripped?)."""
    stripped = text.strip()
    out = _LEADING_FENCE.sub("", stripped, count=1)
    out = _TRAILING_FENCE.sub("", out, count=1)
    return out.strip(), out != stripped


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def _parse_object(text: str) -> Tuple[Optional[Dict[str, Any]], str]:
    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except (json.JSONDecodeError, ValueError) as e:
        return None, f"invalid JSON: {e}"
    if not isinstance(data, dict):
        return None, f"expected a JSON object, got {type(data).__name__}"
    missing = [k for k in REQUIRED_KEYS if k not in data]
    if missing:
        return None, "missing required keys: " + ", ".join(missing)
    return data, ""


def _outermost_braces(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def normalize_response(raw: str) -> ParseOutcome:
    """Parse a raw model reply. Never raises; all-or-nothing on the data."""
    cleaned, had_fences = strip_fences(raw or "")

    data, first_reason = _parse_object(cleaned)
    if data is not None:
        return ParseOutcome(kind=ParseKind.FENCE_STRIPPED if had_fences else ParseKind.PARSED, data=data)

    candidate = _outermost_braces(cleaned)
    if candidate is None:
        return ParseOutcome(
            kind=ParseKind.FAILED,
            failure=ErrorCode.FORMAT_ERROR,
            reason=f"no brace-delimited object found ({first_reason})",
        )

    data, second_reason = _parse_object(candidate)
    if data is not None:
        return ParseOutcome(kind=ParseKind.BRACE_RECOVERED, data=data)

    return ParseOutcome(kind=ParseKind.FAILED, failure=ErrorCode.PARSE_ERROR, reason=second_reason)


def require_result(outcome: ParseOutcome) -> Dict[str, Any]:
    if outcome.ok:
        return outcome.data
    logger.error("normalizer.failed code=%s reason=%s", outcome.failure.value, outcome.reason)
    raise AnalysisError(outcome.failure, outcome.reason)
