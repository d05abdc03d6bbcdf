"""
Error codes shared by the pipeline and the HTTP boundary.

Every failure the pipeline can produce is one ErrorCode; main.py turns it into
a `{error, code}` body with the matching status.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    MISSING_FIELDS = "MISSING_FIELDS"
    TEXT_TOO_SHORT = "TEXT_TOO_SHORT"
    TEXT_TOO_LONG = "TEXT_TOO_LONG"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    SERVICE_ERROR = "SERVICE_ERROR"
    API_ERROR = "API_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    PARSE_ERROR = "PARSE_ERROR"
    FORMAT_ERROR = "FORMAT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"

    @property
    def status_code(self) -> int:
        return _STATUS[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_STATUS = {
    ErrorCode.MISSING_FIELDS: 400,
    ErrorCode.TEXT_TOO_SHORT: 400,
    ErrorCode.TEXT_TOO_LONG: 400,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.TIMEOUT: 408,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.SERVICE_ERROR: 500,
    ErrorCode.API_ERROR: 500,
    ErrorCode.INVALID_RESPONSE: 500,
    ErrorCode.PARSE_ERROR: 500,
    ErrorCode.FORMAT_ERROR: 500,
    ErrorCode.SERVER_ERROR: 500,
}

_MESSAGES = {
    ErrorCode.MISSING_FIELDS: "Missing required fields: text, writingType and criteria are required",
    ErrorCode.TEXT_TOO_SHORT: "Text must be at least 10 characters",
    ErrorCode.TEXT_TOO_LONG: "Text must be at most 10,000 characters",
    ErrorCode.METHOD_NOT_ALLOWED: "Method not allowed",
    ErrorCode.TIMEOUT: "Analysis timed out. Please try again.",
    ErrorCode.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorCode.SERVICE_ERROR: "Service temporarily unavailable",
    ErrorCode.API_ERROR: "Analysis failed. Please try again.",
    ErrorCode.INVALID_RESPONSE: "Analysis service returned an unexpected response",
    ErrorCode.PARSE_ERROR: "Could not parse analysis results",
    ErrorCode.FORMAT_ERROR: "Analysis results were not in the expected format",
    ErrorCode.SERVER_ERROR: "Analysis failed. Please try again.",
}


class AnalysisError(Exception):
    """Raised by any pipeline stage; `detail` goes to the logs, never to the client."""

    def __init__(self, code: ErrorCode, detail: Optional[str] = None, message: Optional[str] = None):
        super().__init__(detail or code.message)
        self.code = code
        self.detail = detail
        self.message = message or code.message

    @property
    def status_code(self) -> int:
        return self.code.status_code

    def to_body(self) -> dict:
        return {"error": self.message, "code": self.code.value}
