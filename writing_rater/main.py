"""
FastAPI entrypoint with a single /analyze route.

- Loads .env (optional) and configures logging
- Builds the gateway once from the provider credential
- Maps pipeline errors to `{error, code}` bodies with stable status codes
"""

import os
import logging
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv, find_dotenv

# Load environment variables from .env file (optional).
# On hosted deployments secrets come from the process environment instead.
# Some editors save .env as UTF-16, so support both UTF-8 and UTF-16.
_dotenv_path = find_dotenv(usecwd=True) or None
if _dotenv_path:
    try:
        load_dotenv(_dotenv_path)
    except UnicodeError:
        load_dotenv(_dotenv_path, encoding="utf-16")

# Configure logging with environment-based level
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .analyzer import analyze
from .config import SERVICE_NAME, SERVICE_VERSION, Settings, load_settings
from .errors import AnalysisError, ErrorCode
from .llm_client import ClaudeGateway
from .schemas import ErrorResponse, HealthResponse

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    405: {"model": ErrorResponse},
    408: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _error_response(err: AnalysisError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content=err.to_body())


def create_app(settings: Optional[Settings] = None, gateway: Optional[ClaudeGateway] = None) -> FastAPI:
    settings = settings or load_settings()
    if gateway is None and settings.api_key_configured:
        gateway = ClaudeGateway.from_settings(settings)
    if gateway is None:
        logger.warning("Claude API key not configured; /analyze will return SERVICE_ERROR")

    app = FastAPI(title="Writing Rater", version=SERVICE_VERSION)
    app.state.settings = settings
    app.state.gateway = gateway

    @app.middleware("http")
    async def _cors_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in CORS_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return _error_response(AnalysisError(ErrorCode.METHOD_NOT_ALLOWED))
        return await http_exception_handler(request, exc)

    @app.get("/")
    def root():
        return {"ok": True, "service": SERVICE_NAME}

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request):
        current: Settings = request.app.state.settings
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=SERVICE_VERSION,
            service=SERVICE_NAME,
            environment=current.environment,
            api_key_configured=current.api_key_configured,
        )

    @app.options("/analyze")
    def analyze_preflight(request: Request):
        headers = dict(CORS_HEADERS)
        # Allow whatever headers the browser asks for
        requested = request.headers.get("access-control-request-headers")
        if requested:
            headers["Access-Control-Allow-Headers"] = requested
        return Response(status_code=200, headers=headers)

    @app.post("/analyze", responses=_ERROR_RESPONSES)
    async def analyze_endpoint(request: Request):
        session_id = request.headers.get("x-session-id")
        try:
            payload = await request.json()
        except ValueError:
            payload = None

        fields = payload if isinstance(payload, dict) else {}
        criteria = fields.get("criteria")
        logger.info(
            "analyze.request session_id=%s has_text=%s writing_type=%s criteria=%s",
            session_id,
            bool(fields.get("text")),
            fields.get("writingType"),
            len(criteria) if isinstance(criteria, list) else None,
        )

        try:
            result = await analyze(payload, request.app.state.gateway, request.app.state.settings)
            response = JSONResponse(status_code=200, content=result)
        except AnalysisError as e:
            log = logger.warning if e.status_code < 500 else logger.error
            log("analyze.failed session_id=%s code=%s detail=%s", session_id, e.code.value, e.detail)
            return _error_response(e)
        except Exception as e:
            logger.error("analyze.failed session_id=%s code=%s err=%s", session_id, ErrorCode.SERVER_ERROR.value, e, exc_info=True)
            return _error_response(AnalysisError(ErrorCode.SERVER_ERROR, str(e)))

        overall = result.get("overall")
        logger.info(
            "analyze.response session_id=%s overall_score=%s",
            session_id,
            overall.get("score") if isinstance(overall, dict) else None,
        )
        return response

    return app


app = create_app()
