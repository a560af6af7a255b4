"""API middleware: CORS, request logging, and error handling.

Middleware is a stack (last added runs first).  ``create_app`` adds
ErrorHandlingMiddleware before RequestLoggingMiddleware, so the request
log sees the final status code after an application error has been
turned into a JSON body.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.config.settings import Settings
from src.utils.errors import (
    FeedbackFlowError,
    FeedbackNotFoundError,
    ProviderUnavailableError,
    StoreUnavailableError,
    WorkflowError,
    WorkflowNotFoundError,
)
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


class CorsConfig(BaseModel):
    """Immutable CORS policy handed to :func:`configure_cors`."""

    model_config = ConfigDict(frozen=True)

    allow_origins: tuple[str, ...] = ("*",)
    allow_methods: tuple[str, ...] = ("GET", "POST", "PUT", "OPTIONS")
    allow_headers: tuple[str, ...] = ("Content-Type",)

    @classmethod
    def from_settings(cls, settings: Settings) -> CorsConfig:
        return cls(
            allow_origins=tuple(settings.cors_allowed_origins),
            allow_methods=tuple(settings.cors_allowed_methods),
            allow_headers=tuple(settings.cors_allowed_headers),
        )


def configure_cors(app: FastAPI, config: CorsConfig | None = None) -> None:
    """Add CORS middleware built from *config* (permissive defaults)."""
    config = config or CorsConfig()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allow_origins),
        allow_methods=list(config.allow_methods),
        allow_headers=list(config.allow_headers),
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: tuple[tuple[type[FeedbackFlowError], int], ...] = (
    (FeedbackNotFoundError, 404),
    (WorkflowNotFoundError, 404),
    (StoreUnavailableError, 503),
    (ProviderUnavailableError, 503),
    (WorkflowError, 422),
)


def status_for(exc: FeedbackFlowError) -> int:
    """Return the HTTP status an application error maps to (500 if unlisted)."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``FeedbackFlowError`` subclasses into ``{error, message}`` JSON.

    Details are logged server-side; the client only sees the error class
    name and its message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except FeedbackFlowError as exc:
            status = status_for(exc)
            log = _logger.warning if status < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status,
            )
            body = ErrorResponse(error=type(exc).__name__, message=exc.message)
            return JSONResponse(status_code=status, content=body.model_dump())
