"""feedbackFlow API layer: routes, schemas, and middleware."""

from src.api.middleware import (
    CorsConfig,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ChatResponse,
    CreateFeedbackResponse,
    ErrorResponse,
    HealthResponse,
    ProcessPendingResponse,
    StatsResponse,
)

__all__ = [
    "ChatResponse",
    "CorsConfig",
    "CreateFeedbackResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "ProcessPendingResponse",
    "RequestLoggingMiddleware",
    "StatsResponse",
    "configure_cors",
    "router",
]
