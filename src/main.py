"""feedbackFlow FastAPI application entry point.

Wires together the providers, the workflow pipeline, and the routes via
dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml``, configures structured logging, and serves the
dashboard page from ``frontend/index.html``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.responses import FileResponse

from src.api.middleware import (
    CorsConfig,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.pipeline.dispatcher import FeedbackDispatcher
from src.pipeline.feedback_workflow import FeedbackWorkflow
from src.pipeline.trigger import LocalWorkflowTrigger
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.feedback.sqlite_feedback_store import SQLiteFeedbackStore
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.workflow.sqlite_step_store import SQLiteStepStore
from src.services.chat_service import ChatService
from src.services.feedback_classifier import FeedbackClassifier
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_FRONTEND_DIR = Path(__file__).resolve().parent.parent / "frontend"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# LLM provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider | None:
    """Select the first configured LLM provider.

    Priority order: Anthropic -> OpenAI -> Ollama.  ``None`` when nothing is
    configured; classification then runs on the keyword fallbacks alone.
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    if app_settings.ollama_base_url:
        return OllamaLLMProvider(settings=app_settings)
    return None


def _build_all(app_settings: Settings, config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    classification_cfg = config.get("classification", {})
    chat_cfg = config.get("chat", {})

    llm = _build_llm_provider(app_settings)
    feedback_store = SQLiteFeedbackStore(db_path=app_settings.feedback_db_path)
    step_store = SQLiteStepStore(db_path=app_settings.workflow_db_path)

    classifier = FeedbackClassifier(
        llm=llm,
        timeout=app_settings.oracle_timeout_seconds,
        temperature=classification_cfg.get("temperature", 0.1),
        sentiment_max_tokens=classification_cfg.get("sentiment_max_tokens", 16),
        topics_max_tokens=classification_cfg.get("topics_max_tokens", 64),
    )
    workflow = FeedbackWorkflow(
        feedback_store=feedback_store,
        classifier=classifier,
        step_store=step_store,
    )
    trigger = LocalWorkflowTrigger(
        workflow=workflow,
        step_store=step_store,
        max_concurrent=app_settings.max_concurrent_workflows,
    )
    dispatcher = FeedbackDispatcher(
        trigger=trigger,
        workflow=workflow,
        feedback_store=feedback_store,
        sweep_concurrency=app_settings.sweep_concurrency,
    )
    chat_service = ChatService(
        llm=llm,
        feedback_store=feedback_store,
        cache=MemoryCacheProvider(ttl=app_settings.chat_cache_ttl),
        context_limit=app_settings.chat_context_limit,
        timeout=app_settings.oracle_timeout_seconds,
        temperature=chat_cfg.get("temperature", 0.3),
        max_tokens=chat_cfg.get("max_tokens", 512),
    )

    return {
        "settings": app_settings,
        "version": config.get("app", {}).get("version", "0.1.0"),
        "llm_provider": llm,
        "feedback_store": feedback_store,
        "step_store": step_store,
        "workflow": workflow,
        "workflow_trigger": trigger,
        "dispatcher": dispatcher,
        "chat_service": chat_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build and initialise all components on startup, drain workflows on shutdown."""
    app_settings: Settings = application.state.settings
    components = _build_all(app_settings, load_config(settings=app_settings))

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["feedback_store"].initialize()
    await components["step_store"].initialize()

    trigger: LocalWorkflowTrigger = components["workflow_trigger"]
    resumed = 0
    if app_settings.workflow_resume_on_startup:
        resumed = await trigger.resume_incomplete()

    llm = components["llm_provider"]
    _logger.info(
        "app_startup",
        version=components["version"],
        environment=app_settings.app_env,
        llm_provider=llm.get_provider_name() if llm is not None else None,
        resumed_workflows=resumed,
    )

    yield

    await trigger.drain()
    _logger.info("app_shutdown", message="Workflows drained")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings
    application = FastAPI(
        title="feedbackFlow API",
        version="0.1.0",
        description=(
            "Collect user feedback, classify its sentiment and topics through "
            "a durable step-based workflow, and explore the results."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, CorsConfig.from_settings(app_settings))

    # -- API routes --
    application.include_router(api_router)

    # -- Dashboard --
    if (_FRONTEND_DIR / "index.html").exists():

        @application.get("/", include_in_schema=False)
        async def serve_index() -> FileResponse:
            return FileResponse(str(_FRONTEND_DIR / "index.html"))

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
