"""FastAPI API routes for feedbackFlow.

Service dependencies are resolved from ``app.state`` via ``Depends`` using
the ``Annotated`` pattern.  Application errors raised here (or below) are
rendered as ``{error, message}`` by ErrorHandlingMiddleware.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                        Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/feedback                   GET     List feedback (source/sentiment filters)
# /api/feedback                   POST    Store feedback → dispatch workflow
# /api/feedback/{id}              GET     One feedback row
# /api/analyze                    POST    Forced inline re-analysis of one row
# /api/process-pending            POST    Backlog sweep over unprocessed rows
# /api/chat                       POST    Ask about recent feedback
# /api/stats                      GET     Aggregate statistics
# /api/workflows/{instance_id}    GET     Workflow instance + journaled steps
# /api/health                     GET     Health check
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Request

from src.api.schemas import (
    AnalyzeRequest,
    ChatRequest,
    ChatResponse,
    CreateFeedbackRequest,
    CreateFeedbackResponse,
    ErrorResponse,
    HealthResponse,
    ProcessPendingResponse,
    StatsResponse,
    WorkflowStatusResponse,
)
from src.interfaces.feedback_store import IFeedbackStore
from src.interfaces.workflow_trigger import IWorkflowTrigger
from src.models.feedback import FeedbackRecord, NewFeedback
from src.pipeline.dispatcher import FeedbackDispatcher
from src.services.chat_service import ChatService
from src.utils.errors import (
    FeedbackNotFoundError,
    StoreUnavailableError,
    WorkflowNotFoundError,
)
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api")

_LIST_DEFAULT_LIMIT = 100
_LIST_MAX_LIMIT = 500


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_feedback_store(request: Request) -> IFeedbackStore:
    """Return the feedback store, or raise if startup did not provide one."""
    store = getattr(request.app.state, "feedback_store", None)
    if store is None:
        raise StoreUnavailableError()
    return store


def _get_dispatcher(request: Request) -> FeedbackDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise StoreUnavailableError(message="Workflow dispatcher not available")
    return dispatcher


def _get_trigger(request: Request) -> IWorkflowTrigger:
    trigger = getattr(request.app.state, "workflow_trigger", None)
    if trigger is None:
        raise StoreUnavailableError(message="Workflow journal not available")
    return trigger


def _get_chat_service(request: Request) -> ChatService:
    chat = getattr(request.app.state, "chat_service", None)
    if chat is None:
        raise StoreUnavailableError(message="Chat service not available")
    return chat


FeedbackStoreDep = Annotated[IFeedbackStore, Depends(_get_feedback_store)]
DispatcherDep = Annotated[FeedbackDispatcher, Depends(_get_dispatcher)]
TriggerDep = Annotated[IWorkflowTrigger, Depends(_get_trigger)]
ChatServiceDep = Annotated[ChatService, Depends(_get_chat_service)]


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


@router.get(
    "/feedback",
    response_model=list[FeedbackRecord],
    responses={503: {"model": ErrorResponse}},
    summary="List feedback, newest first",
)
async def list_feedback(
    store: FeedbackStoreDep,
    source: str | None = None,
    sentiment: str | None = None,
    limit: Annotated[int, Query(ge=1, le=_LIST_MAX_LIMIT)] = _LIST_DEFAULT_LIMIT,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[FeedbackRecord]:
    """Return stored feedback, optionally filtered by source and sentiment."""
    return await store.list_feedback(
        source=source, sentiment=sentiment, limit=limit, offset=offset
    )


@router.post(
    "/feedback",
    response_model=CreateFeedbackResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Submit feedback and start its classification",
)
async def create_feedback(
    body: CreateFeedbackRequest,
    store: FeedbackStoreDep,
    dispatcher: DispatcherDep,
) -> CreateFeedbackResponse:
    """Store the item unclassified, then dispatch its workflow.

    Dispatch never fails the request: when neither the workflow nor the
    inline fallback succeeds the row stays pending for the backlog sweep.
    """
    record = await store.insert_feedback(
        NewFeedback(
            source=body.source,
            content=body.content,
            author=body.author,
            timestamp=body.timestamp,
        )
    )
    dispatch = await dispatcher.dispatch(record.id)
    _logger.info(
        "feedback_received",
        feedback_id=record.id,
        source=record.source,
        dispatch=dispatch.outcome.value,
    )
    return CreateFeedbackResponse(
        id=record.id,
        success=True,
        instance_id=dispatch.instance_id,
        dispatch=dispatch.outcome,
    )


@router.get(
    "/feedback/{feedback_id}",
    response_model=FeedbackRecord,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Get one feedback item",
)
async def get_feedback(feedback_id: int, store: FeedbackStoreDep) -> FeedbackRecord:
    record = await store.get_feedback(feedback_id)
    if record is None:
        raise FeedbackNotFoundError(
            message=f"Feedback with id {feedback_id} not found",
            provider_name=store.get_provider_name(),
            feedback_id=feedback_id,
        )
    return record


@router.post(
    "/analyze",
    response_model=FeedbackRecord,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Re-classify one feedback item now",
)
async def analyze_feedback(body: AnalyzeRequest, dispatcher: DispatcherDep) -> FeedbackRecord:
    """Run the workflow inline with ``force`` set and return the updated row."""
    return await dispatcher.reanalyze(body.id)


@router.post(
    "/process-pending",
    response_model=ProcessPendingResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Dispatch every unprocessed feedback item",
)
async def process_pending(dispatcher: DispatcherDep) -> ProcessPendingResponse:
    sweep = await dispatcher.sweep_backlog()
    return ProcessPendingResponse(
        processed=sweep.attempted,
        dispatched=sweep.dispatched,
        ran_inline=sweep.ran_inline,
        failed=sweep.failed,
    )


# ---------------------------------------------------------------------------
# Chat & statistics
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Ask a question about recent feedback",
)
async def chat(body: ChatRequest, chat_service: ChatServiceDep) -> ChatResponse:
    return ChatResponse(response=await chat_service.answer(body.query))


@router.get(
    "/stats",
    response_model=StatsResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Aggregate feedback statistics",
)
async def get_stats(store: FeedbackStoreDep) -> StatsResponse:
    return StatsResponse.from_stats(await store.get_stats())


# ---------------------------------------------------------------------------
# Workflows & health
# ---------------------------------------------------------------------------


@router.get(
    "/workflows/{instance_id}",
    response_model=WorkflowStatusResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Inspect a workflow instance",
)
async def get_workflow(
    instance_id: str,
    request: Request,
    trigger: TriggerDep,
) -> WorkflowStatusResponse:
    """Return the journal row of *instance_id* with its committed steps."""
    instance = await trigger.get_instance(instance_id)
    if instance is None:
        raise WorkflowNotFoundError(
            message=f"Workflow instance {instance_id} not found",
            instance_id=instance_id,
        )
    step_store = request.app.state.step_store
    running = getattr(trigger, "is_running", None)
    return WorkflowStatusResponse(
        instance=instance,
        steps=await step_store.list_steps(instance_id),
        running=bool(running and running(instance_id)),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return version, the active LLM provider, and the running workflow count."""
    state = request.app.state
    llm = getattr(state, "llm_provider", None)
    trigger = getattr(state, "workflow_trigger", None)
    store_ok = getattr(state, "feedback_store", None) is not None
    return HealthResponse(
        status="healthy" if store_ok else "degraded",
        version=getattr(state, "version", "0.1.0"),
        llm_provider=llm.get_provider_name() if llm is not None else None,
        running_workflows=getattr(trigger, "running_count", 0),
    )
