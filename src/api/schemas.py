"""Pydantic request/response schemas for the feedbackFlow API.

Request schemas end with "Request", response schemas with "Response".
Stored feedback rows are returned as :class:`FeedbackRecord` directly so
the wire shape always matches the ``feedback`` table.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.feedback import FeedbackRecord
from src.models.workflow import DispatchOutcome, StepRecord, WorkflowInstance


class CreateFeedbackRequest(BaseModel):
    """A new feedback item submitted by a client."""

    source: str = Field(min_length=1, max_length=200, description="e.g. github, discord, email")
    content: str = Field(min_length=1, max_length=10000)
    author: str | None = Field(default=None, max_length=200)
    timestamp: datetime | None = Field(
        default=None, description="When the feedback was given; defaults to now"
    )


class CreateFeedbackResponse(BaseModel):
    """Returned after a feedback item is stored and dispatched."""

    id: int
    success: bool = True
    instance_id: str
    dispatch: DispatchOutcome


class AnalyzeRequest(BaseModel):
    """Forced re-analysis of one stored item."""

    id: int = Field(gt=0)


class ProcessPendingResponse(BaseModel):
    """Summary of a backlog sweep; ``processed`` is the number attempted."""

    processed: int
    dispatched: int
    ran_inline: int
    failed: int


class ChatRequest(BaseModel):
    query: str = Field(min_length=1, max_length=2000)


class ChatResponse(BaseModel):
    response: str


class CountBucket(BaseModel):
    """One ``GROUP BY`` row; ``key`` is a source name or sentiment label."""

    key: str | None
    count: int


class TrendPoint(BaseModel):
    date: str
    sentiment: str | None
    count: int


class StatsResponse(BaseModel):
    """Aggregate statistics for the dashboard."""

    total: int
    processed: int
    pending: int
    by_sentiment: list[CountBucket] = Field(default_factory=list)
    by_source: list[CountBucket] = Field(default_factory=list)
    recent_trends: list[TrendPoint] = Field(default_factory=list)

    @classmethod
    def from_stats(cls, stats: dict[str, Any]) -> StatsResponse:
        return cls(
            total=stats["total"],
            processed=stats["processed"],
            pending=stats["pending"],
            by_sentiment=[
                CountBucket(key=row["sentiment"], count=row["count"])
                for row in stats["by_sentiment"]
            ],
            by_source=[
                CountBucket(key=row["source"], count=row["count"])
                for row in stats["by_source"]
            ],
            recent_trends=[TrendPoint(**row) for row in stats["recent_trends"]],
        )


class WorkflowStatusResponse(BaseModel):
    """A workflow instance and its journaled steps."""

    instance: WorkflowInstance
    steps: list[StepRecord] = Field(default_factory=list)
    running: bool = False


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    llm_provider: str | None = None
    running_workflows: int = 0


class ErrorResponse(BaseModel):
    """Standard error body returned by the error-handling middleware."""

    error: str
    message: str


__all__ = [
    "AnalyzeRequest",
    "ChatRequest",
    "ChatResponse",
    "CountBucket",
    "CreateFeedbackRequest",
    "CreateFeedbackResponse",
    "ErrorResponse",
    "FeedbackRecord",
    "HealthResponse",
    "ProcessPendingResponse",
    "StatsResponse",
    "TrendPoint",
    "WorkflowStatusResponse",
]
