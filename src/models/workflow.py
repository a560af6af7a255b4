"""Workflow state models for the feedback processing pipeline.

Defines the phase state machine, the journal records persisted by the step
store, the canonical parameter contract, and the result types returned by
the workflow and the dispatcher.

Architecture note:
    A ``WorkflowInstance`` is keyed by ``feedback-<id>`` and holds the
    current phase plus bookkeeping.  Each committed step is a separate
    ``StepRecord``; on resume the executor replays COMPLETED records instead
    of re-running the step body.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.models.feedback import Sentiment
from src.utils.errors import WorkflowError

INSTANCE_PREFIX = "feedback-"


def instance_id_for(feedback_id: int) -> str:
    """Return the workflow instance id for a feedback row."""
    return f"{INSTANCE_PREFIX}{feedback_id}"


# ---------------------------------------------------------------------------
# WorkflowPhase: the state machine driven by FeedbackWorkflow.
# ---------------------------------------------------------------------------
class WorkflowPhase(str, Enum):  # noqa: UP042: StrEnum requires Python 3.11+
    """Phases of one feedback processing run.

        QUEUED → RETRIEVING → SKIPPED → DONE
                            ↘ ANALYZING_SENTIMENT → EXTRACTING_TOPICS → SAVING → DONE

    ``FAILED`` is absorbing and reachable from every non-terminal phase.
    """

    QUEUED = "QUEUED"
    RETRIEVING = "RETRIEVING"
    SKIPPED = "SKIPPED"
    ANALYZING_SENTIMENT = "ANALYZING_SENTIMENT"
    EXTRACTING_TOPICS = "EXTRACTING_TOPICS"
    SAVING = "SAVING"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowPhase.DONE, WorkflowPhase.FAILED)

    def can_transition_to(self, target: WorkflowPhase) -> bool:
        """Return ``True`` if moving from this phase to *target* is legal."""
        if target is WorkflowPhase.FAILED:
            return not self.is_terminal
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[WorkflowPhase, frozenset[WorkflowPhase]] = {
    WorkflowPhase.QUEUED: frozenset({WorkflowPhase.RETRIEVING}),
    WorkflowPhase.RETRIEVING: frozenset(
        {WorkflowPhase.SKIPPED, WorkflowPhase.ANALYZING_SENTIMENT}
    ),
    WorkflowPhase.SKIPPED: frozenset({WorkflowPhase.DONE}),
    WorkflowPhase.ANALYZING_SENTIMENT: frozenset({WorkflowPhase.EXTRACTING_TOPICS}),
    WorkflowPhase.EXTRACTING_TOPICS: frozenset({WorkflowPhase.SAVING}),
    WorkflowPhase.SAVING: frozenset({WorkflowPhase.DONE}),
    WorkflowPhase.DONE: frozenset(),
    WorkflowPhase.FAILED: frozenset(),
}


class StepStatus(str, Enum):  # noqa: UP042
    """Outcome recorded for one step execution."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ---------------------------------------------------------------------------
# Journal records
# ---------------------------------------------------------------------------
class StepRecord(BaseModel):
    """A step result committed to the journal.

    Only ``COMPLETED`` records are replayed.  A ``FAILED`` record keeps the
    error text for diagnostics and is overwritten by the next attempt.
    """

    model_config = ConfigDict(frozen=True)

    instance_id: str
    step_name: str
    status: StepStatus
    output: Any = None
    error: str | None = None
    attempts: int = Field(default=1, ge=1)
    updated_at: datetime | None = None


class WorkflowInstance(BaseModel):
    """Journal row for one workflow instance."""

    model_config = ConfigDict(frozen=True)

    instance_id: str
    params: dict[str, Any] = Field(default_factory=dict)
    phase: WorkflowPhase = WorkflowPhase.QUEUED
    result: dict[str, Any] | None = None
    error: str | None = None
    attempts: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Parameters & results
# ---------------------------------------------------------------------------
class FeedbackWorkflowParams(BaseModel):
    """The one accepted parameter shape for a feedback workflow run.

    ``feedbackId`` is required; a payload without it is rejected before any
    step runs.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    feedback_id: int = Field(alias="feedbackId", gt=0)
    force: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> FeedbackWorkflowParams:
        """Validate a raw params dict, raising :class:`WorkflowError` if invalid."""
        if not payload or "feedbackId" not in payload:
            raise WorkflowError(
                message=f"Feedback ID is required but was not provided. Params: {payload!r}"
            )
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise WorkflowError(message=f"Invalid workflow params: {exc}") from exc

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class WorkflowResult(BaseModel):
    """Terminal success value of a workflow run."""

    model_config = ConfigDict(frozen=True)

    feedback_id: int
    skipped: bool = False
    message: str = "Feedback processed"
    sentiment: Sentiment | None = None
    sentiment_score: float | None = None
    topics: str | None = None


class DispatchOutcome(str, Enum):  # noqa: UP042
    """How a dispatch request was ultimately satisfied."""

    DISPATCHED_ASYNC = "DISPATCHED_ASYNC"
    RAN_INLINE = "RAN_INLINE"
    FAILED = "FAILED"


class DispatchResult(BaseModel):
    """Result of dispatching one feedback row for processing."""

    model_config = ConfigDict(frozen=True)

    feedback_id: int
    instance_id: str
    outcome: DispatchOutcome
    error: str | None = None
    result: WorkflowResult | None = None


class BacklogSweepResult(BaseModel):
    """Summary of one backlog sweep over unprocessed rows."""

    model_config = ConfigDict(frozen=True)

    attempted: int = 0
    dispatched: int = 0
    ran_inline: int = 0
    failed: int = 0
    results: list[DispatchResult] = Field(default_factory=list)
