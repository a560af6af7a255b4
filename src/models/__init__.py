"""feedbackFlow domain models: re-exports all public model classes.

    - feedback.py: stored feedback rows and classification results
    - workflow.py: workflow phases, journal records, params and results
"""

from __future__ import annotations

from src.models.feedback import (
    Classification,
    FeedbackRecord,
    FeedbackStatus,
    NewFeedback,
    Sentiment,
    SentimentResult,
    TopicResult,
)
from src.models.workflow import (
    BacklogSweepResult,
    DispatchOutcome,
    DispatchResult,
    FeedbackWorkflowParams,
    StepRecord,
    StepStatus,
    WorkflowInstance,
    WorkflowPhase,
    WorkflowResult,
    instance_id_for,
)

__all__ = [
    "BacklogSweepResult",
    "Classification",
    "DispatchOutcome",
    "DispatchResult",
    "FeedbackRecord",
    "FeedbackStatus",
    "FeedbackWorkflowParams",
    "NewFeedback",
    "Sentiment",
    "SentimentResult",
    "StepRecord",
    "StepStatus",
    "TopicResult",
    "WorkflowInstance",
    "WorkflowPhase",
    "WorkflowResult",
    "instance_id_for",
]
