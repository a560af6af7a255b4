"""Unit tests for the feedback and workflow models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models.feedback import (
    Classification,
    FeedbackRecord,
    FeedbackStatus,
    NewFeedback,
    Sentiment,
    SentimentResult,
)
from src.models.workflow import (
    FeedbackWorkflowParams,
    WorkflowPhase,
    instance_id_for,
)
from src.utils.errors import WorkflowError


# ======================================================================
# Feedback models
# ======================================================================


class TestFeedbackRecord:
    def test_pending_row(self) -> None:
        record = FeedbackRecord(id=1, source="email", content="hello")
        assert record.processed is False
        assert record.status is FeedbackStatus.PENDING
        assert record.topic_list == []

    def test_processed_row_requires_classification(self) -> None:
        with pytest.raises(ValidationError, match="incomplete"):
            FeedbackRecord(
                id=1,
                source="email",
                content="hello",
                processed=True,
                status=FeedbackStatus.PROCESSED,
                sentiment=Sentiment.POSITIVE,
            )

    def test_processed_row_requires_processed_status(self) -> None:
        with pytest.raises(ValidationError):
            FeedbackRecord(
                id=1,
                source="email",
                content="hello",
                processed=True,
                sentiment=Sentiment.NEUTRAL,
                sentiment_score=0.5,
                topics="general",
            )

    def test_topic_list_splits_and_trims(self) -> None:
        record = FeedbackRecord(id=2, source="app", content="x", topics=" ui , , api,pricing ")
        assert record.topic_list == ["ui", "api", "pricing"]

    def test_records_are_frozen(self) -> None:
        record = FeedbackRecord(id=3, source="app", content="x")
        with pytest.raises(ValidationError):
            record.processed = True  # type: ignore[misc]


class TestNewFeedback:
    def test_requires_source_and_content(self) -> None:
        with pytest.raises(ValidationError):
            NewFeedback(source="", content="hi")
        with pytest.raises(ValidationError):
            NewFeedback(source="email", content="")

    def test_content_length_is_bounded(self) -> None:
        with pytest.raises(ValidationError):
            NewFeedback(source="email", content="x" * 10001)


class TestClassificationModels:
    def test_score_range(self) -> None:
        with pytest.raises(ValidationError):
            SentimentResult(sentiment=Sentiment.POSITIVE, sentiment_score=1.5)

    def test_topics_required(self) -> None:
        with pytest.raises(ValidationError):
            Classification(sentiment=Sentiment.NEUTRAL, sentiment_score=0.5, topics="")


# ======================================================================
# Workflow models
# ======================================================================


class TestWorkflowPhase:
    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (WorkflowPhase.QUEUED, WorkflowPhase.RETRIEVING),
            (WorkflowPhase.RETRIEVING, WorkflowPhase.SKIPPED),
            (WorkflowPhase.RETRIEVING, WorkflowPhase.ANALYZING_SENTIMENT),
            (WorkflowPhase.SKIPPED, WorkflowPhase.DONE),
            (WorkflowPhase.ANALYZING_SENTIMENT, WorkflowPhase.EXTRACTING_TOPICS),
            (WorkflowPhase.EXTRACTING_TOPICS, WorkflowPhase.SAVING),
            (WorkflowPhase.SAVING, WorkflowPhase.DONE),
            (WorkflowPhase.SAVING, WorkflowPhase.FAILED),
            (WorkflowPhase.QUEUED, WorkflowPhase.FAILED),
        ],
    )
    def test_legal_transitions(self, source: WorkflowPhase, target: WorkflowPhase) -> None:
        assert source.can_transition_to(target) is True

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (WorkflowPhase.QUEUED, WorkflowPhase.SAVING),
            (WorkflowPhase.RETRIEVING, WorkflowPhase.DONE),
            (WorkflowPhase.ANALYZING_SENTIMENT, WorkflowPhase.SAVING),
            (WorkflowPhase.DONE, WorkflowPhase.FAILED),
            (WorkflowPhase.FAILED, WorkflowPhase.QUEUED),
            (WorkflowPhase.DONE, WorkflowPhase.RETRIEVING),
        ],
    )
    def test_illegal_transitions(self, source: WorkflowPhase, target: WorkflowPhase) -> None:
        assert source.can_transition_to(target) is False

    def test_terminal_phases(self) -> None:
        terminal = {p for p in WorkflowPhase if p.is_terminal}
        assert terminal == {WorkflowPhase.DONE, WorkflowPhase.FAILED}


class TestFeedbackWorkflowParams:
    def test_from_payload(self) -> None:
        params = FeedbackWorkflowParams.from_payload({"feedbackId": 7})
        assert params.feedback_id == 7
        assert params.force is False
        assert params.to_payload() == {"feedbackId": 7, "force": False}

    def test_force_flag(self) -> None:
        assert FeedbackWorkflowParams.from_payload({"feedbackId": 7, "force": True}).force is True

    @pytest.mark.parametrize("payload", [None, {}, {"feedback_id": 7}])
    def test_missing_feedback_id(self, payload) -> None:
        with pytest.raises(WorkflowError, match="Feedback ID is required"):
            FeedbackWorkflowParams.from_payload(payload)

    @pytest.mark.parametrize("payload", [{"feedbackId": 0}, {"feedbackId": "abc"}, {"feedbackId": 1, "extra": 1}])
    def test_invalid_payload(self, payload) -> None:
        with pytest.raises(WorkflowError, match="Invalid workflow params"):
            FeedbackWorkflowParams.from_payload(payload)


def test_instance_id_for() -> None:
    assert instance_id_for(42) == "feedback-42"
