"""The feedback processing workflow.

Moves one feedback row from pending to processed through four journaled
steps:

    retrieve-feedback → analyze-sentiment → extract-topics → save-results

ARCHITECTURE NOTE:
    Every step runs through a :class:`StepExecutor`, so a run that is
    interrupted and started again replays the steps it already committed
    and only executes the rest.  The phase of the instance is persisted
    on every transition, and each transition is checked against
    :class:`WorkflowPhase` before it is written.

    Only two errors can abort a run: ``FeedbackNotFoundError`` at retrieve
    and ``StoreUnavailableError`` at retrieve or save.  The classification
    steps never raise because the classifier absorbs oracle failures.  On
    abort the instance is marked FAILED and the original error propagates
    to the caller, with no partial result.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.feedback_store import IFeedbackStore
from src.interfaces.step_store import IStepStore
from src.models.feedback import Classification, FeedbackRecord, SentimentResult, TopicResult
from src.models.workflow import (
    FeedbackWorkflowParams,
    WorkflowPhase,
    WorkflowResult,
)
from src.pipeline.step_executor import StepExecutor
from src.services.feedback_classifier import FeedbackClassifier
from src.utils.errors import FeedbackFlowError, FeedbackNotFoundError, WorkflowError
from src.utils.logging import get_logger

STEP_RETRIEVE = "retrieve-feedback"
STEP_SENTIMENT = "analyze-sentiment"
STEP_TOPICS = "extract-topics"
STEP_SAVE = "save-results"

ALREADY_PROCESSED_MESSAGE = "Feedback already processed"


class _PhaseTracker:
    """Holds the current phase of one run and persists every transition."""

    def __init__(self, store: IStepStore, instance_id: str) -> None:
        self._store = store
        self._instance_id = instance_id
        self.phase = WorkflowPhase.QUEUED

    async def advance(
        self,
        target: WorkflowPhase,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        if not self.phase.can_transition_to(target):
            raise WorkflowError(
                message=(
                    f"Illegal phase transition {self.phase.value} -> {target.value} "
                    f"for {self._instance_id}"
                )
            )
        await self._store.update_instance(self._instance_id, target, result=result, error=error)
        self.phase = target


class FeedbackWorkflow:
    """Classifies one feedback row per run.

    Parameters
    ----------
    feedback_store:
        The durable store holding the ``feedback`` table.
    classifier:
        Sentiment and topic classification with keyword fallbacks.
    step_store:
        Default journal.  :meth:`run` accepts another one so inline runs
        can use an ephemeral journal.
    """

    def __init__(
        self,
        feedback_store: IFeedbackStore,
        classifier: FeedbackClassifier,
        step_store: IStepStore,
    ) -> None:
        self._feedback_store = feedback_store
        self._classifier = classifier
        self._step_store = step_store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def run(
        self,
        instance_id: str,
        params: dict[str, Any] | FeedbackWorkflowParams,
        step_store: IStepStore | None = None,
    ) -> WorkflowResult:
        """Execute (or resume) the instance and return its result.

        Raises
        ------
        WorkflowError
            If *params* has no valid ``feedbackId``.  No step runs.
        FeedbackNotFoundError
            If the row does not exist.
        StoreUnavailableError
            If the store fails while reading or saving the row.
        """
        if not isinstance(params, FeedbackWorkflowParams):
            params = FeedbackWorkflowParams.from_payload(params)

        store = step_store or self._step_store
        await store.create_instance(instance_id, params.to_payload())
        instance = await store.start_attempt(instance_id)
        tracker = _PhaseTracker(store, instance_id)
        executor = StepExecutor(instance_id, store)

        self._logger.info(
            "workflow_started",
            instance_id=instance_id,
            feedback_id=params.feedback_id,
            force=params.force,
            attempt=instance.attempts,
        )
        try:
            result = await self._run_steps(params, tracker, executor)
        except Exception as exc:
            await self._mark_failed(tracker, instance_id, exc)
            raise

        self._logger.info(
            "workflow_completed",
            instance_id=instance_id,
            feedback_id=params.feedback_id,
            skipped=result.skipped,
            sentiment=result.sentiment.value if result.sentiment else None,
            topics=result.topics,
        )
        return result

    async def _run_steps(
        self,
        params: FeedbackWorkflowParams,
        tracker: _PhaseTracker,
        executor: StepExecutor,
    ) -> WorkflowResult:
        feedback_id = params.feedback_id

        await tracker.advance(WorkflowPhase.RETRIEVING)
        record = FeedbackRecord.model_validate(
            await executor.execute(STEP_RETRIEVE, lambda: self._retrieve(feedback_id))
        )

        if record.processed and not params.force:
            result = WorkflowResult(
                feedback_id=feedback_id,
                skipped=True,
                message=ALREADY_PROCESSED_MESSAGE,
                sentiment=record.sentiment,
                sentiment_score=record.sentiment_score,
                topics=record.topics,
            )
            await tracker.advance(WorkflowPhase.SKIPPED)
            await tracker.advance(WorkflowPhase.DONE, result=result.model_dump(mode="json"))
            self._logger.info("workflow_skipped", feedback_id=feedback_id)
            return result

        await tracker.advance(WorkflowPhase.ANALYZING_SENTIMENT)
        sentiment = SentimentResult.model_validate(
            await executor.execute(STEP_SENTIMENT, lambda: self._sentiment(record.content))
        )

        await tracker.advance(WorkflowPhase.EXTRACTING_TOPICS)
        topics = TopicResult.model_validate(
            await executor.execute(STEP_TOPICS, lambda: self._topics(record.content))
        )

        classification = Classification(
            sentiment=sentiment.sentiment,
            sentiment_score=sentiment.sentiment_score,
            topics=topics.topics,
        )
        await tracker.advance(WorkflowPhase.SAVING)
        await executor.execute(STEP_SAVE, lambda: self._save(feedback_id, classification))

        result = WorkflowResult(
            feedback_id=feedback_id,
            sentiment=classification.sentiment,
            sentiment_score=classification.sentiment_score,
            topics=classification.topics,
        )
        await tracker.advance(WorkflowPhase.DONE, result=result.model_dump(mode="json"))
        return result

    # ------------------------------------------------------------------
    # Step bodies (each returns a JSON-serialisable value)
    # ------------------------------------------------------------------

    async def _retrieve(self, feedback_id: int) -> dict[str, Any]:
        record = await self._feedback_store.get_feedback(feedback_id)
        if record is None:
            raise FeedbackNotFoundError(
                message=f"Feedback with id {feedback_id} not found",
                provider_name=self._feedback_store.get_provider_name(),
                feedback_id=feedback_id,
            )
        return record.model_dump(mode="json")

    async def _sentiment(self, content: str) -> dict[str, Any]:
        return (await self._classifier.analyze_sentiment(content)).model_dump(mode="json")

    async def _topics(self, content: str) -> dict[str, Any]:
        return (await self._classifier.extract_topics(content)).model_dump(mode="json")

    async def _save(self, feedback_id: int, classification: Classification) -> dict[str, Any]:
        await self._feedback_store.update_classification(feedback_id, classification)
        return classification.model_dump(mode="json")

    async def _mark_failed(
        self,
        tracker: _PhaseTracker,
        instance_id: str,
        exc: Exception,
    ) -> None:
        self._logger.error(
            "workflow_failed",
            instance_id=instance_id,
            phase=tracker.phase.value,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        if tracker.phase.is_terminal:
            return
        try:
            await tracker.advance(WorkflowPhase.FAILED, error=str(exc))
        except FeedbackFlowError as journal_exc:
            self._logger.error(
                "workflow_failure_not_recorded",
                instance_id=instance_id,
                error=str(journal_exc),
            )
