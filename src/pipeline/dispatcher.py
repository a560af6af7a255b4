"""Dispatch policy for feedback processing.

Every feedback row is processed at least once:

    1. Ask the trigger to start the workflow instance ``feedback-<id>``
       → ``DISPATCHED_ASYNC``.
    2. If the trigger cannot create it, run the workflow inline against an
       ephemeral journal → ``RAN_INLINE``.
    3. If the inline run fails too, log it → ``FAILED``.  The row stays
       unprocessed and the next backlog sweep picks it up.

Duplicate dispatches are harmless: the trigger does not start an instance
that is running or DONE, and the workflow's retrieve step skips a row that
is already processed.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.feedback_store import IFeedbackStore
from src.interfaces.workflow_trigger import IWorkflowTrigger
from src.models.feedback import FeedbackRecord
from src.models.workflow import (
    BacklogSweepResult,
    DispatchOutcome,
    DispatchResult,
    FeedbackWorkflowParams,
    instance_id_for,
)
from src.pipeline.feedback_workflow import FeedbackWorkflow
from src.providers.workflow.memory_step_store import MemoryStepStore
from src.utils.concurrency import throttled_gather
from src.utils.errors import FeedbackNotFoundError, WorkflowCreationError
from src.utils.logging import get_logger


class FeedbackDispatcher:
    """Starts feedback workflows and sweeps the unprocessed backlog."""

    def __init__(
        self,
        trigger: IWorkflowTrigger,
        workflow: FeedbackWorkflow,
        feedback_store: IFeedbackStore,
        sweep_concurrency: int = 10,
    ) -> None:
        self._trigger = trigger
        self._workflow = workflow
        self._feedback_store = feedback_store
        self._sweep_concurrency = max(1, sweep_concurrency)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def dispatch(self, feedback_id: int) -> DispatchResult:
        """Start processing for one row.  Never raises."""
        instance_id = instance_id_for(feedback_id)
        params = FeedbackWorkflowParams(feedback_id=feedback_id)

        try:
            await self._trigger.create(instance_id, params.to_payload())
        except WorkflowCreationError as exc:
            self._logger.warning(
                "workflow_creation_failed",
                feedback_id=feedback_id,
                instance_id=instance_id,
                error=str(exc),
            )
        else:
            return DispatchResult(
                feedback_id=feedback_id,
                instance_id=instance_id,
                outcome=DispatchOutcome.DISPATCHED_ASYNC,
            )

        try:
            result = await self._workflow.run(
                instance_id, params, step_store=MemoryStepStore()
            )
        except Exception as exc:
            self._logger.error(
                "inline_processing_failed",
                feedback_id=feedback_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return DispatchResult(
                feedback_id=feedback_id,
                instance_id=instance_id,
                outcome=DispatchOutcome.FAILED,
                error=str(exc),
            )

        self._logger.info("feedback_processed_inline", feedback_id=feedback_id)
        return DispatchResult(
            feedback_id=feedback_id,
            instance_id=instance_id,
            outcome=DispatchOutcome.RAN_INLINE,
            result=result,
        )

    async def reanalyze(self, feedback_id: int) -> FeedbackRecord:
        """Re-classify one row inline, even if it is already processed.

        Errors propagate: ``FeedbackNotFoundError`` for a missing row,
        ``StoreUnavailableError`` when the store is down.
        """
        params = FeedbackWorkflowParams(feedback_id=feedback_id, force=True)
        await self._workflow.run(
            instance_id_for(feedback_id), params, step_store=MemoryStepStore()
        )
        record = await self._feedback_store.get_feedback(feedback_id)
        if record is None:
            raise FeedbackNotFoundError(
                message=f"Feedback with id {feedback_id} not found",
                provider_name=self._feedback_store.get_provider_name(),
                feedback_id=feedback_id,
            )
        return record

    async def sweep_backlog(self) -> BacklogSweepResult:
        """Dispatch every unprocessed row concurrently and wait for all.

        Store errors while listing the backlog propagate; per-row failures
        are isolated in the returned summary.
        """
        feedback_ids = await self._feedback_store.list_unprocessed_ids()
        self._logger.info("backlog_sweep_started", pending=len(feedback_ids))

        outcomes = await throttled_gather(
            [self.dispatch(fid) for fid in feedback_ids],
            semaphore=asyncio.Semaphore(self._sweep_concurrency),
        )

        results: list[DispatchResult] = []
        for fid, outcome in zip(feedback_ids, outcomes):
            if isinstance(outcome, BaseException):
                self._logger.error("backlog_dispatch_crashed", feedback_id=fid, error=str(outcome))
                outcome = DispatchResult(
                    feedback_id=fid,
                    instance_id=instance_id_for(fid),
                    outcome=DispatchOutcome.FAILED,
                    error=str(outcome),
                )
            results.append(outcome)

        summary = BacklogSweepResult(
            attempted=len(results),
            dispatched=sum(r.outcome is DispatchOutcome.DISPATCHED_ASYNC for r in results),
            ran_inline=sum(r.outcome is DispatchOutcome.RAN_INLINE for r in results),
            failed=sum(r.outcome is DispatchOutcome.FAILED for r in results),
            results=results,
        )
        self._logger.info(
            "backlog_sweep_completed",
            attempted=summary.attempted,
            dispatched=summary.dispatched,
            ran_inline=summary.ran_inline,
            failed=summary.failed,
        )
        return summary
