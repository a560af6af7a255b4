"""Unit tests for FeedbackDispatcher: dispatch fallbacks, reanalysis, backlog sweeps."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.workflow_trigger import IWorkflowTrigger
from src.models.feedback import Sentiment
from src.models.workflow import DispatchOutcome, WorkflowPhase
from src.pipeline.dispatcher import FeedbackDispatcher
from src.pipeline.feedback_workflow import FeedbackWorkflow
from src.pipeline.trigger import LocalWorkflowTrigger
from src.providers.workflow.memory_step_store import MemoryStepStore
from src.services.feedback_classifier import FeedbackClassifier
from src.utils.errors import (
    FeedbackNotFoundError,
    StoreUnavailableError,
    WorkflowCreationError,
)


def _broken_trigger() -> MagicMock:
    trigger = MagicMock(spec=IWorkflowTrigger)
    trigger.create = AsyncMock(side_effect=WorkflowCreationError(message="binding missing"))
    return trigger


@pytest.fixture
def real_trigger(workflow: FeedbackWorkflow, memory_step_store: MemoryStepStore):
    return LocalWorkflowTrigger(workflow, memory_step_store)


# ======================================================================
# dispatch
# ======================================================================


class TestDispatch:
    @pytest.mark.asyncio
    async def test_dispatches_async(self, workflow, feedback_store, real_trigger, add_feedback) -> None:
        fid = await add_feedback()
        dispatcher = FeedbackDispatcher(real_trigger, workflow, feedback_store)

        result = await dispatcher.dispatch(fid)
        instance = await real_trigger.wait_for(result.instance_id)

        assert result.outcome is DispatchOutcome.DISPATCHED_ASYNC
        assert result.instance_id == f"feedback-{fid}"
        assert instance.phase is WorkflowPhase.DONE
        assert (await feedback_store.get_feedback(fid)).processed is True

    @pytest.mark.asyncio
    async def test_falls_back_inline(self, workflow, feedback_store, add_feedback) -> None:
        fid = await add_feedback()
        dispatcher = FeedbackDispatcher(_broken_trigger(), workflow, feedback_store)

        result = await dispatcher.dispatch(fid)

        assert result.outcome is DispatchOutcome.RAN_INLINE
        assert result.result is not None
        assert result.result.sentiment is Sentiment.POSITIVE
        assert (await feedback_store.get_feedback(fid)).processed is True

    @pytest.mark.asyncio
    async def test_inline_run_uses_ephemeral_journal(
        self, workflow, feedback_store, memory_step_store, add_feedback
    ) -> None:
        fid = await add_feedback()
        dispatcher = FeedbackDispatcher(_broken_trigger(), workflow, feedback_store)

        await dispatcher.dispatch(fid)

        assert await memory_step_store.get_instance(f"feedback-{fid}") is None

    @pytest.mark.asyncio
    async def test_reports_failure_without_raising(self, workflow, feedback_store) -> None:
        dispatcher = FeedbackDispatcher(_broken_trigger(), workflow, feedback_store)

        result = await dispatcher.dispatch(404)

        assert result.outcome is DispatchOutcome.FAILED
        assert "404" in result.error


# ======================================================================
# reanalyze
# ======================================================================


class TestReanalyze:
    @pytest.mark.asyncio
    async def test_reclassifies_processed_row(
        self, feedback_store, real_trigger, add_feedback, llm_factory
    ) -> None:
        fid = await add_feedback("The mobile app crashes")
        first = FeedbackWorkflow(
            feedback_store, FeedbackClassifier(llm=llm_factory("POSITIVE", "mobile")), MemoryStepStore()
        )
        await first.run(f"feedback-{fid}", {"feedbackId": fid})

        again = FeedbackWorkflow(
            feedback_store, FeedbackClassifier(llm=llm_factory("NEGATIVE", "mobile, bug")), MemoryStepStore()
        )
        dispatcher = FeedbackDispatcher(real_trigger, again, feedback_store)

        record = await dispatcher.reanalyze(fid)

        assert record.processed is True
        assert record.sentiment is Sentiment.NEGATIVE
        assert record.topics == "mobile, bug"

    @pytest.mark.asyncio
    async def test_missing_row_propagates(self, workflow, feedback_store, real_trigger) -> None:
        dispatcher = FeedbackDispatcher(real_trigger, workflow, feedback_store)

        with pytest.raises(FeedbackNotFoundError):
            await dispatcher.reanalyze(12345)


# ======================================================================
# sweep_backlog
# ======================================================================


class TestSweepBacklog:
    @pytest.mark.asyncio
    async def test_every_pending_row_is_reported(
        self, workflow, feedback_store, real_trigger, add_feedback
    ) -> None:
        ids = [await add_feedback(f"feedback number {n}") for n in range(5)]
        dispatcher = FeedbackDispatcher(real_trigger, workflow, feedback_store, sweep_concurrency=2)

        summary = await dispatcher.sweep_backlog()
        await real_trigger.drain()

        assert summary.attempted == 5
        assert summary.dispatched == 5
        assert summary.failed == 0
        assert [r.feedback_id for r in summary.results] == ids
        assert await feedback_store.list_unprocessed_ids() == []

    @pytest.mark.asyncio
    async def test_inline_fallback_counts(self, workflow, feedback_store, add_feedback) -> None:
        for n in range(3):
            await add_feedback(f"item {n}")
        dispatcher = FeedbackDispatcher(_broken_trigger(), workflow, feedback_store)

        summary = await dispatcher.sweep_backlog()

        assert summary.attempted == 3
        assert summary.ran_inline == 3
        assert summary.dispatched == 0

    @pytest.mark.asyncio
    async def test_crashed_dispatch_counts_as_failed(
        self, workflow, feedback_store, real_trigger, add_feedback
    ) -> None:
        first = await add_feedback("one")
        second = await add_feedback("two")
        dispatcher = FeedbackDispatcher(real_trigger, workflow, feedback_store)

        real_dispatch = dispatcher.dispatch

        async def _dispatch(fid: int):
            if fid == second:
                raise RuntimeError("unexpected")
            return await real_dispatch(fid)

        dispatcher.dispatch = _dispatch  # type: ignore[method-assign]
        summary = await dispatcher.sweep_backlog()
        await real_trigger.drain()

        assert summary.attempted == 2
        assert summary.dispatched == 1
        assert summary.failed == 1
        failed = next(r for r in summary.results if r.outcome is DispatchOutcome.FAILED)
        assert failed.feedback_id == second
        assert failed.error == "unexpected"
        assert first in [r.feedback_id for r in summary.results]

    @pytest.mark.asyncio
    async def test_empty_backlog(self, workflow, feedback_store, real_trigger) -> None:
        dispatcher = FeedbackDispatcher(real_trigger, workflow, feedback_store)
        summary = await dispatcher.sweep_backlog()
        assert summary.attempted == 0
        assert summary.results == []

    @pytest.mark.asyncio
    async def test_listing_error_propagates(self, workflow, real_trigger) -> None:
        store = MagicMock()
        store.list_unprocessed_ids = AsyncMock(side_effect=StoreUnavailableError())
        dispatcher = FeedbackDispatcher(real_trigger, workflow, store)

        with pytest.raises(StoreUnavailableError):
            await dispatcher.sweep_backlog()
