"""In-process workflow trigger.

Starts one background asyncio task per workflow instance, keyed by
``feedback-<id>``.  Instances are registered in the durable journal before
their task starts, so an instance cut short by a restart is found again by
:meth:`LocalWorkflowTrigger.resume_incomplete` and resumed from its last
committed step.

Creating an instance that is already running in this process, or that has
already reached DONE, returns the existing instance and starts nothing.
A FAILED instance, or one left mid-flight by a crash, is started again.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.interfaces.step_store import IStepStore
from src.interfaces.workflow_trigger import IWorkflowTrigger
from src.models.workflow import (
    FeedbackWorkflowParams,
    WorkflowInstance,
    WorkflowPhase,
    WorkflowResult,
)
from src.pipeline.feedback_workflow import FeedbackWorkflow
from src.utils.errors import FeedbackFlowError, WorkflowCreationError
from src.utils.logging import get_logger

_RESUMABLE_PHASES = [phase for phase in WorkflowPhase if not phase.is_terminal]


class LocalWorkflowTrigger(IWorkflowTrigger):
    """Runs workflow instances as tasks on the current event loop.

    Parameters
    ----------
    workflow:
        The workflow every instance runs.
    step_store:
        The durable journal instances are registered in.
    max_concurrent:
        Upper bound on instances executing at the same time.  Extra
        instances wait for a slot.
    """

    def __init__(
        self,
        workflow: FeedbackWorkflow,
        step_store: IStepStore,
        max_concurrent: int = 4,
    ) -> None:
        self._workflow = workflow
        self._step_store = step_store
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))
        self._tasks: dict[str, asyncio.Task[WorkflowResult | None]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IWorkflowTrigger implementation
    # ------------------------------------------------------------------

    async def create(self, instance_id: str, params: dict[str, Any]) -> WorkflowInstance:
        try:
            validated = FeedbackWorkflowParams.from_payload(params)
        except FeedbackFlowError as exc:
            raise WorkflowCreationError(
                message=f"Invalid params for {instance_id}: {exc.message}",
            ) from exc

        try:
            instance, created = await self._step_store.create_instance(
                instance_id, validated.to_payload()
            )
        except FeedbackFlowError as exc:
            raise WorkflowCreationError(
                message=f"Could not register workflow {instance_id}: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

        if self.is_running(instance_id):
            self._logger.debug("workflow_already_running", instance_id=instance_id)
            return instance
        if not created and instance.phase is WorkflowPhase.DONE:
            self._logger.debug("workflow_already_done", instance_id=instance_id)
            return instance

        if not created:
            self._logger.info(
                "workflow_restarting",
                instance_id=instance_id,
                previous_phase=instance.phase.value,
                attempts=instance.attempts,
            )
        self._start(instance_id, validated)
        return instance

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        return await self._step_store.get_instance(instance_id)

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------

    def is_running(self, instance_id: str) -> bool:
        task = self._tasks.get(instance_id)
        return task is not None and not task.done()

    @property
    def running_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def wait_for(self, instance_id: str) -> WorkflowInstance | None:
        """Wait for the in-process task of *instance_id*, then return its row."""
        task = self._tasks.get(instance_id)
        if task is not None:
            await asyncio.wait({task})
        return await self._step_store.get_instance(instance_id)

    async def drain(self) -> None:
        """Wait until every in-process instance has finished."""
        while self._tasks:
            pending = list(self._tasks.values())
            self._logger.info("workflow_drain_waiting", count=len(pending))
            await asyncio.wait(pending)

    async def resume_incomplete(self) -> int:
        """Restart every instance the journal shows as neither DONE nor FAILED.

        Called once at startup.  Returns the number of instances restarted.
        """
        instances = await self._step_store.list_instances(phases=_RESUMABLE_PHASES)
        resumed = 0
        for instance in instances:
            if self.is_running(instance.instance_id):
                continue
            try:
                params = FeedbackWorkflowParams.from_payload(instance.params)
            except FeedbackFlowError as exc:
                self._logger.error(
                    "workflow_resume_skipped",
                    instance_id=instance.instance_id,
                    error=str(exc),
                )
                continue
            self._start(instance.instance_id, params)
            resumed += 1
        self._logger.info("workflows_resumed", count=resumed)
        return resumed

    def _start(self, instance_id: str, params: FeedbackWorkflowParams) -> None:
        task = asyncio.create_task(self._run(instance_id, params), name=instance_id)
        self._tasks[instance_id] = task

        def _forget(done: asyncio.Task[WorkflowResult | None]) -> None:
            if self._tasks.get(instance_id) is done:
                del self._tasks[instance_id]

        task.add_done_callback(_forget)
        self._logger.info("workflow_dispatched", instance_id=instance_id)

    async def _run(
        self,
        instance_id: str,
        params: FeedbackWorkflowParams,
    ) -> WorkflowResult | None:
        async with self._semaphore:
            try:
                return await self._workflow.run(
                    instance_id, params, step_store=self._step_store
                )
            except Exception as exc:
                # The workflow has already marked the instance FAILED; nothing
                # awaits this task's result, so the error ends here.
                self._logger.error(
                    "workflow_task_failed",
                    instance_id=instance_id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return None
