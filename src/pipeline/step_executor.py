"""Journaled execution of named workflow steps.

A step runs at most once successfully per workflow instance: when the
journal already holds a COMPLETED record for ``(instance_id, step_name)``
the cached output is returned and the step body is not called again.

A failed step is recorded as FAILED with its error text and the exception
is re-raised.  FAILED records are diagnostics only, never cached results,
so the next run of the instance re-executes the step with the attempt
counter incremented.

Step bodies may be abandoned mid-flight (crash, restart) and re-run later,
so each one must be safe to repeat.  Return values must be JSON
serialisable.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from src.interfaces.step_store import IStepStore
from src.models.workflow import StepRecord, StepStatus
from src.utils.errors import StoreUnavailableError
from src.utils.logging import get_logger


class StepExecutor:
    """Runs the steps of one workflow instance against a journal."""

    def __init__(self, instance_id: str, step_store: IStepStore) -> None:
        self._instance_id = instance_id
        self._store = step_store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def instance_id(self) -> str:
        return self._instance_id

    async def execute(
        self,
        step_name: str,
        fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the journaled output of *step_name*, running *fn* if needed."""
        previous = await self._store.get_step(self._instance_id, step_name)
        if previous is not None and previous.status is StepStatus.COMPLETED:
            self._logger.debug(
                "workflow_step_replayed",
                instance_id=self._instance_id,
                step=step_name,
            )
            return previous.output

        attempts = previous.attempts + 1 if previous is not None else 1
        try:
            output = await fn()
        except Exception as exc:
            self._logger.warning(
                "workflow_step_failed",
                instance_id=self._instance_id,
                step=step_name,
                attempts=attempts,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            await self._record_failure(step_name, attempts, exc)
            raise

        await self._store.save_step(
            StepRecord(
                instance_id=self._instance_id,
                step_name=step_name,
                status=StepStatus.COMPLETED,
                output=output,
                attempts=attempts,
            )
        )
        self._logger.info(
            "workflow_step_completed",
            instance_id=self._instance_id,
            step=step_name,
            attempts=attempts,
        )
        return output

    async def _record_failure(self, step_name: str, attempts: int, exc: Exception) -> None:
        # The step's own error is what the caller needs to see, so a journal
        # failure here is only logged.
        try:
            await self._store.save_step(
                StepRecord(
                    instance_id=self._instance_id,
                    step_name=step_name,
                    status=StepStatus.FAILED,
                    error=str(exc),
                    attempts=attempts,
                )
            )
        except StoreUnavailableError as journal_exc:
            self._logger.error(
                "workflow_step_journal_failed",
                instance_id=self._instance_id,
                step=step_name,
                error=str(journal_exc),
            )
