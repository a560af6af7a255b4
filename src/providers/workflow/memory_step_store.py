"""In-memory workflow step journal.

Backs inline workflow runs (the dispatcher's fallback path and forced
re-analysis) and tests.  Nothing survives a process restart, so instances
recorded here are never resumed.

Outputs are round-tripped through JSON on save so a replayed step sees the
same value shape the SQLite journal would hand back.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import structlog

from src.interfaces.step_store import IStepStore
from src.models.workflow import StepRecord, WorkflowInstance, WorkflowPhase
from src.utils.errors import WorkflowError

logger = structlog.get_logger(logger_name=__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MemoryStepStore(IStepStore):
    """Dict-backed journal keyed by instance id."""

    def __init__(self) -> None:
        self._instances: dict[str, WorkflowInstance] = {}
        self._steps: dict[str, dict[str, StepRecord]] = {}

    async def initialize(self) -> None:
        logger.debug("memory_step_store_initialized")

    async def create_instance(
        self,
        instance_id: str,
        params: dict[str, Any],
    ) -> tuple[WorkflowInstance, bool]:
        existing = self._instances.get(instance_id)
        if existing is not None:
            return existing, False
        now = _utcnow()
        instance = WorkflowInstance(
            instance_id=instance_id,
            params=json.loads(json.dumps(params)),
            created_at=now,
            updated_at=now,
        )
        self._instances[instance_id] = instance
        self._steps.setdefault(instance_id, {})
        return instance, True

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        return self._instances.get(instance_id)

    async def start_attempt(self, instance_id: str) -> WorkflowInstance:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise WorkflowError(message=f"Unknown workflow instance {instance_id}")
        updated = instance.model_copy(
            update={
                "phase": WorkflowPhase.QUEUED,
                "error": None,
                "result": None,
                "attempts": instance.attempts + 1,
                "updated_at": _utcnow(),
            }
        )
        self._instances[instance_id] = updated
        return updated

    async def update_instance(
        self,
        instance_id: str,
        phase: WorkflowPhase,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        instance = self._instances.get(instance_id)
        if instance is None:
            return
        self._instances[instance_id] = instance.model_copy(
            update={
                "phase": phase,
                "result": json.loads(json.dumps(result)) if result is not None else None,
                "error": error,
                "updated_at": _utcnow(),
            }
        )

    async def list_instances(
        self,
        phases: list[WorkflowPhase] | None = None,
    ) -> list[WorkflowInstance]:
        instances = list(self._instances.values())
        if phases:
            instances = [i for i in instances if i.phase in phases]
        return instances

    async def get_step(self, instance_id: str, step_name: str) -> StepRecord | None:
        return self._steps.get(instance_id, {}).get(step_name)

    async def save_step(self, record: StepRecord) -> None:
        stored = record.model_copy(
            update={
                "output": (
                    json.loads(json.dumps(record.output))
                    if record.output is not None
                    else None
                ),
                "updated_at": _utcnow(),
            }
        )
        self._steps.setdefault(record.instance_id, {})[record.step_name] = stored

    async def list_steps(self, instance_id: str) -> list[StepRecord]:
        # dicts preserve insertion order, and an upsert keeps the original slot
        return list(self._steps.get(instance_id, {}).values())

    def get_provider_name(self) -> str:
        return "memory_step_store"
