"""Abstract base class for the workflow step journal.

The journal is what makes a workflow resumable: it stores one
:class:`WorkflowInstance` per ``feedback-<id>`` and one :class:`StepRecord`
per committed step.  A durable implementation (SQLite) backs triggered
instances; an in-memory implementation backs inline runs and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.workflow import StepRecord, WorkflowInstance, WorkflowPhase


class IStepStore(ABC):
    """Contract for workflow journal persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if they don't exist.  Called at startup."""

    @abstractmethod
    async def create_instance(
        self,
        instance_id: str,
        params: dict[str, Any],
    ) -> tuple[WorkflowInstance, bool]:
        """Register an instance if it does not exist yet.

        Returns
        -------
        tuple[WorkflowInstance, bool]
            The stored instance and ``True`` if it was newly created.
            An existing instance is returned untouched.
        """

    @abstractmethod
    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        """Return the instance, or ``None`` if it was never created."""

    @abstractmethod
    async def start_attempt(self, instance_id: str) -> WorkflowInstance:
        """Reset the phase to QUEUED, clear the error, bump ``attempts``."""

    @abstractmethod
    async def update_instance(
        self,
        instance_id: str,
        phase: WorkflowPhase,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        """Persist a phase change (and the terminal result or error)."""

    @abstractmethod
    async def list_instances(
        self,
        phases: list[WorkflowPhase] | None = None,
    ) -> list[WorkflowInstance]:
        """Return instances, optionally restricted to the given phases."""

    @abstractmethod
    async def get_step(self, instance_id: str, step_name: str) -> StepRecord | None:
        """Return the journal record for one step, if any."""

    @abstractmethod
    async def save_step(self, record: StepRecord) -> None:
        """Insert or replace the journal record for ``(instance_id, step_name)``."""

    @abstractmethod
    async def list_steps(self, instance_id: str) -> list[StepRecord]:
        """Return all step records of an instance in execution order."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
