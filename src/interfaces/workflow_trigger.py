"""Abstract base class for workflow triggers.

A trigger starts a workflow instance in the background, keyed by an
instance id of the form ``feedback-<id>``.  Creating an instance that
already exists must not duplicate processing; the workflow's retrieve step
is the final guard against re-processing a row.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.workflow import WorkflowInstance


class IWorkflowTrigger(ABC):
    """Contract for starting feedback workflow instances."""

    @abstractmethod
    async def create(self, instance_id: str, params: dict[str, Any]) -> WorkflowInstance:
        """Start (or find) the instance and return its journal row.

        Raises
        ------
        src.utils.errors.WorkflowCreationError
            If the instance could not be registered or started.
        """

    @abstractmethod
    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        """Return the journal row for *instance_id*, if any."""
