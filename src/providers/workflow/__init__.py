"""Workflow step journal providers.

SQLiteStepStore persists instances and committed steps to data/workflows.db
so triggered instances survive a restart.  MemoryStepStore keeps the same
journal in a dict for inline runs and tests.
"""

from src.providers.workflow.memory_step_store import MemoryStepStore
from src.providers.workflow.sqlite_step_store import SQLiteStepStore

__all__ = ["MemoryStepStore", "SQLiteStepStore"]
