"""Shared pytest fixtures for the feedbackFlow test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.llm_provider import ILLMProvider
from src.models.feedback import NewFeedback
from src.pipeline.feedback_workflow import FeedbackWorkflow
from src.providers.feedback.sqlite_feedback_store import SQLiteFeedbackStore
from src.providers.workflow.memory_step_store import MemoryStepStore
from src.providers.workflow.sqlite_step_store import SQLiteStepStore
from src.services.feedback_classifier import (
    SENTIMENT_SYSTEM_PROMPT,
    FeedbackClassifier,
)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Oracle fixtures
# ---------------------------------------------------------------------------


def make_llm(sentiment: str = "POSITIVE", topics: str = "ui, pricing") -> MagicMock:
    """Return a mock oracle answering *sentiment* or *topics* by prompt."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.validate_credentials = AsyncMock(return_value=True)

    async def _complete(system_prompt: str, user_prompt: str, **_: Any) -> str:
        return sentiment if system_prompt == SENTIMENT_SYSTEM_PROMPT else topics

    mock.complete = AsyncMock(side_effect=_complete)
    return mock


@pytest.fixture
def llm_factory():
    """Return :func:`make_llm` so tests can build oracles with other answers."""
    return make_llm


@pytest.fixture
def mock_llm_provider() -> MagicMock:
    """An oracle that answers POSITIVE and ``ui, pricing``."""
    return make_llm()


@pytest.fixture
def failing_llm_provider() -> MagicMock:
    """An oracle whose every call fails."""
    from src.utils.errors import LLMError

    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(side_effect=LLMError(message="boom", provider_name="mock-llm"))
    return mock


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
async def feedback_store(tmp_path: Path) -> SQLiteFeedbackStore:
    """An initialised feedback store on a temporary SQLite file."""
    store = SQLiteFeedbackStore(db_path=tmp_path / "feedback.db")
    await store.initialize()
    return store


@pytest.fixture
async def sqlite_step_store(tmp_path: Path) -> SQLiteStepStore:
    """An initialised durable journal on a temporary SQLite file."""
    store = SQLiteStepStore(db_path=tmp_path / "workflows.db")
    await store.initialize()
    return store


@pytest.fixture
def memory_step_store() -> MemoryStepStore:
    return MemoryStepStore()


@pytest.fixture
def add_feedback(feedback_store: SQLiteFeedbackStore):
    """Insert a pending row and return its id."""

    async def _add(content: str = "I love the new dashboard", source: str = "email") -> int:
        record = await feedback_store.insert_feedback(
            NewFeedback(source=source, content=content, author="tester")
        )
        return record.id

    return _add


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@pytest.fixture
def workflow(
    feedback_store: SQLiteFeedbackStore,
    memory_step_store: MemoryStepStore,
    mock_llm_provider: MagicMock,
) -> FeedbackWorkflow:
    classifier = FeedbackClassifier(llm=mock_llm_provider, timeout=1.0)
    return FeedbackWorkflow(
        feedback_store=feedback_store,
        classifier=classifier,
        step_store=memory_step_store,
    )
