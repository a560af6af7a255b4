"""Abstract base class for the durable feedback store.

Defines the contract for persisting feedback rows and the classification
fields the workflow writes back.  Implementations may use SQLite (local),
PostgreSQL, or any other relational backend.  Every failure to reach the
backend must surface as :class:`~src.utils.errors.StoreUnavailableError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.feedback import Classification, FeedbackRecord, NewFeedback


class IFeedbackStore(ABC):
    """Contract for feedback persistence services.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if they don't exist.  Called at startup."""

    @abstractmethod
    async def insert_feedback(self, feedback: NewFeedback) -> FeedbackRecord:
        """Insert a new, unclassified row and return it with its generated id."""

    @abstractmethod
    async def get_feedback(self, feedback_id: int) -> FeedbackRecord | None:
        """Point read by id.  Returns ``None`` when no row exists."""

    @abstractmethod
    async def update_classification(
        self,
        feedback_id: int,
        classification: Classification,
    ) -> None:
        """Atomically write sentiment, score, topics and the processed flags.

        Raises
        ------
        src.utils.errors.FeedbackNotFoundError
            If no row exists for *feedback_id*.
        """

    @abstractmethod
    async def list_feedback(
        self,
        source: str | None = None,
        sentiment: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[FeedbackRecord]:
        """Return rows newest first, with optional equality filters."""

    @abstractmethod
    async def list_unprocessed_ids(self) -> list[int]:
        """Return the ids of every row with ``processed = 0``."""

    @abstractmethod
    async def count_by(self, field: str, processed_only: bool = False) -> list[dict[str, Any]]:
        """Return ``[{field: value, "count": n}, ...]`` grouped by *field*.

        Only ``source`` and ``sentiment`` may be grouped on.
        """

    @abstractmethod
    async def get_stats(self, trend_days: int = 7) -> dict[str, Any]:
        """Return ``total``, ``by_sentiment``, ``by_source`` and ``recent_trends``."""

    @abstractmethod
    async def recent_processed(self, limit: int = 10) -> list[FeedbackRecord]:
        """Return the most recent processed rows, newest first."""

    @abstractmethod
    async def record_chat_exchange(self, query: str, response: str) -> None:
        """Append one chat question/answer pair to the chat log."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
