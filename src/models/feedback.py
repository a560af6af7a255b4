"""Feedback domain models.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Models (bottom of the dependency graph; no imports from upper layers).
#
# ``FeedbackRecord`` mirrors one row of the ``feedback`` table.  Rows are
# created by the insert operation (creation fields) and later mutated in
# place by the processing workflow (classification fields).  Nothing in
# this service deletes a row.
#
# All models are frozen; the store returns fresh instances on every read.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Sentiment(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Three-way sentiment label produced by the classifier."""

    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"


class FeedbackStatus(str, Enum):  # noqa: UP042
    """Processing status stored alongside the ``processed`` flag."""

    PENDING = "pending"
    PROCESSED = "processed"


class FeedbackRecord(BaseModel):
    """A single stored feedback item.

    ``processed=True`` implies every classification field is populated and
    ``status`` is ``processed``; the validator rejects rows that break this.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    source: str = Field(min_length=1)
    content: str = Field(min_length=1)
    author: str | None = None
    timestamp: datetime | None = None
    sentiment: Sentiment | None = None
    sentiment_score: float | None = Field(default=None, ge=0.0, le=1.0)
    topics: str | None = None
    status: FeedbackStatus = FeedbackStatus.PENDING
    processed: bool = False

    @model_validator(mode="after")
    def _processed_implies_classified(self) -> FeedbackRecord:
        if self.processed:
            missing = [
                name
                for name in ("sentiment", "sentiment_score", "topics")
                if getattr(self, name) is None
            ]
            if missing or self.status is not FeedbackStatus.PROCESSED:
                msg = (
                    f"Feedback {self.id} is marked processed but is incomplete "
                    f"(missing={missing}, status={self.status.value})"
                )
                raise ValueError(msg)
        return self

    @property
    def topic_list(self) -> list[str]:
        """Return ``topics`` split on commas, stripped, empties dropped."""
        if not self.topics:
            return []
        return [t.strip() for t in self.topics.split(",") if t.strip()]


class NewFeedback(BaseModel):
    """Creation fields for an insert; classification fields start empty."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=10000)
    author: str | None = Field(default=None, max_length=200)
    timestamp: datetime | None = None
    status: FeedbackStatus = FeedbackStatus.PENDING


class SentimentResult(BaseModel):
    """Output of the analyze-sentiment step."""

    model_config = ConfigDict(frozen=True)

    sentiment: Sentiment
    sentiment_score: float = Field(ge=0.0, le=1.0)
    used_fallback: bool = False


class TopicResult(BaseModel):
    """Output of the extract-topics step."""

    model_config = ConfigDict(frozen=True)

    topics: str = Field(min_length=1)
    used_fallback: bool = False


class Classification(BaseModel):
    """The field set written back to a row by the save step."""

    model_config = ConfigDict(frozen=True)

    sentiment: Sentiment
    sentiment_score: float = Field(ge=0.0, le=1.0)
    topics: str = Field(min_length=1)
