"""SQLite-backed feedback store.

Persists feedback rows to a local SQLite database at ``data/feedback.db``.
Uses ``aiosqlite`` for async I/O.  Every ``aiosqlite``/OS error is wrapped
in :class:`StoreUnavailableError` so callers never see driver exceptions.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.feedback_store import IFeedbackStore
from src.models.feedback import Classification, FeedbackRecord, FeedbackStatus, NewFeedback
from src.utils.errors import FeedbackNotFoundError, StoreUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/feedback.db")

_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_CREATE_TABLE_SQL = f"""\
CREATE TABLE IF NOT EXISTS feedback (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    source          TEXT    NOT NULL,
    content         TEXT    NOT NULL,
    author          TEXT,
    timestamp       TEXT    NOT NULL DEFAULT ({_NOW_SQL}),
    sentiment       TEXT,
    sentiment_score REAL,
    topics          TEXT,
    status          TEXT    NOT NULL DEFAULT 'pending',
    processed       INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_CHAT_LOG_SQL = f"""\
CREATE TABLE IF NOT EXISTS chat_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    query       TEXT    NOT NULL,
    response    TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT ({_NOW_SQL})
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_feedback_processed ON feedback(processed);",
    "CREATE INDEX IF NOT EXISTS idx_feedback_source ON feedback(source);",
    "CREATE INDEX IF NOT EXISTS idx_feedback_sentiment ON feedback(sentiment);",
    "CREATE INDEX IF NOT EXISTS idx_feedback_timestamp ON feedback(timestamp);",
]

_COLUMNS = (
    "id, source, content, author, timestamp, sentiment, "
    "sentiment_score, topics, status, processed"
)

_INSERT_SQL = f"""\
INSERT INTO feedback (source, content, author, timestamp, status, processed)
VALUES (?, ?, ?, COALESCE(?, {_NOW_SQL}), ?, 0);
"""

_SELECT_BY_ID_SQL = f"SELECT {_COLUMNS} FROM feedback WHERE id = ?;"

_UPDATE_CLASSIFICATION_SQL = """\
UPDATE feedback
SET sentiment = ?, sentiment_score = ?, topics = ?, status = ?, processed = 1
WHERE id = ?;
"""

_GROUPABLE_FIELDS = frozenset({"source", "sentiment"})


def _format_timestamp(value: datetime) -> str:
    """Render *value* in the same ISO-8601 UTC shape SQLite's default uses."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


class SQLiteFeedbackStore(IFeedbackStore):
    """SQLite-backed feedback persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection, translating driver errors to StoreUnavailableError."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except (aiosqlite.Error, OSError) as exc:
            logger.error(
                "feedback_store_error",
                path=str(self._db_path),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StoreUnavailableError(
                message=f"Database not available: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def initialize(self) -> None:
        """Create the feedback and chat_log tables if they don't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(
                message=f"Cannot create database directory: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        async with self._connect() as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(_CREATE_CHAT_LOG_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("feedback_db_initialized", path=str(self._db_path))

    async def insert_feedback(self, feedback: NewFeedback) -> FeedbackRecord:
        """Insert an unclassified row and return it with its generated id."""
        timestamp = _format_timestamp(feedback.timestamp) if feedback.timestamp else None
        async with self._connect() as db:
            cursor = await db.execute(
                _INSERT_SQL,
                (
                    feedback.source,
                    feedback.content,
                    feedback.author,
                    timestamp,
                    feedback.status.value,
                ),
            )
            await db.commit()
            feedback_id = cursor.lastrowid
            cursor = await db.execute(_SELECT_BY_ID_SQL, (feedback_id,))
            row = await cursor.fetchone()

        record = FeedbackRecord.model_validate(dict(row))
        logger.info("feedback_inserted", feedback_id=record.id, source=record.source)
        return record

    async def get_feedback(self, feedback_id: int) -> FeedbackRecord | None:
        """Point read by id."""
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_BY_ID_SQL, (feedback_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return FeedbackRecord.model_validate(dict(row))

    async def update_classification(
        self,
        feedback_id: int,
        classification: Classification,
    ) -> None:
        """Write every classification field in a single UPDATE statement."""
        async with self._connect() as db:
            cursor = await db.execute(
                _UPDATE_CLASSIFICATION_SQL,
                (
                    classification.sentiment.value,
                    classification.sentiment_score,
                    classification.topics,
                    FeedbackStatus.PROCESSED.value,
                    feedback_id,
                ),
            )
            await db.commit()
            updated = cursor.rowcount

        if updated == 0:
            raise FeedbackNotFoundError(
                message=f"Feedback with id {feedback_id} not found",
                provider_name=self.get_provider_name(),
                feedback_id=feedback_id,
            )
        logger.info(
            "feedback_classification_saved",
            feedback_id=feedback_id,
            sentiment=classification.sentiment.value,
            topics=classification.topics,
        )

    async def list_feedback(
        self,
        source: str | None = None,
        sentiment: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[FeedbackRecord]:
        """Return rows newest first, with optional source/sentiment filters."""
        query = f"SELECT {_COLUMNS} FROM feedback WHERE 1=1"
        params: list[Any] = []
        if source:
            query += " AND source = ?"
            params.append(source)
        if sentiment:
            query += " AND sentiment = ?"
            params.append(sentiment.upper())
        query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [FeedbackRecord.model_validate(dict(r)) for r in rows]

    async def list_unprocessed_ids(self) -> list[int]:
        """Return ids of rows still waiting for classification, oldest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id FROM feedback WHERE processed = 0 ORDER BY id ASC"
            )
            rows = await cursor.fetchall()
        return [r["id"] for r in rows]

    async def count_by(self, field: str, processed_only: bool = False) -> list[dict[str, Any]]:
        """Return counts grouped by ``source`` or ``sentiment``."""
        if field not in _GROUPABLE_FIELDS:
            msg = f"Cannot group feedback by {field!r}; allowed: {sorted(_GROUPABLE_FIELDS)}"
            raise ValueError(msg)
        where = " WHERE processed = 1" if processed_only else ""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {field}, COUNT(*) AS count FROM feedback{where} "
                f"GROUP BY {field} ORDER BY count DESC, {field} ASC"
            )
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def get_stats(self, trend_days: int = 7) -> dict[str, Any]:
        """Return aggregate statistics for the dashboard."""
        async with self._connect() as db:
            cursor = await db.execute("SELECT COUNT(*) AS count FROM feedback")
            total_row = await cursor.fetchone()
            cursor = await db.execute(
                "SELECT COUNT(*) AS count FROM feedback WHERE processed = 1"
            )
            processed_row = await cursor.fetchone()
            cursor = await db.execute(
                "SELECT substr(timestamp, 1, 10) AS date, sentiment, COUNT(*) AS count "
                "FROM feedback "
                f"WHERE processed = 1 AND timestamp > strftime('%Y-%m-%dT%H:%M:%fZ', 'now', ?) "
                "GROUP BY date, sentiment ORDER BY date DESC, sentiment ASC",
                (f"-{trend_days} days",),
            )
            trend_rows = await cursor.fetchall()

        total = total_row["count"] if total_row else 0
        processed = processed_row["count"] if processed_row else 0
        return {
            "total": total,
            "processed": processed,
            "pending": total - processed,
            "by_sentiment": await self.count_by("sentiment", processed_only=True),
            "by_source": await self.count_by("source"),
            "recent_trends": [dict(r) for r in trend_rows],
        }

    async def recent_processed(self, limit: int = 10) -> list[FeedbackRecord]:
        """Return the newest classified rows (chat context)."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM feedback WHERE processed = 1 "
                "ORDER BY timestamp DESC, id DESC LIMIT ?",
                (limit,),
            )
            rows = await cursor.fetchall()
        return [FeedbackRecord.model_validate(dict(r)) for r in rows]

    async def record_chat_exchange(self, query: str, response: str) -> None:
        """Append a chat exchange to ``chat_log``."""
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO chat_log (query, response) VALUES (?, ?)",
                (query, response),
            )
            await db.commit()

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_feedback"
