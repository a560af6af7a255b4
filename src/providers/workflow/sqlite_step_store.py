"""SQLite-backed workflow step journal.

Persists workflow instances and committed step results to
``data/workflows.db`` so that an instance interrupted by a crash or restart
can resume without re-running the steps it already completed.  Step
outputs are stored as JSON text.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.step_store import IStepStore
from src.models.workflow import StepRecord, WorkflowInstance, WorkflowPhase
from src.utils.errors import StoreUnavailableError, WorkflowError
from src.utils.logging import get_logger

_DEFAULT_DB_PATH = Path("data/workflows.db")

_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_CREATE_INSTANCES_SQL = f"""\
CREATE TABLE IF NOT EXISTS workflow_instances (
    instance_id TEXT    PRIMARY KEY,
    params_json TEXT    NOT NULL,
    phase       TEXT    NOT NULL DEFAULT 'QUEUED',
    result_json TEXT,
    error       TEXT,
    attempts    INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL DEFAULT ({_NOW_SQL}),
    updated_at  TEXT    NOT NULL DEFAULT ({_NOW_SQL})
);
"""

_CREATE_STEPS_SQL = f"""\
CREATE TABLE IF NOT EXISTS workflow_steps (
    instance_id TEXT    NOT NULL,
    step_name   TEXT    NOT NULL,
    status      TEXT    NOT NULL,
    output_json TEXT,
    error       TEXT,
    attempts    INTEGER NOT NULL DEFAULT 1,
    updated_at  TEXT    NOT NULL DEFAULT ({_NOW_SQL}),
    PRIMARY KEY (instance_id, step_name)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_workflow_instances_phase ON workflow_instances(phase);",
]

_INSTANCE_COLUMNS = (
    "instance_id, params_json, phase, result_json, error, attempts, created_at, updated_at"
)

_STEP_COLUMNS = "instance_id, step_name, status, output_json, error, attempts, updated_at"

_UPSERT_STEP_SQL = f"""\
INSERT INTO workflow_steps (instance_id, step_name, status, output_json, error, attempts)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(instance_id, step_name)
DO UPDATE SET status      = excluded.status,
              output_json = excluded.output_json,
              error       = excluded.error,
              attempts    = excluded.attempts,
              updated_at  = {_NOW_SQL};
"""


def _row_to_instance(row: aiosqlite.Row) -> WorkflowInstance:
    r = dict(row)
    return WorkflowInstance(
        instance_id=r["instance_id"],
        params=json.loads(r["params_json"]),
        phase=WorkflowPhase(r["phase"]),
        result=json.loads(r["result_json"]) if r["result_json"] else None,
        error=r["error"],
        attempts=r["attempts"],
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


def _row_to_step(row: aiosqlite.Row) -> StepRecord:
    r = dict(row)
    return StepRecord(
        instance_id=r["instance_id"],
        step_name=r["step_name"],
        status=r["status"],
        output=json.loads(r["output_json"]) if r["output_json"] is not None else None,
        error=r["error"],
        attempts=r["attempts"],
        updated_at=r["updated_at"],
    )


class SQLiteStepStore(IStepStore):
    """Durable workflow journal backed by SQLite."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except (aiosqlite.Error, OSError) as exc:
            self._logger.error(
                "step_store_error",
                path=str(self._db_path),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StoreUnavailableError(
                message=f"Workflow journal not available: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the journal tables and enable WAL mode."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(
                message=f"Cannot create journal directory: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute(_CREATE_INSTANCES_SQL)
            await db.execute(_CREATE_STEPS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        self._logger.info("step_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    async def create_instance(
        self,
        instance_id: str,
        params: dict[str, Any],
    ) -> tuple[WorkflowInstance, bool]:
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO workflow_instances (instance_id, params_json) "
                "VALUES (?, ?)",
                (instance_id, json.dumps(params)),
            )
            await db.commit()
            created = cursor.rowcount == 1
            cursor = await db.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances WHERE instance_id = ?",
                (instance_id,),
            )
            row = await cursor.fetchone()
        return _row_to_instance(row), created

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances WHERE instance_id = ?",
                (instance_id,),
            )
            row = await cursor.fetchone()
        return _row_to_instance(row) if row is not None else None

    async def start_attempt(self, instance_id: str) -> WorkflowInstance:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE workflow_instances "
                "SET phase = ?, error = NULL, result_json = NULL, "
                f"attempts = attempts + 1, updated_at = {_NOW_SQL} "
                "WHERE instance_id = ?",
                (WorkflowPhase.QUEUED.value, instance_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise WorkflowError(message=f"Unknown workflow instance {instance_id}")
            cursor = await db.execute(
                f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances WHERE instance_id = ?",
                (instance_id,),
            )
            row = await cursor.fetchone()
        return _row_to_instance(row)

    async def update_instance(
        self,
        instance_id: str,
        phase: WorkflowPhase,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE workflow_instances "
                f"SET phase = ?, result_json = ?, error = ?, updated_at = {_NOW_SQL} "
                "WHERE instance_id = ?",
                (
                    phase.value,
                    json.dumps(result) if result is not None else None,
                    error,
                    instance_id,
                ),
            )
            await db.commit()

    async def list_instances(
        self,
        phases: list[WorkflowPhase] | None = None,
    ) -> list[WorkflowInstance]:
        query = f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances"
        params: list[str] = []
        if phases:
            query += f" WHERE phase IN ({', '.join('?' for _ in phases)})"
            params = [p.value for p in phases]
        query += " ORDER BY created_at ASC"
        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [_row_to_instance(r) for r in rows]

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def get_step(self, instance_id: str, step_name: str) -> StepRecord | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_STEP_COLUMNS} FROM workflow_steps "
                "WHERE instance_id = ? AND step_name = ?",
                (instance_id, step_name),
            )
            row = await cursor.fetchone()
        return _row_to_step(row) if row is not None else None

    async def save_step(self, record: StepRecord) -> None:
        async with self._connect() as db:
            await db.execute(
                _UPSERT_STEP_SQL,
                (
                    record.instance_id,
                    record.step_name,
                    record.status.value,
                    json.dumps(record.output) if record.output is not None else None,
                    record.error,
                    record.attempts,
                ),
            )
            await db.commit()

    async def list_steps(self, instance_id: str) -> list[StepRecord]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_STEP_COLUMNS} FROM workflow_steps "
                "WHERE instance_id = ? ORDER BY rowid ASC",
                (instance_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_step(r) for r in rows]

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_step_store"
