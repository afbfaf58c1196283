"""TaskStore — aiosqlite persistence for tasks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiosqlite

from cadence.config import settings
from cadence.scheduler.models import Task, TaskStatus

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    description TEXT NOT NULL,
    kind TEXT NOT NULL,
    schedule TEXT,
    parameters TEXT NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'pending',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    last_execution_at TEXT,
    next_execution_at TEXT,
    preview_result TEXT,
    predecessor_id TEXT,
    failure_count INTEGER NOT NULL DEFAULT 0
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_tasks_pending ON tasks (status, is_active)
"""

_COLUMNS = (
    "id, description, kind, schedule, parameters, status, is_active, created_at,"
    " last_execution_at, next_execution_at, preview_result, predecessor_id, failure_count"
)


class TaskStore:
    """Persists tasks in SQLite.

    Singleton accessed via ``TaskStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: TaskStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    @classmethod
    def get(cls) -> TaskStore:
        """Return the shared TaskStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.execute(_CREATE_INDEX)
            await db.commit()
            self._initialised = True
        return db

    async def _fetch(self, where: str = "", params: tuple = ()) -> list[Task]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM tasks {where} ORDER BY created_at", params  # noqa: S608
            )
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def _update(self, sql: str, params: tuple) -> bool:
        db = await self._connect()
        try:
            cursor = await db.execute(sql, params)
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    # -- Reads -----------------------------------------------------------------

    async def get_task(self, task_id: str) -> Task | None:
        """Fetch a task by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)  # noqa: S608
            )
            row = await cursor.fetchone()
            return Task.from_row(row) if row else None
        finally:
            await db.close()

    async def list_tasks(self) -> list[Task]:
        """Return every task, oldest first."""
        return await self._fetch()

    async def list_pending_active_tasks(self) -> list[Task]:
        """Return active tasks waiting to run."""
        return await self.list_tasks_by_status(TaskStatus.PENDING)

    async def list_tasks_by_status(self, status: TaskStatus) -> list[Task]:
        """Return active tasks in the given status."""
        return await self._fetch("WHERE status = ? AND is_active = 1", (str(status),))

    # -- Writes ----------------------------------------------------------------

    async def _insert(self, db: aiosqlite.Connection, task: Task) -> None:
        await db.execute(
            f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",  # noqa: S608
            task.to_row(),
        )

    async def add_task(self, task: Task) -> Task:
        """Insert a new task. Returns the same task object."""
        db = await self._connect()
        try:
            await self._insert(db, task)
            await db.commit()
            logger.info("Added task: %s (%s)", task.description, task.id)
            return task
        finally:
            await db.close()

    async def create_successor(self, task: Task) -> Task:
        """Persist the successor of a finished recurring task."""
        await self.add_task(task)
        logger.info(
            "Created successor %s of %s for %s",
            task.id,
            task.predecessor_id,
            task.next_execution_at.isoformat() if task.next_execution_at else "-",
        )
        return task

    async def claim_task(self, task_id: str) -> bool:
        """Move a pending, active task to running. False if someone else has it."""
        claimed = await self._update(
            "UPDATE tasks SET status = ? WHERE id = ? AND status = ? AND is_active = 1",
            (str(TaskStatus.RUNNING), task_id, str(TaskStatus.PENDING)),
        )
        if claimed:
            logger.debug("Claimed task: %s", task_id)
        return claimed

    async def finish_run(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        result: str,
        last_execution_at: datetime,
        failure_count: int,
        successor: Task | None = None,
        clear_next_execution: bool = False,
    ) -> bool:
        """Record a finished run and insert its successor in one transaction.

        Either both writes land or neither does: on error the run is rolled
        back and the task keeps its previous status.
        """
        sql = (
            "UPDATE tasks SET status = ?, preview_result = ?, last_execution_at = ?,"
            " failure_count = ?"
        )
        params: list = [str(status), result, last_execution_at.isoformat(), failure_count]
        if clear_next_execution:
            sql += ", next_execution_at = NULL"
        params.append(task_id)
        db = await self._connect()
        try:
            cursor = await db.execute(f"{sql} WHERE id = ?", tuple(params))  # noqa: S608
            updated = cursor.rowcount > 0
            if successor is not None:
                await self._insert(db, successor)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        finally:
            await db.close()
        if successor is not None:
            logger.info(
                "Created successor %s of %s for %s",
                successor.id,
                task_id,
                successor.next_execution_at.isoformat() if successor.next_execution_at else "-",
            )
        return updated

    async def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        result: str | None = None,
        last_execution_at: datetime | None = None,
        failure_count: int | None = None,
    ) -> bool:
        """Set the status, and optionally the result text, run time and failure count."""
        assignments = ["status = ?"]
        params: list = [str(status)]
        if result is not None:
            assignments.append("preview_result = ?")
            params.append(result)
        if last_execution_at is not None:
            assignments.append("last_execution_at = ?")
            params.append(last_execution_at.isoformat())
        if failure_count is not None:
            assignments.append("failure_count = ?")
            params.append(failure_count)
        params.append(task_id)
        return await self._update(
            f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ?",  # noqa: S608
            tuple(params),
        )

    async def update_next_execution(self, task_id: str, timestamp: datetime | None) -> None:
        """Set or clear the next_execution_at timestamp."""
        await self._update(
            "UPDATE tasks SET next_execution_at = ? WHERE id = ?",
            (timestamp.isoformat() if timestamp else None, task_id),
        )

    async def deactivate_task(self, task_id: str) -> bool:
        """Mark a task as inactive. Returns True if a row was updated."""
        updated = await self._update("UPDATE tasks SET is_active = 0 WHERE id = ?", (task_id,))
        if updated:
            logger.info("Deactivated task: %s", task_id)
        return updated
