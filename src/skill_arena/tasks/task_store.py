# src/skill_arena/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..core.skills import SkillArea
from ..errors import RotationStoreError
from .task_models import RotationReason, Task, TaskType, validate_task

logger = logging.getLogger(__name__)


def _to_ts(dt: datetime | None) -> float | None:
    return dt.timestamp() if dt is not None else None


def _from_ts(ts: Any) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Writes are upserts keyed by task id. save_batch() writes every task in one
    transaction: either the whole batch lands or nothing does.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, timeout_seconds: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = float(timeout_seconds)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._ensure_schema()
        except sqlite3.Error as e:
            raise RotationStoreError(f"Cannot initialise task store at {self._db_path}") from e
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    skill_category TEXT NOT NULL,
                    task_type TEXT NOT NULL,
                    base_points INTEGER NOT NULL,
                    max_points INTEGER NOT NULL,
                    estimated_duration_minutes INTEGER NOT NULL,
                    created_at REAL NOT NULL,
                    expires_at REAL,
                    completion_count INTEGER NOT NULL DEFAULT 0,
                    max_completions INTEGER NOT NULL DEFAULT 50,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    rotation_reason TEXT,
                    replaces_task_id TEXT
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("expires_at", "REAL")
            add_col("rotation_reason", "TEXT")
            add_col("replaces_task_id", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_active ON tasks(is_active, created_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_skill ON tasks(skill_category)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_replaces ON tasks(replaces_task_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"]),
            description=str(row["description"] or ""),
            skill_category=SkillArea.parse(row["skill_category"]),
            task_type=TaskType.parse(row["task_type"]),
            base_points=int(row["base_points"]),
            max_points=int(row["max_points"]),
            estimated_duration_minutes=int(row["estimated_duration_minutes"]),
            created_at=_from_ts(row["created_at"]),  # type: ignore[arg-type]
            expires_at=_from_ts(row["expires_at"]),
            completion_count=int(row["completion_count"] or 0),
            max_completions=int(row["max_completions"] or 0),
            is_active=bool(row["is_active"]),
            rotation_reason=RotationReason.from_db(row["rotation_reason"]),
            replaces_task_id=row["replaces_task_id"],
        )

    @staticmethod
    def _task_params(task: Task) -> tuple[Any, ...]:
        return (
            task.id,
            task.title,
            task.description,
            task.skill_category.value,
            task.task_type.value,
            int(task.base_points),
            int(task.max_points),
            int(task.estimated_duration_minutes),
            _to_ts(task.created_at),
            _to_ts(task.expires_at),
            int(task.completion_count),
            int(task.max_completions),
            1 if task.is_active else 0,
            task.rotation_reason.value if task.rotation_reason else None,
            task.replaces_task_id,
        )

    _UPSERT_SQL = """
        INSERT INTO tasks(
            id, title, description, skill_category, task_type,
            base_points, max_points, estimated_duration_minutes,
            created_at, expires_at, completion_count, max_completions,
            is_active, rotation_reason, replaces_task_id
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            title = excluded.title,
            description = excluded.description,
            skill_category = excluded.skill_category,
            task_type = excluded.task_type,
            base_points = excluded.base_points,
            max_points = excluded.max_points,
            estimated_duration_minutes = excluded.estimated_duration_minutes,
            created_at = excluded.created_at,
            expires_at = excluded.expires_at,
            completion_count = excluded.completion_count,
            max_completions = excluded.max_completions,
            is_active = excluded.is_active,
            rotation_reason = excluded.rotation_reason,
            replaces_task_id = excluded.replaces_task_id
    """

    # ---- public API ----

    def count_tasks(self, *, active_only: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM tasks"
        if active_only:
            sql += " WHERE is_active = 1"
        conn = self._get_conn()
        try:
            (n,) = conn.execute(sql).fetchone()
            return int(n)
        except sqlite3.Error as e:
            raise RotationStoreError("count_tasks failed") from e
        finally:
            conn.close()

    def load(self, active_only: bool = False) -> list[Task]:
        """All tasks (or only active ones), oldest first."""
        sql = "SELECT * FROM tasks"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY created_at ASC, id ASC"

        conn = self._get_conn()
        try:
            rows = conn.execute(sql).fetchall()
            return [self._row_to_task(r) for r in rows]
        except sqlite3.Error as e:
            raise RotationStoreError("load failed") from e
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (str(task_id),)).fetchone()
            return self._row_to_task(row) if row else None
        except sqlite3.Error as e:
            raise RotationStoreError(f"get_task failed task_id={task_id}") from e
        finally:
            conn.close()

    def find_replacement(self, original_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM tasks WHERE replaces_task_id = ? ORDER BY created_at ASC LIMIT 1",
                (str(original_id),),
            ).fetchone()
            return self._row_to_task(row) if row else None
        except sqlite3.Error as e:
            raise RotationStoreError(f"find_replacement failed original_id={original_id}") from e
        finally:
            conn.close()

    def save(self, task: Task) -> None:
        self.save_batch([task])

    def save_batch(self, tasks: Sequence[Task]) -> None:
        """Upsert all tasks in a single transaction (all-or-nothing)."""
        if not tasks:
            return
        params = [self._task_params(validate_task(t)) for t in tasks]

        conn = self._get_conn()
        try:
            with conn:
                conn.executemany(self._UPSERT_SQL, params)
            logger.debug("TaskStore saved %d task(s)", len(params))
        except sqlite3.Error as e:
            raise RotationStoreError(f"save_batch failed ({len(params)} task(s)); nothing was written") from e
        finally:
            conn.close()
