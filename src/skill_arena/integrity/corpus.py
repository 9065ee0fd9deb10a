# src/skill_arena/integrity/corpus.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..core.ports import CorpusScope
from ..errors import IntegrityCheckError, ValidationError
from .models import HIGH_RISK_THRESHOLD, PlagiarismStats, Submission

logger = logging.getLogger(__name__)


def _to_ts(dt: datetime | None) -> float | None:
    return dt.timestamp() if dt is not None else None


def _from_ts(ts: Any) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)


class SqliteSubmissionCorpus:
    """
    SQLite submission corpus (comparison candidates for plagiarism checks).

    Submissions are immutable: insert() never overwrites an existing id.

    Scope rules for query():
    - task_id and skill_category together match either (same task OR same skill)
    - language / since / exclude_user_id narrow the result further
    - newest first, optionally limited

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "corpus.sqlite3", *, timeout_seconds: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = float(timeout_seconds)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._ensure_schema()
        except sqlite3.Error as e:
            raise IntegrityCheckError(f"Cannot initialise submission corpus at {self._db_path}") from e
        logger.info("SubmissionCorpus ready db=%s total=%s", self._db_path, self.count())

    def close(self) -> None:
        return

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS submissions (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    language TEXT NOT NULL DEFAULT '',
                    submitted_at REAL NOT NULL,
                    raw_score REAL,
                    points_awarded REAL NOT NULL DEFAULT 0,
                    similarity REAL,
                    skill_category TEXT
                )
                """
            )

            cur.execute("PRAGMA table_info(submissions)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE submissions ADD COLUMN {name} {decl}")
                logger.info("SubmissionCorpus migration: added column %s", name)

            add_col("similarity", "REAL")
            add_col("skill_category", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_sub_task ON submissions(task_id, submitted_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_sub_skill ON submissions(skill_category, submitted_at)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_submission(row: sqlite3.Row) -> Submission:
        return Submission(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            user_id=str(row["user_id"]),
            content=str(row["content"] or ""),
            language=str(row["language"] or ""),
            submitted_at=_from_ts(row["submitted_at"]),  # type: ignore[arg-type]
            raw_score=row["raw_score"],
            points_awarded=float(row["points_awarded"] or 0.0),
            similarity=row["similarity"],
            skill_category=row["skill_category"],
        )

    def count(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM submissions").fetchone()
            return int(n)
        except sqlite3.Error as e:
            raise IntegrityCheckError("corpus count failed") from e
        finally:
            conn.close()

    def query(self, scope: CorpusScope) -> list[Submission]:
        if not scope.task_id and not scope.skill_category:
            raise ValidationError("corpus scope needs a task_id or a skill_category")

        where: list[str] = []
        params: list[Any] = []

        scoped: list[str] = []
        if scope.task_id:
            scoped.append("task_id = ?")
            params.append(scope.task_id)
        if scope.skill_category:
            scoped.append("skill_category = ?")
            params.append(scope.skill_category)
        where.append("(" + " OR ".join(scoped) + ")")

        if scope.language:
            where.append("lower(language) = ?")
            params.append(scope.language.strip().lower())
        if scope.since is not None:
            where.append("submitted_at >= ?")
            params.append(_to_ts(scope.since))
        if scope.exclude_user_id:
            where.append("user_id != ?")
            params.append(scope.exclude_user_id)

        sql = "SELECT * FROM submissions WHERE " + " AND ".join(where) + " ORDER BY submitted_at DESC, id ASC"
        if scope.limit is not None and scope.limit > 0:
            sql += " LIMIT ?"
            params.append(int(scope.limit))

        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_submission(r) for r in rows]
        except sqlite3.Error as e:
            raise IntegrityCheckError("corpus query failed") from e
        finally:
            conn.close()

    def get(self, submission_id: str) -> Submission | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM submissions WHERE id = ?", (str(submission_id),)).fetchone()
            return self._row_to_submission(row) if row else None
        except sqlite3.Error as e:
            raise IntegrityCheckError(f"corpus get failed id={submission_id}") from e
        finally:
            conn.close()

    def stats_for_user(self, user_id: str, *, flag_threshold: float = HIGH_RISK_THRESHOLD) -> PlagiarismStats:
        """
        Submissions recorded without a similarity (check undetermined) are not counted.
        flagged_count uses the high-risk rule: similarity > flag_threshold.
        """
        conn = self._get_conn()
        try:
            total, avg, flagged = conn.execute(
                """
                SELECT COUNT(similarity),
                       AVG(similarity),
                       SUM(CASE WHEN similarity > ? THEN 1 ELSE 0 END)
                FROM submissions
                WHERE user_id = ?
                """,
                (float(flag_threshold), str(user_id)),
            ).fetchone()
        except sqlite3.Error as e:
            raise IntegrityCheckError(f"corpus stats failed user={user_id}") from e
        finally:
            conn.close()
        return PlagiarismStats(
            user_id=str(user_id),
            total_checks=int(total or 0),
            average_similarity=float(avg or 0.0),
            flagged_count=int(flagged or 0),
        )

    def insert(self, submission: Submission) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO submissions(
                        id, task_id, user_id, content, language, submitted_at,
                        raw_score, points_awarded, similarity, skill_category
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        submission.id,
                        submission.task_id,
                        submission.user_id,
                        submission.content,
                        submission.language,
                        _to_ts(submission.submitted_at),
                        submission.raw_score,
                        float(submission.points_awarded),
                        submission.similarity,
                        submission.skill_category,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise IntegrityCheckError(f"submission {submission.id} already recorded") from e
        except sqlite3.Error as e:
            raise IntegrityCheckError(f"corpus insert failed id={submission.id}") from e
        finally:
            conn.close()
