# tests/fakes.py

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from skill_arena.core.ports import ChatMessage, CorpusScope
from skill_arena.core.skills import SkillArea
from skill_arena.integrity.models import PlagiarismStats, Submission
from skill_arena.tasks.task_models import Task, TaskContent, TaskSeed, TaskType

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_task(
        task_id: str = "t1",
        *,
        age_days: float = 1,
        completion_count: int = 0,
        skill: SkillArea = SkillArea.FULLSTACK_DEV,
        task_type: TaskType = TaskType.PRACTICE,
        now: datetime = FIXED_NOW,
        **kwargs,
) -> Task:
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        description="Build something small.",
        skill_category=skill,
        task_type=task_type,
        base_points=50,
        max_points=100,
        estimated_duration_minutes=20,
        created_at=now - timedelta(days=age_days),
        completion_count=completion_count,
        **kwargs,
    )


def make_submission(
        sub_id: str,
        content: str,
        *,
        user_id: str = "u1",
        task_id: str = "t1",
        language: str = "python",
        skill: SkillArea | None = SkillArea.FULLSTACK_DEV,
        submitted_at: datetime = FIXED_NOW,
) -> Submission:
    return Submission(
        id=sub_id,
        task_id=task_id,
        user_id=user_id,
        content=content,
        language=language,
        submitted_at=submitted_at,
        skill_category=skill.value if skill else None,
    )


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk
    """

    def __init__(self, next_text: str = "ok") -> None:
        self.next_text = next_text
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        yield self.next_text


class FakeTemplateSource:
    """Counts calls; content is derived from the idempotency key."""

    def __init__(self) -> None:
        self.calls: list[tuple[TaskSeed, str | None]] = []

    def generate(self, seed: TaskSeed, *, idempotency_key: str | None = None) -> TaskContent:
        self.calls.append((seed, idempotency_key))
        return TaskContent(
            title=f"Fresh {seed.task_type.value} for {seed.skill_category.value}",
            description=f"Generated for {idempotency_key}",
        )


class FakeTaskRepo:
    """
    In-memory TaskRepo used for sweep/scheduler tests.

    save_batch is all-or-nothing; set fail_on_save to simulate a store failure.
    """

    def __init__(self, tasks: Sequence[Task] = ()) -> None:
        self.tasks: dict[str, Task] = {t.id: t for t in tasks}
        self.save_calls = 0
        self.fail_on_save: Exception | None = None
        self.load_delay: float = 0.0

    def load(self, active_only: bool = False) -> list[Task]:
        if self.load_delay:
            time.sleep(self.load_delay)
        tasks = list(self.tasks.values())
        return [t for t in tasks if t.is_active] if active_only else tasks

    def save(self, task: Task) -> None:
        self.save_batch([task])

    def save_batch(self, tasks: Sequence[Task]) -> None:
        self.save_calls += 1
        if self.fail_on_save is not None:
            raise self.fail_on_save
        for t in tasks:
            self.tasks[t.id] = t


class FakeCorpus:
    """In-memory SubmissionCorpus honouring the scope fields the engine sets."""

    def __init__(self, submissions: Sequence[Submission] = ()) -> None:
        self.submissions: list[Submission] = list(submissions)
        self.queries: list[CorpusScope] = []

    def query(self, scope: CorpusScope) -> list[Submission]:
        self.queries.append(scope)
        out = []
        for s in self.submissions:
            if not (scope.task_id and s.task_id == scope.task_id) and not (
                scope.skill_category and s.skill_category == scope.skill_category
            ):
                continue
            if scope.exclude_user_id and s.user_id == scope.exclude_user_id:
                continue
            if scope.since is not None and s.submitted_at < scope.since:
                continue
            out.append(s)
        out.sort(key=lambda s: s.submitted_at, reverse=True)
        return out[: scope.limit] if scope.limit else out

    def insert(self, submission: Submission) -> None:
        self.submissions.append(submission)

    def stats_for_user(self, user_id: str, *, flag_threshold: float = 0.8) -> PlagiarismStats:
        sims = [s.similarity for s in self.submissions if s.user_id == user_id and s.similarity is not None]
        return PlagiarismStats(
            user_id=user_id,
            total_checks=len(sims),
            average_similarity=sum(sims) / len(sims) if sims else 0.0,
            flagged_count=sum(1 for s in sims if s > flag_threshold),
        )


class SlowCorpus(FakeCorpus):
    """FakeCorpus whose queries block for `delay` seconds."""

    def __init__(self, submissions: Sequence[Submission] = (), *, delay: float = 0.5) -> None:
        super().__init__(submissions)
        self.delay = delay

    def query(self, scope: CorpusScope) -> list[Submission]:
        time.sleep(self.delay)
        return super().query(scope)


class IgnoringScopeCorpus(FakeCorpus):
    """Returns everything, ignoring the user exclusion (a sloppy adapter)."""

    def query(self, scope: CorpusScope) -> list[Submission]:
        self.queries.append(scope)
        return list(self.submissions)


class FailingCorpus:
    """Corpus whose reads and/or writes fail."""

    def __init__(self, *, fail_query: bool = True, fail_insert: bool = True) -> None:
        self.fail_query = fail_query
        self.fail_insert = fail_insert
        self.inserted: list[Submission] = []

    def query(self, scope: CorpusScope) -> list[Submission]:
        if self.fail_query:
            raise OSError("corpus unavailable")
        return []

    def stats_for_user(self, user_id: str, *, flag_threshold: float = 0.8) -> PlagiarismStats:
        if self.fail_query:
            raise OSError("corpus unavailable")
        return PlagiarismStats(user_id=user_id, total_checks=0, average_similarity=0.0, flagged_count=0)

    def insert(self, submission: Submission) -> None:
        if self.fail_insert:
            raise OSError("corpus unavailable")
        self.inserted.append(replace(submission))
