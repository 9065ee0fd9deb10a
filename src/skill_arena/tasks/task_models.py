# src/skill_arena/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import StrEnum

from ..core.skills import SkillArea
from ..errors import ValidationError


class TaskType(StrEnum):
    PRACTICE = "practice"
    MINI_PROJECT = "mini_project"

    @classmethod
    def parse(cls, raw: str | TaskType | None) -> TaskType:
        try:
            return cls((raw or "").strip())
        except ValueError:
            raise ValidationError(f"Unknown task type: {raw!r}") from None


class RotationReason(StrEnum):
    """Why a task was retired. Rotation is terminal; there is no reactivation."""

    TIME_EXPIRED = "time_expired"
    COMPLETION_LIMIT = "completion_limit"
    MANUAL = "manual"

    @classmethod
    def from_db(cls, raw: str | None) -> RotationReason | None:
        if not raw:
            return None
        return cls(raw)


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    description: str
    skill_category: SkillArea
    task_type: TaskType

    base_points: int
    max_points: int
    estimated_duration_minutes: int

    created_at: datetime
    completion_count: int = 0
    max_completions: int = 50
    is_active: bool = True

    expires_at: datetime | None = None
    rotation_reason: RotationReason | None = None

    # Set on replacements: id of the task this one was generated for.
    replaces_task_id: str | None = None


@dataclass(frozen=True, slots=True)
class TaskSeed:
    """What the task forge needs to produce a replacement with the same shape."""

    skill_category: SkillArea
    task_type: TaskType
    base_points: int
    max_points: int
    estimated_duration_minutes: int

    @classmethod
    def from_task(cls, task: Task) -> TaskSeed:
        return cls(
            skill_category=task.skill_category,
            task_type=task.task_type,
            base_points=task.base_points,
            max_points=task.max_points,
            estimated_duration_minutes=task.estimated_duration_minutes,
        )


@dataclass(frozen=True, slots=True)
class TaskContent:
    title: str
    description: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_task(task: Task) -> Task:
    """
    Check field-level invariants of a Task value and return it unchanged.

    Raises ValidationError on the first violation.
    """
    if not (task.id or "").strip():
        raise ValidationError("task id is required")
    if not (task.title or "").strip():
        raise ValidationError(f"task {task.id}: title is required")
    if not isinstance(task.skill_category, SkillArea):
        raise ValidationError(f"task {task.id}: skill_category must be a SkillArea")
    if task.completion_count < 0:
        raise ValidationError(f"task {task.id}: completion_count must be >= 0")
    if task.max_completions <= 0:
        raise ValidationError(f"task {task.id}: max_completions must be > 0")
    if task.base_points < 0 or task.max_points < task.base_points:
        raise ValidationError(f"task {task.id}: expected 0 <= base_points <= max_points")
    if task.estimated_duration_minutes <= 0:
        raise ValidationError(f"task {task.id}: estimated_duration_minutes must be > 0")
    if task.created_at.tzinfo is None:
        raise ValidationError(f"task {task.id}: created_at must be timezone-aware")
    if not task.is_active and (task.rotation_reason is None or task.expires_at is None):
        raise ValidationError(f"task {task.id}: inactive tasks need rotation_reason and expires_at")
    return task


def record_completion(task: Task) -> Task:
    """Return a copy with one more completion. Only active tasks accept completions."""
    if not task.is_active:
        raise ValidationError(f"task {task.id} is retired and cannot be completed")
    return replace(task, completion_count=task.completion_count + 1)
