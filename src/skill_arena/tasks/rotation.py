# src/skill_arena/tasks/rotation.py

from __future__ import annotations

"""
Task rotation engine.

Decides, without touching the input values or any store, whether a task must be
retired, and builds replacement tasks through an injected template source.

Rules (first match wins):
1. task is inactive                         -> rotate, reason=manual
2. age_in_days >= max_age_days              -> rotate, reason=time_expired
3. completion_count >= max_completions      -> rotate, reason=completion_limit
4. otherwise                                -> keep

Limits are inclusive: reaching the limit exactly triggers rotation.
"""

import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from ..core.ports import TaskTemplateSource
from ..errors import ConfigurationError
from .task_models import RotationReason, Task, TaskSeed, utcnow

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)

# Replacement ids are derived from the original id so retries land on the same row.
REPLACEMENT_NAMESPACE = uuid.UUID("5b0f4f2e-6a43-4c4e-9f57-3f1f2a0c7d11")


@dataclass(frozen=True, slots=True)
class RotationConfig:
    max_age_days: int = 14
    max_completions: int = 50
    approaching_days: int = 3
    approaching_completions: int = 10

    def __post_init__(self) -> None:
        if self.max_age_days <= 0:
            raise ConfigurationError(f"max_age_days must be > 0, got {self.max_age_days}")
        if self.max_completions <= 0:
            raise ConfigurationError(f"max_completions must be > 0, got {self.max_completions}")
        if self.approaching_days < 0 or self.approaching_completions < 0:
            raise ConfigurationError("approaching thresholds must be >= 0")


@dataclass(frozen=True, slots=True)
class RotationDecision:
    rotate: bool
    reason: RotationReason | None


@dataclass(frozen=True, slots=True)
class ApproachStatus:
    approaching: bool
    days_left: int
    completions_left: int


@dataclass(slots=True)
class BatchResult:
    rotated: list[Task] = field(default_factory=list)
    remaining: list[Task] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RotationStats:
    total_tasks: int
    active_tasks: int
    rotated_tasks: int
    approaching_rotation: int
    average_age: float
    average_completions: float


def replacement_id_for(original_id: str) -> str:
    return str(uuid.uuid5(REPLACEMENT_NAMESPACE, original_id))


class TaskRotationEngine:
    """
    Pure rotation rules plus replacement generation.

    The clock is injected so that evaluation is deterministic in tests.
    """

    def __init__(
        self,
        config: RotationConfig | None = None,
        *,
        template_source: TaskTemplateSource | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config or RotationConfig()
        self._template_source = template_source
        self._now = now
        self._replacements: dict[str, Task] = {}
        self._replacements_lock = threading.Lock()

    @property
    def config(self) -> RotationConfig:
        return self._config

    # ---- per-task rules ----

    def task_age_days(self, task: Task, now: datetime | None = None) -> int:
        """Whole days since creation (floor). Negative for creation dates in the future."""
        now = now or self._now()
        return (now - task.created_at) // _ONE_DAY

    def remaining_completions(self, task: Task) -> int:
        return max(0, self._config.max_completions - task.completion_count)

    def should_rotate(self, task: Task) -> RotationDecision:
        if not task.is_active:
            return RotationDecision(True, RotationReason.MANUAL)
        if self.task_age_days(task) >= self._config.max_age_days:
            return RotationDecision(True, RotationReason.TIME_EXPIRED)
        if task.completion_count >= self._config.max_completions:
            return RotationDecision(True, RotationReason.COMPLETION_LIMIT)
        return RotationDecision(False, None)

    def rotate_task(self, task: Task, reason: RotationReason) -> Task:
        """Return the retired version of `task`. Every other field is kept as is."""
        return replace(
            task,
            is_active=False,
            rotation_reason=RotationReason(reason),
            expires_at=self._now(),
        )

    def is_approaching_rotation(self, task: Task) -> ApproachStatus:
        cfg = self._config
        days_left = max(0, cfg.max_age_days - self.task_age_days(task))
        completions_left = self.remaining_completions(task)
        approaching = days_left <= cfg.approaching_days or completions_left <= cfg.approaching_completions
        return ApproachStatus(
            approaching=approaching,
            days_left=days_left,
            completions_left=completions_left,
        )

    # ---- collections ----

    def tasks_for_rotation(self, tasks: Iterable[Task]) -> list[Task]:
        return [t for t in tasks if self.should_rotate(t).rotate]

    def batch_evaluate(self, tasks: Sequence[Task]) -> BatchResult:
        """
        Stable partition of `tasks` into rotated (retired copies) and remaining.

        Tasks that were already retired go to `rotated` untouched, so their original
        reason and expiry survive a re-evaluation.
        """
        result = BatchResult()
        for task in tasks:
            decision = self.should_rotate(task)
            if not task.is_active and task.rotation_reason is not None and task.expires_at is not None:
                result.rotated.append(task)
            elif decision.rotate and decision.reason is not None:
                result.rotated.append(self.rotate_task(task, decision.reason))
            else:
                result.remaining.append(task)
        return result

    def get_rotation_stats(self, tasks: Sequence[Task]) -> RotationStats:
        total = len(tasks)
        active = [t for t in tasks if t.is_active]

        approaching = sum(1 for t in active if self.is_approaching_rotation(t).approaching)

        now = self._now()
        average_age = (
            sum(self.task_age_days(t, now) for t in active) / len(active) if active else 0.0
        )
        average_completions = sum(t.completion_count for t in tasks) / total if total else 0.0

        return RotationStats(
            total_tasks=total,
            active_tasks=len(active),
            rotated_tasks=total - len(active),
            approaching_rotation=approaching,
            average_age=round(average_age, 2),
            average_completions=round(average_completions, 2),
        )

    # ---- replacements ----

    def generate_replacement(self, original: Task) -> Task:
        """
        Build a fresh task with the same shape as `original`.

        Idempotent per original id: the replacement id is derived from it and
        generated replacements are memoized, so a retried sweep neither calls the
        template source twice nor produces a second task.
        """
        if self._template_source is None:
            raise ConfigurationError("TaskRotationEngine has no template source configured")

        with self._replacements_lock:
            cached = self._replacements.get(original.id)
            if cached is not None:
                logger.debug("Replacement for task %s already generated (%s)", original.id, cached.id)
                return cached

            seed = TaskSeed.from_task(original)
            new_id = replacement_id_for(original.id)
            content = self._template_source.generate(seed, idempotency_key=original.id)

            replacement = Task(
                id=new_id,
                title=content.title,
                description=content.description,
                skill_category=seed.skill_category,
                task_type=seed.task_type,
                base_points=seed.base_points,
                max_points=seed.max_points,
                estimated_duration_minutes=seed.estimated_duration_minutes,
                created_at=self._now(),
                completion_count=0,
                max_completions=self._config.max_completions,
                is_active=True,
                replaces_task_id=original.id,
            )
            self._replacements[original.id] = replacement

        logger.info(
            "Replacement generated original=%s replacement=%s skill=%s type=%s",
            original.id,
            replacement.id,
            replacement.skill_category.value,
            replacement.task_type.value,
        )
        return replacement

    def forget_replacement(self, original_id: str) -> None:
        """Drop a memoized replacement (after it has been persisted)."""
        with self._replacements_lock:
            self._replacements.pop(original_id, None)
