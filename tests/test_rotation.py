# tests/test_rotation.py

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from skill_arena.core.skills import SkillArea
from skill_arena.errors import ConfigurationError
from skill_arena.tasks.rotation import RotationConfig, TaskRotationEngine, replacement_id_for
from skill_arena.tasks.task_models import RotationReason, TaskType

from .fakes import FIXED_NOW, make_task


def test_task_older_than_max_age_rotates_as_time_expired(engine) -> None:
    task = make_task(age_days=15, completion_count=10)
    decision = engine.should_rotate(task)
    assert decision.rotate is True
    assert decision.reason == RotationReason.TIME_EXPIRED


def test_task_at_completion_limit_rotates_as_completion_limit(engine) -> None:
    task = make_task(age_days=2, completion_count=50)
    decision = engine.should_rotate(task)
    assert decision.rotate is True
    assert decision.reason == RotationReason.COMPLETION_LIMIT


def test_inactive_task_rotates_as_manual(engine) -> None:
    task = make_task(is_active=False)
    assert engine.should_rotate(task).reason == RotationReason.MANUAL


def test_age_is_counted_in_whole_days(engine) -> None:
    assert engine.task_age_days(make_task(age_days=13.9)) == 13
    assert engine.should_rotate(make_task(age_days=13.9)).rotate is False
    assert engine.should_rotate(make_task(age_days=14)).rotate is True


def test_time_limit_wins_over_completion_limit(engine) -> None:
    decision = engine.should_rotate(make_task(age_days=30, completion_count=99))
    assert decision.reason == RotationReason.TIME_EXPIRED


def test_should_rotate_matches_limits_for_active_tasks(engine) -> None:
    for age in (0, 5, 13, 14, 20):
        for count in (0, 10, 49, 50, 70):
            decision = engine.should_rotate(make_task(age_days=age, completion_count=count))
            assert decision.rotate == (age >= 14 or count >= 50), (age, count)
            if not decision.rotate:
                assert decision.reason is None


def test_rotate_task_only_changes_rotation_fields(engine) -> None:
    task = make_task(age_days=3, completion_count=7, skill=SkillArea.AI_ML, task_type=TaskType.MINI_PROJECT)
    rotated = engine.rotate_task(task, RotationReason.MANUAL)

    assert rotated.is_active is False
    assert rotated.rotation_reason == RotationReason.MANUAL
    assert rotated.expires_at == FIXED_NOW
    assert replace(rotated, is_active=True, rotation_reason=None, expires_at=None) == task
    # The input value is untouched.
    assert task.is_active is True


def test_rotate_task_applies_supplied_reason_even_if_already_retired(engine) -> None:
    task = make_task(is_active=False, rotation_reason=RotationReason.TIME_EXPIRED, expires_at=FIXED_NOW)
    assert engine.rotate_task(task, RotationReason.MANUAL).rotation_reason == RotationReason.MANUAL


def test_batch_evaluate_is_a_stable_partition(engine) -> None:
    tasks = [
        make_task("a", age_days=1),
        make_task("b", age_days=20),
        make_task("c", age_days=2, completion_count=5),
        make_task("d", completion_count=60),
        make_task("e", age_days=4),
    ]
    result = engine.batch_evaluate(tasks)

    assert [t.id for t in result.rotated] == ["b", "d"]
    assert [t.id for t in result.remaining] == ["a", "c", "e"]
    assert all(not t.is_active for t in result.rotated)
    assert [t.rotation_reason for t in result.rotated] == [
        RotationReason.TIME_EXPIRED,
        RotationReason.COMPLETION_LIMIT,
    ]
    assert len(result.rotated) + len(result.remaining) == len(tasks)


def test_batch_evaluate_keeps_already_retired_tasks_untouched(engine) -> None:
    retired_at = FIXED_NOW - timedelta(days=3)
    old = make_task("old", age_days=30, is_active=False, rotation_reason=RotationReason.COMPLETION_LIMIT, expires_at=retired_at)

    result = engine.batch_evaluate([old])

    assert result.rotated == [old]
    assert result.remaining == []


def test_batch_evaluate_empty() -> None:
    result = TaskRotationEngine().batch_evaluate([])
    assert result.rotated == []
    assert result.remaining == []


def test_is_approaching_rotation(engine) -> None:
    fresh = engine.is_approaching_rotation(make_task(age_days=1))
    assert fresh.approaching is False
    assert fresh.days_left == 13
    assert fresh.completions_left == 50

    assert engine.is_approaching_rotation(make_task(age_days=12)).approaching is True
    busy = engine.is_approaching_rotation(make_task(age_days=1, completion_count=45))
    assert busy.approaching is True
    assert busy.completions_left == 5


def test_approaching_thresholds_come_from_config() -> None:
    strict = TaskRotationEngine(RotationConfig(approaching_days=0, approaching_completions=0), now=lambda: FIXED_NOW)
    assert strict.is_approaching_rotation(make_task(age_days=12, completion_count=45)).approaching is False


def test_rotation_stats_on_empty_pool_are_zero() -> None:
    stats = TaskRotationEngine(now=lambda: FIXED_NOW).get_rotation_stats([])
    assert stats.total_tasks == 0
    assert stats.active_tasks == 0
    assert stats.rotated_tasks == 0
    assert stats.approaching_rotation == 0
    assert stats.average_age == 0.0
    assert stats.average_completions == 0.0


def test_rotation_stats(engine) -> None:
    tasks = [
        make_task("a", age_days=1, completion_count=0),
        make_task("b", age_days=12, completion_count=10),
        make_task("c", age_days=20, completion_count=5, is_active=False,
                  rotation_reason=RotationReason.MANUAL, expires_at=FIXED_NOW),
    ]
    stats = engine.get_rotation_stats(tasks)

    assert stats.total_tasks == 3
    assert stats.active_tasks == 2
    assert stats.rotated_tasks == 1
    assert stats.approaching_rotation == 1
    assert stats.average_age == 6.5
    assert stats.average_completions == 5.0


def test_tasks_for_rotation(engine) -> None:
    tasks = [make_task("a"), make_task("b", age_days=15)]
    assert [t.id for t in engine.tasks_for_rotation(tasks)] == ["b"]


def test_generate_replacement_keeps_shape(engine, template_source) -> None:
    original = make_task("orig", age_days=20, completion_count=12, skill=SkillArea.CLOUD_DEVOPS,
                         task_type=TaskType.MINI_PROJECT, max_completions=10)
    replacement = engine.generate_replacement(original)

    assert replacement.id == replacement_id_for("orig")
    assert replacement.id != original.id
    assert replacement.replaces_task_id == "orig"
    assert replacement.skill_category == SkillArea.CLOUD_DEVOPS
    assert replacement.task_type == TaskType.MINI_PROJECT
    assert (replacement.base_points, replacement.max_points) == (original.base_points, original.max_points)
    assert replacement.estimated_duration_minutes == original.estimated_duration_minutes
    assert replacement.completion_count == 0
    assert replacement.is_active is True
    assert replacement.max_completions == engine.config.max_completions
    assert replacement.created_at == FIXED_NOW
    assert template_source.calls[0][1] == "orig"


def test_generate_replacement_is_idempotent(engine, template_source) -> None:
    original = make_task("orig", age_days=20)
    first = engine.generate_replacement(original)
    second = engine.generate_replacement(original)

    assert first == second
    assert len(template_source.calls) == 1

    engine.forget_replacement("orig")
    third = engine.generate_replacement(original)
    assert third.id == first.id
    assert len(template_source.calls) == 2


def test_generate_replacement_without_source_raises() -> None:
    with pytest.raises(ConfigurationError):
        TaskRotationEngine().generate_replacement(make_task())


@pytest.mark.parametrize(
    "kwargs",
    [{"max_age_days": 0}, {"max_completions": -1}, {"approaching_days": -1}],
)
def test_invalid_rotation_config_is_rejected(kwargs) -> None:
    with pytest.raises(ConfigurationError):
        RotationConfig(**kwargs)
