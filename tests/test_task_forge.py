# tests/test_task_forge.py

from __future__ import annotations

import random

import pytest

from skill_arena.core.skills import SkillArea
from skill_arena.errors import ValidationError
from skill_arena.llm.offline import OfflineLLMClient
from skill_arena.tasks.task_forge import (
    TASK_TYPES,
    LLMTaskForge,
    TemplateTaskForge,
    create_task,
    fill_placeholders,
)
from skill_arena.tasks.task_models import TaskSeed, TaskType

from .fakes import FIXED_NOW, FakeLLMClient


def _seed(skill: SkillArea = SkillArea.CLOUD_DEVOPS, task_type: TaskType = TaskType.PRACTICE) -> TaskSeed:
    profile = TASK_TYPES[task_type]
    return TaskSeed(skill, task_type, profile.base_points, profile.max_points, profile.duration_min)


def test_every_skill_and_type_has_a_template() -> None:
    forge = TemplateTaskForge()
    for skill in SkillArea:
        for task_type in TaskType:
            assert forge.templates_for(skill, task_type), (skill, task_type)


def test_template_forge_is_deterministic_per_key() -> None:
    forge = TemplateTaskForge()
    a = forge.generate(_seed(), idempotency_key="task-1")
    b = forge.generate(_seed(), idempotency_key="task-1")
    assert a == b
    assert "[" not in a.title and "[" not in a.description


def test_fill_placeholders_leaves_unknown_names() -> None:
    text = fill_placeholders("Use [database] with [nope]", random.Random(1))
    assert "[database]" not in text
    assert "[nope]" in text


def test_template_forge_without_matching_template_raises() -> None:
    forge = TemplateTaskForge(templates=())
    with pytest.raises(ValidationError):
        forge.generate(_seed())


def test_llm_forge_parses_json_reply() -> None:
    llm = FakeLLMClient('Sure! {"title": "Ship it", "description": "Deploy a thing."} Enjoy.')
    content = LLMTaskForge(llm).generate(_seed(), idempotency_key="k")

    assert content.title == "Ship it"
    assert content.description == "Deploy a thing."
    messages, system_prompt = llm.calls[0]
    assert "task forge" in system_prompt
    assert "Cloud Computing & DevOps" in messages[0]["content"]


@pytest.mark.parametrize(
    "reply",
    ["no json here", '{"title": "x"}', '{"title": "", "description": "d"}', "{not json}"],
)
def test_llm_forge_rejects_bad_replies(reply: str) -> None:
    with pytest.raises(ValidationError):
        LLMTaskForge(FakeLLMClient(reply)).generate(_seed())


def test_llm_forge_with_offline_client() -> None:
    content = LLMTaskForge(OfflineLLMClient()).generate(_seed(SkillArea.AI_ML, TaskType.MINI_PROJECT))
    assert "AI / Machine Learning" in content.title


def test_create_task_uses_type_profile() -> None:
    task = create_task(
        TemplateTaskForge(),
        SkillArea.DATA_ANALYTICS,
        TaskType.MINI_PROJECT,
        max_completions=30,
        now=lambda: FIXED_NOW,
        rng=random.Random(7),
    )
    profile = TASK_TYPES[TaskType.MINI_PROJECT]

    assert task.is_active is True
    assert task.completion_count == 0
    assert task.max_completions == 30
    assert task.created_at == FIXED_NOW
    assert (task.base_points, task.max_points) == (profile.base_points, profile.max_points)
    assert profile.duration_min <= task.estimated_duration_minutes <= profile.duration_max
