# src/skill_arena/tasks/task_forge.py

from __future__ import annotations

"""
Task forge: template sources that produce task content.

- TemplateTaskForge: placeholder templates per skill area and task type.
  Choices are drawn from a Random seeded with the idempotency key, so generating
  twice for the same key yields the same content.
- LLMTaskForge: asks an LLM for a JSON {title, description} object.

Both implement the TaskTemplateSource port. Neither inspects or touches the store.
"""

import hashlib
import json
import logging
import random
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from ..core.ports import LLMClient, TaskTemplateSource
from ..core.skills import SkillArea
from ..errors import ValidationError
from .task_models import Task, TaskContent, TaskSeed, TaskType, utcnow, validate_task

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TaskTypeProfile:
    duration_min: int
    duration_max: int
    base_points: int
    max_points: int


TASK_TYPES: dict[TaskType, TaskTypeProfile] = {
    TaskType.PRACTICE: TaskTypeProfile(duration_min=10, duration_max=30, base_points=50, max_points=100),
    TaskType.MINI_PROJECT: TaskTypeProfile(duration_min=60, duration_max=180, base_points=200, max_points=400),
}


@dataclass(frozen=True, slots=True)
class TaskTemplate:
    name: str
    skill: SkillArea
    task_type: TaskType
    title: str
    description: str


PLACEHOLDER_VALUES: dict[str, tuple[str, ...]] = {
    "component_type": ("Button", "Modal", "Card", "Form", "Navigation", "Sidebar", "Tabs", "Carousel", "Pagination"),
    "features": ("responsive design", "accessibility", "animations", "form validation", "dark mode", "lazy loading"),
    "platform": ("GitHub", "Stripe", "Google Maps", "Twilio", "Auth0", "Cloudinary"),
    "functionality": ("user authentication", "file upload", "search", "payment processing", "chat system", "booking system"),
    "backend_framework": ("Express", "NestJS", "Django", "Flask", "FastAPI"),
    "database": ("PostgreSQL", "MongoDB", "MySQL", "SQLite", "Redis"),
    "infrastructure_type": ("CI/CD pipeline", "monitoring system", "load balancer", "API gateway", "caching layer"),
    "cloud_platform": ("AWS", "Azure", "Google Cloud", "DigitalOcean", "Fly.io"),
    "devops_tool": ("Docker", "Kubernetes", "Terraform", "GitHub Actions", "Ansible", "Helm"),
    "deployment_strategy": ("blue-green", "canary", "rolling"),
    "data_type": ("customer behavior", "sales data", "weather data", "website analytics", "support tickets"),
    "analysis_type": ("trend analysis", "segmentation", "cohort analysis", "anomaly detection", "A/B testing"),
    "visualization_tool": ("Matplotlib", "Seaborn", "Plotly", "Power BI", "Tableau"),
    "model_type": ("classification", "regression", "clustering", "recommendation", "time series forecasting"),
    "dataset": ("image classification", "sentiment analysis", "fraud detection", "text summarization"),
    "tool": ("scikit-learn", "PyTorch", "TensorFlow", "pandas", "Hugging Face"),
    "evaluation_metric": ("accuracy", "F1-score", "ROC-AUC", "mean absolute error"),
}

TEMPLATES: tuple[TaskTemplate, ...] = (
    TaskTemplate(
        "React Component Builder", SkillArea.FULLSTACK_DEV, TaskType.PRACTICE,
        "Build a [component_type] Component",
        "Create a reusable [component_type] component with [features]. It should be responsive and tested.",
    ),
    TaskTemplate(
        "API Integration Practice", SkillArea.FULLSTACK_DEV, TaskType.PRACTICE,
        "Integrate the [platform] API",
        "Create a small integration with [platform] that demonstrates [functionality]. Handle errors and loading states.",
    ),
    TaskTemplate(
        "Full-Stack Application", SkillArea.FULLSTACK_DEV, TaskType.MINI_PROJECT,
        "Build a [functionality] Application",
        "Create a web application for [functionality] using [backend_framework] and [database].",
    ),
    TaskTemplate(
        "Infrastructure Practice", SkillArea.CLOUD_DEVOPS, TaskType.PRACTICE,
        "Set up a [infrastructure_type] with [devops_tool]",
        "Configure a [infrastructure_type] on [cloud_platform] using [devops_tool]. Document every step.",
    ),
    TaskTemplate(
        "Deployment Project", SkillArea.CLOUD_DEVOPS, TaskType.MINI_PROJECT,
        "Ship a [deployment_strategy] deployment on [cloud_platform]",
        "Automate a [deployment_strategy] deployment on [cloud_platform] with [devops_tool], including rollback.",
    ),
    TaskTemplate(
        "Analysis Practice", SkillArea.DATA_ANALYTICS, TaskType.PRACTICE,
        "Run a [analysis_type] on [data_type]",
        "Perform a [analysis_type] on a [data_type] dataset and present findings with [visualization_tool].",
    ),
    TaskTemplate(
        "Dashboard Project", SkillArea.DATA_ANALYTICS, TaskType.MINI_PROJECT,
        "Build a [data_type] Dashboard",
        "Design an interactive dashboard for [data_type] in [visualization_tool] that highlights a [analysis_type].",
    ),
    TaskTemplate(
        "Model Practice", SkillArea.AI_ML, TaskType.PRACTICE,
        "Train a [model_type] model with [tool]",
        "Train and evaluate a [model_type] model with [tool]. Report [evaluation_metric].",
    ),
    TaskTemplate(
        "ML System Project", SkillArea.AI_ML, TaskType.MINI_PROJECT,
        "Build an end-to-end [dataset] system",
        "Develop a [dataset] pipeline with [tool]: data preparation, training, evaluation by [evaluation_metric], serving.",
    ),
)

_PLACEHOLDER_RE = re.compile(r"\[([a-z_]+)\]")


def _rng_for(key: str | None) -> random.Random:
    if key is None:
        return random.Random()
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def fill_placeholders(text: str, rng: random.Random) -> str:
    """Replace each [name] with a value; unknown placeholders are left as-is."""

    def sub(m: re.Match[str]) -> str:
        values = PLACEHOLDER_VALUES.get(m.group(1))
        return rng.choice(values) if values else m.group(0)

    return _PLACEHOLDER_RE.sub(sub, text)


class TemplateTaskForge:
    """Placeholder-template content generator."""

    def __init__(self, templates: tuple[TaskTemplate, ...] = TEMPLATES) -> None:
        self._templates = templates

    def templates_for(self, skill: SkillArea, task_type: TaskType) -> list[TaskTemplate]:
        return [t for t in self._templates if t.skill == skill and t.task_type == task_type]

    def generate(self, seed: TaskSeed, *, idempotency_key: str | None = None) -> TaskContent:
        candidates = self.templates_for(seed.skill_category, seed.task_type)
        if not candidates:
            raise ValidationError(
                f"No template for skill={seed.skill_category.value} type={seed.task_type.value}"
            )
        rng = _rng_for(idempotency_key)
        template = rng.choice(candidates)
        return TaskContent(
            title=fill_placeholders(template.title, rng),
            description=fill_placeholders(template.description, rng),
        )


TASK_FORGE_SYSTEM_PROMPT = """You are the task forge of a skill-building platform.
Write ONE fresh task for the requested skill area and task type.
Reply with a single JSON object and nothing else:
{"title": "<short imperative title>", "description": "<2-4 sentences>"}
"""


class LLMTaskForge:
    """
    LLM-backed content generator.

    The LLM reply must contain a JSON object with non-empty "title" and
    "description"; anything else raises ValidationError.
    """

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    @staticmethod
    def _build_messages(seed: TaskSeed) -> list[dict[str, str]]:
        return [
            {
                "role": "user",
                "content": (
                    f"Skill area: {seed.skill_category.label}\n"
                    f"Task type: {seed.task_type.value}\n"
                    f"Estimated duration: {seed.estimated_duration_minutes} minutes\n"
                    f"Points: {seed.base_points}-{seed.max_points}"
                ),
            }
        ]

    @staticmethod
    def parse_reply(text: str) -> TaskContent:
        start = text.find("{")
        end = text.rfind("}")
        if start < 0 or end <= start:
            raise ValidationError("LLM reply does not contain a JSON object")
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise ValidationError("LLM reply is not valid JSON") from e

        title = str(data.get("title") or "").strip() if isinstance(data, dict) else ""
        description = str(data.get("description") or "").strip() if isinstance(data, dict) else ""
        if not title or not description:
            raise ValidationError("LLM reply is missing title or description")
        return TaskContent(title=title, description=description)

    def generate(self, seed: TaskSeed, *, idempotency_key: str | None = None) -> TaskContent:
        logger.debug("LLM task forge: generating skill=%s key=%s", seed.skill_category.value, idempotency_key)
        reply = "".join(self._llm.stream_chat(self._build_messages(seed), TASK_FORGE_SYSTEM_PROMPT))
        return self.parse_reply(reply)


def create_task(
    source: TaskTemplateSource,
    skill: SkillArea,
    task_type: TaskType,
    *,
    max_completions: int = 50,
    now: Callable[[], datetime] = utcnow,
    rng: random.Random | None = None,
) -> Task:
    """
    Create a brand-new active task for the pool.

    Duration is drawn from the task type's range; points come from its profile.
    """
    rng = rng or random.Random()
    profile = TASK_TYPES[task_type]
    seed = TaskSeed(
        skill_category=skill,
        task_type=task_type,
        base_points=profile.base_points,
        max_points=profile.max_points,
        estimated_duration_minutes=rng.randint(profile.duration_min, profile.duration_max),
    )
    task_id = str(uuid.uuid4())
    content = source.generate(seed, idempotency_key=task_id)
    return validate_task(
        Task(
            id=task_id,
            title=content.title,
            description=content.description,
            skill_category=skill,
            task_type=task_type,
            base_points=seed.base_points,
            max_points=seed.max_points,
            estimated_duration_minutes=seed.estimated_duration_minutes,
            created_at=now(),
            max_completions=max_completions,
        )
    )
