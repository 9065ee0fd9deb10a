# src/skill_arena/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engines.

The engines depend on Protocols instead of concrete implementations.
This keeps storage/LLM providers swappable and makes testing easier.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..integrity.models import PlagiarismStats, Submission
    from ..tasks.task_models import Task, TaskContent, TaskSeed

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class TaskRepo(Protocol):
    """
    Task Store port.

    The rotation engine only needs load/save; save_batch is what the sweep uses
    so that a sweep persists all-or-nothing.
    """

    def load(self, active_only: bool = False) -> list[Task]: ...
    def save(self, task: Task) -> None: ...
    def save_batch(self, tasks: Sequence[Task]) -> None: ...


class TaskTemplateSource(Protocol):
    """Task Forge port: produce fresh content for a seed. Internals are opaque."""

    def generate(self, seed: TaskSeed, *, idempotency_key: str | None = None) -> TaskContent: ...


@dataclass(frozen=True, slots=True)
class CorpusScope:
    """Which prior submissions are comparison candidates."""

    task_id: str | None = None
    skill_category: str | None = None
    language: str | None = None
    since: datetime | None = None
    exclude_user_id: str | None = None
    limit: int | None = None


class SubmissionCorpus(Protocol):
    def query(self, scope: CorpusScope) -> list[Submission]: ...
    def insert(self, submission: Submission) -> None: ...
    def stats_for_user(self, user_id: str, *, flag_threshold: float) -> PlagiarismStats: ...
