# src/skill_arena/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..integrity.corpus import SqliteSubmissionCorpus
from ..integrity.plagiarism import IntegrityEngine
from ..scoring.points import ScoringEngine
from ..tasks.rotation import TaskRotationEngine
from ..tasks.task_scheduler import RotationSchedulerRunner
from ..tasks.task_store import TaskStore
from .pipeline import SubmissionPipeline
from .ports import LLMClient, TaskTemplateSource


@dataclass
class AppState:
    """Everything a connector needs, wired once by the composition root."""

    settings: Any
    llm: LLMClient
    task_store: TaskStore
    corpus: SqliteSubmissionCorpus
    forge: TaskTemplateSource
    rotation: TaskRotationEngine
    scoring: ScoringEngine
    integrity: IntegrityEngine
    pipeline: SubmissionPipeline

    # Set by main() once the background scheduler is running.
    scheduler: RotationSchedulerRunner | None = None

    # Serialises console commands against each other (sweeps use their own asyncio lock).
    lock: threading.Lock = field(default_factory=threading.Lock)
