# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from skill_arena.core.pipeline import SubmissionPipeline
from skill_arena.core.state import AppState
from skill_arena.integrity.corpus import SqliteSubmissionCorpus
from skill_arena.integrity.plagiarism import IntegrityEngine
from skill_arena.scoring.points import ScoringEngine
from skill_arena.tasks.rotation import TaskRotationEngine
from skill_arena.tasks.task_forge import TemplateTaskForge
from skill_arena.tasks.task_store import TaskStore

from .fakes import FIXED_NOW, FakeLLMClient, FakeTemplateSource


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="skill-arena-test",
        log_level="INFO",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        corpus_db_path=tmp_path / "corpus.sqlite3",
        skill_config_path=None,
        # Rotation
        rotation_max_age_days=14,
        rotation_max_completions=50,
        approaching_days=3,
        approaching_completions=10,
        sweep_interval_seconds=3600.0,
        sweep_timeout_seconds=5.0,
        sweep_enabled=False,
        # Scoring
        fairness_threshold=10.0,
        fairness_reference_score=80.0,
        # Integrity
        match_threshold=0.3,
        corpus_window_days=0,
        corpus_max_candidates=0,
        integrity_on_error="review",
        integrity_timeout_seconds=5.0,
        # Forge / LLM (no key -> offline client)
        task_forge_mode="template",
        openrouter_api_key=None,
        openrouter_base_url="https://example.invalid/api/v1",
        llm_models=["test/model"],
        extra_headers={},
    )


@pytest.fixture()
def template_source() -> FakeTemplateSource:
    return FakeTemplateSource()


@pytest.fixture()
def engine(template_source: FakeTemplateSource) -> TaskRotationEngine:
    return TaskRotationEngine(template_source=template_source, now=lambda: FIXED_NOW)


@pytest.fixture()
def task_store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def corpus(tmp_path: Path) -> SqliteSubmissionCorpus:
    return SqliteSubmissionCorpus(tmp_path / "corpus.sqlite3")


@pytest.fixture()
def state(settings: SimpleNamespace, task_store: TaskStore, corpus: SqliteSubmissionCorpus) -> AppState:
    """
    AppState wired with real SQLite stores and the template forge.

    NOTE: stores are real because their correctness is part of what we want to test.
    """
    forge = TemplateTaskForge()
    scoring = ScoringEngine()
    integrity = IntegrityEngine(corpus)
    return AppState(
        settings=settings,
        llm=FakeLLMClient(),
        task_store=task_store,
        corpus=corpus,
        forge=forge,
        rotation=TaskRotationEngine(template_source=forge),
        scoring=scoring,
        integrity=integrity,
        pipeline=SubmissionPipeline(integrity, scoring),
    )
