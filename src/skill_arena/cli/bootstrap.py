# src/skill_arena/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- loads and validates skill configurations (fatal on error),
- wires concrete implementations into AppState (stores/engines/forge/LLM).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.pipeline import SubmissionPipeline
from ..core.ports import LLMClient, TaskTemplateSource
from ..core.state import AppState
from ..integrity.corpus import SqliteSubmissionCorpus
from ..integrity.plagiarism import IntegrityEngine
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..scoring.points import ScoringEngine
from ..scoring.skill_config import load_skill_configurations
from ..tasks.rotation import RotationConfig, TaskRotationEngine
from ..tasks.task_forge import LLMTaskForge, TemplateTaskForge
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.corpus_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_llm_client(settings) -> LLMClient:
    if not settings.openrouter_api_key:
        logger.info("No LLM API key configured; using offline client.")
        return OfflineLLMClient()
    try:
        return OpenRouterLLMClient(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            models=list(settings.llm_models),
            extra_headers=dict(settings.extra_headers),
        )
    except RuntimeError:
        # Fallback for demos / local runs without external services.
        logger.warning("LLM client not available; using offline client.", exc_info=True)
        return OfflineLLMClient()


def build_task_forge(settings, llm: LLMClient) -> TaskTemplateSource:
    if settings.task_forge_mode == "llm":
        return LLMTaskForge(llm)
    return TemplateTaskForge()


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    Raises ConfigurationError for any invalid rotation/scoring/integrity setting.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_client = build_llm_client(settings)
    forge = build_task_forge(settings, llm_client)

    rotation = TaskRotationEngine(
        RotationConfig(
            max_age_days=settings.rotation_max_age_days,
            max_completions=settings.rotation_max_completions,
            approaching_days=settings.approaching_days,
            approaching_completions=settings.approaching_completions,
        ),
        template_source=forge,
    )
    scoring = ScoringEngine(
        load_skill_configurations(settings.skill_config_path),
        fairness_threshold=settings.fairness_threshold,
    )

    corpus = SqliteSubmissionCorpus(settings.corpus_db_path)
    integrity = IntegrityEngine(
        corpus,
        match_threshold=settings.match_threshold,
        window_days=settings.corpus_window_days,
        max_candidates=settings.corpus_max_candidates,
        query_timeout_seconds=settings.integrity_timeout_seconds,
    )

    state = AppState(
        settings=settings,
        llm=llm_client,
        task_store=TaskStore(settings.tasks_db_path),
        corpus=corpus,
        forge=forge,
        rotation=rotation,
        scoring=scoring,
        integrity=integrity,
        pipeline=SubmissionPipeline(integrity, scoring, on_integrity_error=settings.integrity_on_error),
    )

    # Logs a warning on its own when the distribution is unfair.
    report = scoring.analyze_fairness(settings.fairness_reference_score)
    logger.info(
        "Fairness at raw=%.0f: variance=%.2f%% fair=%s",
        report.reference_raw_score,
        report.variance_percentage,
        report.is_fair,
    )
    return state
