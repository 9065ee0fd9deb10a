# src/skill_arena/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Bad values fail fast with ConfigurationError (startup is the only place they are read).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

ENV_PREFIX = "ARENA"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_optional_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    corpus_db_path: Path
    skill_config_path: Optional[Path]

    # ---- Rotation ----
    rotation_max_age_days: int
    rotation_max_completions: int
    approaching_days: int
    approaching_completions: int
    sweep_interval_seconds: float
    sweep_timeout_seconds: float
    sweep_enabled: bool

    # ---- Scoring ----
    fairness_threshold: float
    fairness_reference_score: float

    # ---- Integrity ----
    match_threshold: float
    corpus_window_days: int
    corpus_max_candidates: int
    integrity_on_error: str
    integrity_timeout_seconds: float

    # ---- Task forge ----
    task_forge_mode: str

    # ---- LLM / OpenRouter ----
    openrouter_api_key: Optional[str]
    openrouter_base_url: str
    llm_models: List[str]
    extra_headers: Dict[str, str]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="skill-arena") or "skill-arena"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/arena"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        corpus_db_path = _env_path(_k("CORPUS_DB_PATH"), data_dir / "corpus.sqlite3")
        skill_config_path = _env_optional_path(_k("SKILL_CONFIG_PATH"))

        integrity_on_error = _env(_k("INTEGRITY_ON_ERROR"), "review").strip().lower()
        if integrity_on_error not in {"block", "review"}:
            raise ConfigurationError(
                f"{_k('INTEGRITY_ON_ERROR')} must be 'block' or 'review', got {integrity_on_error!r}"
            )

        task_forge_mode = _env(_k("TASK_FORGE_MODE"), "template").strip().lower()
        if task_forge_mode not in {"template", "llm"}:
            raise ConfigurationError(f"{_k('TASK_FORGE_MODE')} must be 'template' or 'llm', got {task_forge_mode!r}")

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        extra_headers = {
            "HTTP-Referer": _env(_k("HTTP_REFERER"), "https://example.com"),
            "X-Title": _env(_k("APP_TITLE"), app_name),
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            corpus_db_path=corpus_db_path,
            skill_config_path=skill_config_path,
            rotation_max_age_days=_env_int(_k("ROTATION_MAX_AGE_DAYS"), 14),
            rotation_max_completions=_env_int(_k("ROTATION_MAX_COMPLETIONS"), 50),
            approaching_days=_env_int(_k("APPROACHING_DAYS"), 3),
            approaching_completions=_env_int(_k("APPROACHING_COMPLETIONS"), 10),
            sweep_interval_seconds=_env_float(_k("SWEEP_INTERVAL_SECONDS"), 3600.0),
            sweep_timeout_seconds=_env_float(_k("SWEEP_TIMEOUT_SECONDS"), 60.0),
            sweep_enabled=_env_bool(_k("SWEEP_ENABLED"), True),
            fairness_threshold=_env_float(_k("FAIRNESS_THRESHOLD"), 10.0),
            fairness_reference_score=_env_float(_k("FAIRNESS_REFERENCE_SCORE"), 80.0),
            match_threshold=_env_float(_k("MATCH_THRESHOLD"), 0.3),
            corpus_window_days=_env_int(_k("CORPUS_WINDOW_DAYS"), 0),
            corpus_max_candidates=_env_int(_k("CORPUS_MAX_CANDIDATES"), 500),
            integrity_on_error=integrity_on_error,
            integrity_timeout_seconds=_env_float(_k("INTEGRITY_TIMEOUT_SECONDS"), 10.0),
            task_forge_mode=task_forge_mode,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
