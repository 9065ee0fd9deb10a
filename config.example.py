# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep them in .env (local, gitignored).

Invalid values (non-numeric limits, unknown policies, a broken skill config file)
stop the app at startup.
"""

ENV_VARS = {
    # App / logging
    "ARENA_APP_NAME": "App display name (default: skill-arena).",
    "ARENA_LOG_LEVEL": "Console logging level (default: INFO). The file log is always DEBUG.",
    # Paths (gitignored)
    "ARENA_DATA_DIR": "Local data directory, also holds arena.log (default: .local/arena).",
    "ARENA_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "ARENA_CORPUS_DB_PATH": "Submission corpus SQLite path (default: <data_dir>/corpus.sqlite3).",
    "ARENA_SKILL_CONFIG_PATH": "Optional JSON file with the four skill configurations (default: built-in).",
    # Rotation
    "ARENA_ROTATION_MAX_AGE_DAYS": "Retire a task once it is this many days old (default: 14).",
    "ARENA_ROTATION_MAX_COMPLETIONS": "Retire a task after this many completions (default: 50).",
    "ARENA_APPROACHING_DAYS": "'Rotating soon' when at most this many days are left (default: 3).",
    "ARENA_APPROACHING_COMPLETIONS": "'Rotating soon' when at most this many completions are left (default: 10).",
    "ARENA_SWEEP_ENABLED": "Run the background rotation scheduler (default: true).",
    "ARENA_SWEEP_INTERVAL_SECONDS": "Seconds between rotation sweeps (default: 3600).",
    "ARENA_SWEEP_TIMEOUT_SECONDS": "Abort a sweep (nothing written) after this many seconds (default: 60).",
    # Scoring
    "ARENA_FAIRNESS_THRESHOLD": "Max cross-skill points variance in percent (default: 10).",
    "ARENA_FAIRNESS_REFERENCE_SCORE": "Raw score used for the startup fairness check (default: 80).",
    # Integrity
    "ARENA_MATCH_THRESHOLD": "Similarity at which a prior submission counts as a match (default: 0.3).",
    "ARENA_CORPUS_WINDOW_DAYS": "Only compare against submissions this recent; 0 = full history (default: 0).",
    "ARENA_CORPUS_MAX_CANDIDATES": "Max prior submissions compared per check; 0 = no cap (default: 500).",
    "ARENA_INTEGRITY_ON_ERROR": "When a check cannot complete: block | review (default: review).",
    "ARENA_INTEGRITY_TIMEOUT_SECONDS": "Timeout for async integrity checks (default: 10).",
    # Task forge
    "ARENA_TASK_FORGE_MODE": "Where new task content comes from: template | llm (default: template).",
    # LLM / OpenRouter (only used by the llm task forge)
    "ARENA_OPENROUTER_API_KEY": "OpenRouter API key (offline client is used when unset).",
    "ARENA_OPENROUTER_BASE_URL": "OpenAI-compatible base URL (default: https://openrouter.ai/api/v1).",
    "ARENA_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "ARENA_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "ARENA_APP_TITLE": "Optional OpenRouter metadata header title.",
    "ARENA_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Give up on a model without a first token after this long (default: 30).",
    "ARENA_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 40).",
    "ARENA_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
}
