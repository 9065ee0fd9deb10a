# src/skill_arena/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

APP_LOGGER = "skill_arena"

# Background components that log on every tick; console shows them only at WARNING+.
QUIET_APP_LOGGERS: tuple[str, ...] = (
    "skill_arena.tasks.task_scheduler",
    "skill_arena.integrity.corpus",
    "skill_arena.tasks.task_store",
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable.

    App logs pass, except QUIET_APP_LOGGERS below WARNING. Everything else
    (openai, httpx, py.warnings) only reaches the console at ERROR+.
    """

    def __init__(self, quiet: tuple[str, ...] = QUIET_APP_LOGGERS) -> None:
        super().__init__()
        self._quiet = quiet

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == APP_LOGGER or name.startswith(APP_LOGGER + "."):
            if name.startswith(self._quiet):
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


def _level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    return logging.getLevelName(str(value).strip().upper()) if str(value).strip() else logging.INFO


def setup_logging(
    *,
    log_dir: str | Path = ".local/arena",
    console_level: int | str = logging.INFO,
    file_level: int | str = logging.DEBUG,
    max_bytes: int = 5_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Console handler: filtered for interactive use.
    File handler: everything, rotated by size, with the thread name so sweeps
    running in the scheduler thread can be told apart.

    Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "arena.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    datefmt = "%Y-%m-%d %H:%M:%S"
    console_fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt=datefmt)
    file_fmt = logging.Formatter(
        "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt=datefmt,
    )

    console = logging.StreamHandler(sys.stderr)
    level = _level(console_level)
    console.setLevel(level if isinstance(level, int) else logging.INFO)
    console.setFormatter(console_fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    level = _level(file_level)
    file_handler.setLevel(level if isinstance(level, int) else logging.DEBUG)
    file_handler.setFormatter(file_fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # Request lines from the HTTP stack drown the rotation/integrity logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.INFO)
    return log_file
