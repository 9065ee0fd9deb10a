# src/skill_arena/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the rotation scheduler in a background thread (optional),
- the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..errors import ConfigurationError
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import start_rotation_scheduler_in_background

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Stop the scheduler and close stores (stores use short-lived connections)."""
    if state.scheduler is not None:
        state.scheduler.stop()
        state.scheduler.join(timeout=10.0)
    state.integrity.close()
    state.task_store.close()
    state.corpus.close()


def main() -> None:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)
    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    try:
        state = create_initial_state(settings=settings)
    except ConfigurationError:
        # Fail fast: never run with a half-valid configuration.
        logger.exception("Invalid configuration; exiting.")
        sys.exit(2)

    if settings.sweep_enabled:
        state.scheduler = start_rotation_scheduler_in_background(
            state.task_store,
            state.rotation,
            interval_seconds=settings.sweep_interval_seconds,
            timeout_seconds=settings.sweep_timeout_seconds,
        )

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
