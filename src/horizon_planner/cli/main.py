# src/horizon_planner/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/horizon")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.info("Starting %s...", getattr(settings, "app_name", "horizon"))

    state = create_initial_state(settings=settings)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled; nothing to run.")
    finally:
        # TaskStore uses short-lived sqlite connections per call; close() is a hook only.
        close = getattr(state.task_store, "close", None)
        if callable(close):
            close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
