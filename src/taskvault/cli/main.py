# src/taskvault/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the projection, then runs:
- the vault watcher in a background thread (optional),
- the console REPL on the event loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown, start_watching
from ..config import get_settings
from ..core.notices import LogNotifier
from ..logging_setup import setup_logging
from .console import run_console_loop

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    notifier = LogNotifier(emit=lambda msg: print(f"[NOTICE] {msg}", flush=True))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings, notifier=notifier)

    try:
        await state.reload()
        logger.info("Loaded %d items from %s", len(state.projection), settings.vault_root)

        if settings.watch_enabled:
            try:
                start_watching(state, asyncio.get_running_loop())
            except Exception:
                logger.exception("Failed to start the vault watcher; continuing without it.")

        await run_console_loop(state)
    finally:
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/taskvault")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "taskvault"))

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
