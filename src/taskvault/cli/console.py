# src/taskvault/cli/console.py

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime

from ..core.state import AppState
from .commands import registry as command_registry

logger = logging.getLogger(__name__)

PROMPT = ">>> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _start_reader(
    loop: asyncio.AbstractEventLoop,
    lines: asyncio.Queue[str | None],
    ready: threading.Event,
) -> threading.Thread:
    """
    Read stdin in a daemon thread and hand lines to the loop.

    The thread prompts again only after `ready` is set, so replies are printed
    before the next prompt. None marks end of input.
    """

    def _run() -> None:
        while True:
            ready.wait()
            ready.clear()
            try:
                line = input(PROMPT)
            except (EOFError, OSError):
                loop.call_soon_threadsafe(lines.put_nowait, None)
                return
            loop.call_soon_threadsafe(lines.put_nowait, line)

    t = threading.Thread(target=_run, name="console-reader", daemon=True)
    t.start()
    return t


async def run_console_loop(state: AppState) -> None:
    logger.info("Console started (vault=%s).", state.settings.vault_root)
    _print_ts("[CONSOLE] Type a command. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g., reload)
        print(f"[{_ts_local()}] {text}", flush=True)

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    ready = threading.Event()
    _start_reader(asyncio.get_running_loop(), lines, ready)

    while True:
        ready.set()
        raw = await lines.get()
        if raw is None:
            logger.info("Console EOF received, exiting.")
            break

        user_input = raw.strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Not a command. Use /help to list available commands."
        _print_ts(reply)

    logger.info("Console finished.")
