# src/taskvault/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# Console thresholds for our own background components. Everything they do is
# in the log file; on the console they would interleave with the REPL prompt.
_QUIET_COMPONENTS: dict[str, int] = {
    "taskvault.sync.watcher": logging.WARNING,
    "taskvault.sync.reconciler": logging.INFO,
    "taskvault.storage": logging.INFO,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter:
    - taskvault logs pass, except the background components above below their threshold
    - Python warnings (captured as 'py.warnings') and third-party loggers only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskvault."):
            return record.levelno >= logging.ERROR

        for prefix, threshold in _QUIET_COMPONENTS.items():
            if name.startswith(prefix):
                return record.levelno >= threshold
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskvault",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backups: int = 3,
) -> Path:
    """
    Configure the root logger once, before the first log call.

    Console: short format on stderr, filtered for interactive use.
    File: everything at `file_level`, rotated at `max_bytes`.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskvault.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # inotify chatter: one DEBUG record per filesystem event
    logging.getLogger("watchdog").setLevel(logging.INFO)
    return log_file
