# src/taskvault/core/notices.py

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable

logger = logging.getLogger(__name__)


class LogNotifier:
    """
    Notifier that logs every notice and keeps the most recent ones.

    An optional `emit` callback shows the notice to a human (console print).
    """

    def __init__(self, emit: Callable[[str], None] | None = None, *, keep: int = 50) -> None:
        self.emit = emit
        self.recent: deque[str] = deque(maxlen=keep)

    def notice(self, message: str) -> None:
        self.recent.append(message)
        if self.emit is None:
            logger.info("Notice: %s", message)
            return
        # already shown to the user; keep it out of the console log
        logger.debug("Notice: %s", message)
        try:
            self.emit(message)
        except Exception:
            logger.debug("Notice emit failed.", exc_info=True)
