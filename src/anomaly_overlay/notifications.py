"""User-facing notification channels for pipeline errors."""

from __future__ import annotations

import logging
from typing import List

logger = logging.getLogger(__name__)


class Notifier:
    """Base notification destination."""

    def error(self, message: str, title: str = "Error") -> None:  # pragma: no cover - interface
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default notifier emitting to the logger."""

    def __init__(self, level: int = logging.ERROR) -> None:
        self.level = level

    def error(self, message: str, title: str = "Error") -> None:
        logger.log(self.level, "[%s] %s", title, message)


class RecordingNotifier(Notifier):
    """Keeps notifications in memory so callers can surface them later."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def error(self, message: str, title: str = "Error") -> None:
        self.messages.append(f"{title}: {message}")
