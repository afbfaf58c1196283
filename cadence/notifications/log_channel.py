"""Notification channel that writes events to the application log."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LogChannel:
    """Logs every published event. Always succeeds."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    @property
    def name(self) -> str:
        return "log"

    async def publish(self, event_type: str, payload: str) -> bool:
        logger.log(self._level, "[%s] %s", event_type, payload)
        return True
