"""Notifier — fans published task events out to registered channels."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cadence.notifications.channels import NotificationChannel

logger = logging.getLogger(__name__)

TASK_STARTED = "task_started"
TASK_COMPLETED = "task_completed"
TASK_FAILED = "task_failed"
TASK_MISSED = "task_missed"


class Notifier:
    """Publishes events to every registered channel, fire-and-forget.

    ``publish`` returns as soon as delivery has been scheduled. Each channel
    runs in its own background task; a channel that raises or reports
    failure is logged and never affects the publisher. Call ``drain`` to
    wait for outstanding deliveries (shutdown, tests).

    A process-wide instance is available via ``Notifier.get()``, but the
    engine takes the notifier as a constructor argument so independent
    instances can coexist.
    """

    _instance: Notifier | None = None

    def __init__(self) -> None:
        self._channels: dict[str, NotificationChannel] = {}
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def get(cls) -> Notifier:
        """Return the shared instance, creating it if needed."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the shared instance — for tests only."""
        cls._instance = None

    def register_channel(self, channel: NotificationChannel) -> None:
        """Register a channel. Raises ValueError on duplicate name."""
        if channel.name in self._channels:
            msg = f"Channel '{channel.name}' is already registered"
            raise ValueError(msg)
        self._channels[channel.name] = channel

    def unregister_channel(self, name: str) -> bool:
        """Remove a channel by name. Returns False if it was not registered."""
        return self._channels.pop(name, None) is not None

    def get_channel(self, name: str) -> NotificationChannel | None:
        return self._channels.get(name)

    def list_channels(self) -> list[str]:
        """Return names of all registered channels."""
        return list(self._channels.keys())

    async def publish(self, event_type: str, payload: str) -> None:
        """Schedule delivery of *payload* to every channel and return."""
        if not self._channels:
            logger.debug("No channels registered; dropping %s event", event_type)
            return
        for channel in list(self._channels.values()):
            task = asyncio.create_task(self._deliver(channel, event_type, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @staticmethod
    async def _deliver(channel: NotificationChannel, event_type: str, payload: str) -> None:
        try:
            ok = await channel.publish(event_type, payload)
        except Exception:
            logger.exception("Channel '%s' failed to publish %s", channel.name, event_type)
            return
        if not ok:
            logger.warning("Channel '%s' did not accept %s event", channel.name, event_type)
