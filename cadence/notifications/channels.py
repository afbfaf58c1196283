"""NotificationChannel protocol — interface for all notification sinks."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol that all notification channels must satisfy."""

    @property
    def name(self) -> str:
        """Unique channel identifier (e.g. 'log', 'sse')."""
        ...

    async def publish(self, event_type: str, payload: str) -> bool:
        """Deliver one event with its serialized payload. Returns True on success."""
        ...
