"""NotificationContent — the payload attached to every task event."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cadence.scheduler.models import Task


@dataclass
class NotificationAction:
    label: str
    url: str | None = None


@dataclass
class NotificationContent:
    """User-facing notification body.

    Attributes:
        title: Short heading, ``"Task <description>"``.
        message: Body text, followed by the due time when known.
        type: One of ``info``, ``success``, ``warning``, ``error``.
        actions: Optional links the client may render as buttons.
        metadata: Task id, kind and timestamps for the client.
    """

    title: str
    message: str
    type: str = "info"
    actions: list[NotificationAction] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_payload(self, event_type: str) -> str:
        """Serialize as ``{"type": event_type, "content": {...}}``."""
        return json.dumps({"type": event_type, "content": dataclasses.asdict(self)})


def _format_due(value: datetime) -> str:
    return value.strftime("%d/%m/%Y %H:%M")


def create_notification_content(
    task: Task,
    message: str,
    type_: str = "info",
    *,
    scheduled_at: datetime | None = None,
) -> NotificationContent:
    """Build the notification for *task* with the given *message*."""
    metadata: dict[str, Any] = {
        "taskId": task.id,
        "taskType": str(task.kind),
        "taskDescription": task.description,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    body = message
    if scheduled_at is not None:
        formatted = _format_due(scheduled_at)
        metadata["formattedDateTime"] = formatted
        body = f"{message}\nDue: {formatted}"
    return NotificationContent(
        title=f"Task {task.description}",
        message=body,
        type=type_,
        metadata=metadata,
    )
