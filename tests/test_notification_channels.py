"""Tests for notification channels and notification content."""

import json
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from cadence.notifications.channels import NotificationChannel
from cadence.notifications.content import (
    NotificationAction,
    NotificationContent,
    create_notification_content,
)
from cadence.notifications.log_channel import LogChannel
from cadence.scheduler.models import Task

# -- LogChannel ----------------------------------------------------------------


def test_log_channel_satisfies_protocol() -> None:
    assert isinstance(LogChannel(), NotificationChannel)
    assert LogChannel().name == "log"


async def test_log_channel_logs_event(caplog: pytest.LogCaptureFixture) -> None:
    channel = LogChannel()

    with caplog.at_level(logging.INFO, logger="cadence.notifications.log_channel"):
        ok = await channel.publish("task_started", '{"a": 1}')

    assert ok is True
    assert '[task_started] {"a": 1}' in caplog.text


# -- NotificationContent -------------------------------------------------------


def _make_task() -> Task:
    return Task(
        id="abc",
        description="Water the plants",
        kind="reminder",
        created_at="2025-01-01T00:00:00+00:00",
    )


def test_create_content_without_due_time() -> None:
    content = create_notification_content(_make_task(), "Hello")

    assert content.title == "Task Water the plants"
    assert content.message == "Hello"
    assert content.type == "info"
    assert content.metadata["taskId"] == "abc"
    assert content.metadata["taskType"] == "reminder"
    assert content.metadata["taskDescription"] == "Water the plants"
    assert "timestamp" in content.metadata
    assert "formattedDateTime" not in content.metadata


def test_create_content_with_due_time() -> None:
    due = datetime(2025, 3, 7, 9, 5, tzinfo=ZoneInfo("UTC"))
    content = create_notification_content(_make_task(), "Hello", "warning", scheduled_at=due)

    assert content.message == "Hello\nDue: 07/03/2025 09:05"
    assert content.metadata["formattedDateTime"] == "07/03/2025 09:05"
    assert content.type == "warning"


def test_payload_shape() -> None:
    content = NotificationContent(
        title="Task x",
        message="done",
        type="success",
        actions=[NotificationAction(label="View Content", url="/tasks/x")],
    )

    payload = json.loads(content.to_payload("task_completed"))

    assert payload == {
        "type": "task_completed",
        "content": {
            "title": "Task x",
            "message": "done",
            "type": "success",
            "actions": [{"label": "View Content", "url": "/tasks/x"}],
            "metadata": {},
        },
    }
