"""Startup housekeeping — interrupted runs and missed one-off tasks."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from cadence.notifications.content import create_notification_content
from cadence.notifications.router import TASK_MISSED
from cadence.scheduler.due import scheduled_instant
from cadence.scheduler.models import Frequency, TaskStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cadence.notifications.router import Notifier
    from cadence.scheduler.models import Task
    from cadence.scheduler.store import TaskStore

logger = logging.getLogger(__name__)


def find_missed_tasks(
    tasks: Iterable[Task],
    now: datetime,
    window_seconds: int,
) -> list[tuple[Task, datetime]]:
    """Return pending one-off tasks whose execution window is already over.

    Such tasks can never become due again. Each is paired with the instant
    it was scheduled for.
    """
    window = timedelta(seconds=window_seconds)
    missed: list[tuple[Task, datetime]] = []
    for task in tasks:
        if not task.is_active or not task.is_pending:
            continue
        if task.frequency != Frequency.ONCE:
            continue
        scheduled_at = scheduled_instant(task.schedule, now)
        if scheduled_at is None:
            continue
        if scheduled_at + window < now:
            missed.append((task, scheduled_at))
    return missed


async def sweep_missed_tasks(
    store: TaskStore,
    notifier: Notifier,
    now: datetime,
    window_seconds: int,
) -> int:
    """Mark missed one-off tasks as failed and announce them.

    Returns the number of missed tasks found (useful for testing).
    """
    tasks = await store.list_pending_active_tasks()
    missed = find_missed_tasks(tasks, now, window_seconds)

    for task, scheduled_at in missed:
        await store.update_status(task.id, TaskStatus.FAILED, result="Missed: scheduled time passed")
        content = create_notification_content(
            task,
            f'Missed scheduled task "{task.description}"',
            "warning",
            scheduled_at=scheduled_at,
        )
        try:
            await notifier.publish(TASK_MISSED, content.to_payload(TASK_MISSED))
        except Exception:
            logger.exception("Failed to publish missed-task notice for %s", task.id)
        logger.info("Marked missed task: %s (%s)", task.description, task.id)

    if missed:
        logger.info("Found %d missed task(s)", len(missed))
    return len(missed)


async def recover_interrupted_tasks(store: TaskStore) -> int:
    """Return tasks left ``running`` by a previous process to ``pending``.

    Only safe before the engine starts executing: at that point nothing in
    this process can own a running task.
    """
    interrupted = await store.list_tasks_by_status(TaskStatus.RUNNING)
    for task in interrupted:
        await store.update_status(task.id, TaskStatus.PENDING)
        logger.warning("Recovered interrupted task: %s (%s)", task.description, task.id)
    return len(interrupted)
