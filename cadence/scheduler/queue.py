"""Scheduling queue — turns a pending-task snapshot into an ordered plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from cadence.scheduler.due import is_due, scheduled_instant
from cadence.scheduler.priority import DEFAULT_POLICY, PriorityPolicy, score

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cadence.scheduler.models import Task

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 30


@dataclass(frozen=True)
class QueueItem:
    """A due task with its priority and execution window."""

    task: Task
    priority: int
    scheduled_at: datetime
    window_start: datetime
    window_end: datetime

    def in_window(self, now: datetime) -> bool:
        return self.window_start <= now <= self.window_end


def _queue_item(
    task: Task,
    now: datetime,
    window: timedelta,
    policy: PriorityPolicy,
) -> QueueItem | None:
    if not task.is_active or not task.is_pending:
        return None
    if not is_due(task.schedule, now, task.last_execution_at):
        return None
    scheduled_at = scheduled_instant(task.schedule, now) or now
    return QueueItem(
        task=task,
        priority=score(task, now, policy, scheduled_at=scheduled_at),
        scheduled_at=scheduled_at,
        window_start=scheduled_at - window,
        window_end=scheduled_at + window,
    )


def build_queue(
    tasks: Iterable[Task],
    now: datetime,
    *,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
    policy: PriorityPolicy = DEFAULT_POLICY,
) -> list[QueueItem]:
    """Filter *tasks* down to the due ones, ordered for dispatch.

    Order is priority descending, then scheduled instant ascending. A task
    whose evaluation fails is logged and left out; the rest of the scan
    continues.
    """
    window = timedelta(seconds=window_seconds)
    queue: list[QueueItem] = []
    for task in tasks:
        try:
            item = _queue_item(task, now, window, policy)
        except Exception:
            logger.exception("Failed to evaluate task %s; skipping", task.id)
            continue
        if item is not None:
            queue.append(item)
    queue.sort(key=lambda item: (-item.priority, item.scheduled_at))
    return queue


def select_executable(queue: list[QueueItem], now: datetime, limit: int) -> list[QueueItem]:
    """Take up to *limit* items whose execution window contains *now*.

    Items left out stay pending and are re-evaluated on the next tick.
    """
    return [item for item in queue if item.in_window(now)][:limit]
