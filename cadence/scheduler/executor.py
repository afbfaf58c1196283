"""TaskExecutor — runs due tasks through their lifecycle."""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import StrEnum
from typing import TYPE_CHECKING

from cadence.config import settings
from cadence.notifications.content import NotificationAction, create_notification_content
from cadence.notifications.router import TASK_COMPLETED, TASK_FAILED, TASK_STARTED
from cadence.scheduler.due import scheduled_instant
from cadence.scheduler.models import (
    FetchParameters,
    LearningParameters,
    SummaryParameters,
    TaskKind,
    TaskStatus,
)
from cadence.scheduler.recurrence import next_occurrence

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from cadence.content.generator import ContentGenerator
    from cadence.notifications.router import Notifier
    from cadence.scheduler.models import Task
    from cadence.scheduler.queue import QueueItem
    from cadence.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

_GENERATED_KINDS = frozenset({TaskKind.SUMMARY, TaskKind.LEARNING})


def completion_message(task: Task, content: str) -> tuple[str, list[NotificationAction]]:
    """Message and actions announcing a finished run.

    Summary and learning runs point at the generated content; the other
    kinds carry the content (or the templated reminder) inline.
    """
    params = task.parameters
    view = [NotificationAction(label="View Content", url=f"/tasks/{task.id}")]
    if isinstance(params, SummaryParameters):
        topic = params.target or "your topic"
        return f"New summary about {topic} has been generated! Click to view.", view
    if isinstance(params, LearningParameters):
        topic = params.topic or "your topic"
        return f"New learning content about {topic} is ready! Click to view.", view
    return content or f"Time for: {task.description}", []


class ExecutionOutcome(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class InFlightTracker:
    """Set of task ids currently executing, guarded by a lock.

    Only the executor adds and removes ids. One tracker is shared by every
    executor that must not run the same task twice at once.
    """

    def __init__(self) -> None:
        self._ids: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, task_id: str) -> bool:
        """Mark *task_id* as running. False if it already is."""
        with self._lock:
            if task_id in self._ids:
                return False
            self._ids.add(task_id)
            return True

    def release(self, task_id: str) -> None:
        with self._lock:
            self._ids.discard(task_id)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class TaskExecutor:
    """Executes tasks: claim, generate content, notify, persist, reschedule.

    Args:
        store: TaskStore for status updates and successor creation.
        notifier: Notifier receiving started/completed/failed events.
        content_generator: Produces content for summary and learning runs.
        in_flight: Shared single-flight tracker (a fresh one by default).
        timeout_seconds: Limit for one content generation call.
        max_consecutive_failures: Failed runs in a row after which a
            recurring task is not rescheduled. 0 disables the cap.
    """

    def __init__(
        self,
        store: TaskStore,
        notifier: Notifier,
        content_generator: ContentGenerator,
        *,
        in_flight: InFlightTracker | None = None,
        timeout_seconds: float | None = None,
        max_consecutive_failures: int | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._content_generator = content_generator
        self._in_flight = in_flight or InFlightTracker()
        self._timeout = timeout_seconds or settings.task_timeout_seconds
        self._max_failures = (
            settings.max_consecutive_failures
            if max_consecutive_failures is None
            else max_consecutive_failures
        )

    @property
    def in_flight(self) -> InFlightTracker:
        return self._in_flight

    async def run_batch(self, items: Iterable[QueueItem], now: datetime) -> list[ExecutionOutcome]:
        """Run every item concurrently; outcomes come back in dispatch order."""
        return list(await asyncio.gather(*(self.execute(item.task, now) for item in items)))

    async def execute(self, task: Task | str, now: datetime) -> ExecutionOutcome:
        """Run one task. Never raises: errors become a FAILED outcome."""
        task_id = task if isinstance(task, str) else task.id
        if not self._in_flight.try_acquire(task_id):
            logger.info("Task %s is already executing; skipping", task_id)
            return ExecutionOutcome.SKIPPED
        try:
            return await self._run(task_id, now)
        except Exception:
            logger.exception("Error while processing task %s", task_id)
            return ExecutionOutcome.FAILED
        finally:
            self._in_flight.release(task_id)

    # -- Lifecycle -------------------------------------------------------------

    async def _run(self, task_id: str, now: datetime) -> ExecutionOutcome:
        task = await self._store.get_task(task_id)
        if task is None:
            logger.warning("Task not found: %s", task_id)
            return ExecutionOutcome.SKIPPED
        if not task.is_active:
            logger.info("Skipping inactive task: %s (%s)", task.description, task_id)
            return ExecutionOutcome.SKIPPED
        if not await self._store.claim_task(task_id):
            logger.info("Task %s is no longer pending; skipping", task_id)
            return ExecutionOutcome.SKIPPED
        try:
            return await self._run_claimed(task, now)
        except Exception:
            await self._release_claim(task_id)
            raise

    async def _release_claim(self, task_id: str) -> None:
        """Return a claimed task to pending after its run could not be recorded."""
        try:
            await self._store.update_status(task_id, TaskStatus.PENDING)
        except Exception:
            logger.exception("Could not return task %s to pending", task_id)

    async def _run_claimed(self, task: Task, now: datetime) -> ExecutionOutcome:
        task_id = task.id
        scheduled_at = scheduled_instant(task.schedule, now)
        logger.info(
            "Executing task: '%s' (%s) kind=%s frequency=%s",
            task.description,
            task_id,
            task.kind,
            task.frequency,
        )
        await self._publish(
            TASK_STARTED, task, f'Task "{task.description}" is starting', "info", scheduled_at
        )

        try:
            content = await asyncio.wait_for(self._produce_content(task), timeout=self._timeout)
        except TimeoutError:
            logger.error("Task timed out after %ss: '%s' (%s)", self._timeout, task.description, task_id)
            return await self._finish_failure(
                task, now, f"timed out after {self._timeout:g}s", scheduled_at
            )
        except Exception as exc:
            logger.exception("Task execution failed: '%s' (%s)", task.description, task_id)
            return await self._finish_failure(task, now, str(exc) or type(exc).__name__, scheduled_at)

        return await self._finish_success(task, now, content, scheduled_at)

    async def _produce_content(self, task: Task) -> str:
        """Generated content for summary/learning runs, a template otherwise."""
        params = task.parameters
        if params is None:
            msg = f"Unknown task kind: {task.kind}"
            raise ValueError(msg)
        if task.kind in _GENERATED_KINDS or (
            isinstance(params, FetchParameters) and params.use_generator
        ):
            return await self._content_generator.generate(task.kind, params)
        return f"Time for: {task.description}"

    async def _finish_success(
        self,
        task: Task,
        now: datetime,
        content: str,
        scheduled_at: datetime | None,
    ) -> ExecutionOutcome:
        message, actions = completion_message(task, content)
        await self._record(
            task, now, TaskStatus.COMPLETED, result=content or task.description, failure_count=0
        )
        await self._publish(TASK_COMPLETED, task, message, "success", scheduled_at, actions)
        logger.info("Task executed successfully: '%s' (%s)", task.description, task.id)
        return ExecutionOutcome.COMPLETED

    async def _finish_failure(
        self,
        task: Task,
        now: datetime,
        error: str,
        scheduled_at: datetime | None,
    ) -> ExecutionOutcome:
        failures = task.failure_count + 1
        await self._record(
            task, now, TaskStatus.FAILED, result=f"Error: {error}", failure_count=failures
        )
        await self._publish(
            TASK_FAILED,
            task,
            f'Error in task "{task.description}": {error}',
            "error",
            scheduled_at,
        )
        return ExecutionOutcome.FAILED

    async def _record(
        self,
        task: Task,
        now: datetime,
        status: TaskStatus,
        *,
        result: str,
        failure_count: int,
    ) -> Task | None:
        """Persist the run's final status together with its successor, if any."""
        successor = self._next_task(task, now, failure_count=failure_count)
        await self._store.finish_run(
            task.id,
            status,
            result=result,
            last_execution_at=now,
            failure_count=failure_count,
            successor=successor,
            clear_next_execution=task.is_once,
        )
        return successor

    def _next_task(self, task: Task, now: datetime, *, failure_count: int) -> Task | None:
        """Successor of a recurring task, or None when the chain ends here."""
        if task.is_once:
            return None
        if self._max_failures and failure_count >= self._max_failures:
            logger.warning(
                "Task '%s' (%s) failed %d times in a row; not rescheduling",
                task.description,
                task.id,
                failure_count,
            )
            return None
        next_at = next_occurrence(task.schedule, now)
        if next_at is None:
            logger.warning("Could not compute next occurrence for task %s", task.id)
            return None
        return task.successor(next_at, last_execution_at=now, failure_count=failure_count)

    async def _publish(
        self,
        event_type: str,
        task: Task,
        message: str,
        type_: str,
        scheduled_at: datetime | None,
        actions: list[NotificationAction] | None = None,
    ) -> None:
        content = create_notification_content(task, message, type_, scheduled_at=scheduled_at)
        if actions:
            content.actions = actions
        try:
            await self._notifier.publish(event_type, content.to_payload(event_type))
        except Exception:
            logger.exception("Failed to publish %s for task %s", event_type, task.id)
