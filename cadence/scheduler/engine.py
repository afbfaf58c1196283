"""SchedulerEngine — the polling loop that drives one tick per interval."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cadence.config import settings
from cadence.notifications.router import Notifier
from cadence.scheduler.missed import recover_interrupted_tasks, sweep_missed_tasks
from cadence.scheduler.priority import PriorityPolicy
from cadence.scheduler.queue import build_queue, select_executable

if TYPE_CHECKING:
    from collections.abc import Callable

    from cadence.scheduler.executor import ExecutionOutcome, TaskExecutor
    from cadence.scheduler.models import Task
    from cadence.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

_TICK_JOB_ID = "cadence-tick"


@dataclass
class TickReport:
    """What one tick saw and did."""

    started_at: datetime
    due: int = 0
    outcomes: dict[str, ExecutionOutcome] = field(default_factory=dict)

    @property
    def dispatched(self) -> list[str]:
        return list(self.outcomes)


class SchedulerEngine:
    """Runs the scan-and-execute cycle on a fixed polling cadence.

    Args:
        store: TaskStore to read pending tasks from.
        executor: TaskExecutor that runs the selected tasks.
        notifier: Receives missed-task notices (shared Notifier by default).
        poll_interval_seconds: Seconds between ticks.
        max_concurrent_tasks: Tasks dispatched per tick at most.
        window_seconds: Half-width of each task's execution window.
        policy: Priority weights (default from settings overrides).
        timezone: IANA timezone for schedule wall-clock times.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        store: TaskStore,
        executor: TaskExecutor,
        *,
        notifier: Notifier | None = None,
        poll_interval_seconds: float | None = None,
        max_concurrent_tasks: int | None = None,
        window_seconds: int | None = None,
        policy: PriorityPolicy | None = None,
        timezone: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._notifier = notifier or Notifier.get()
        self._poll_interval = poll_interval_seconds or settings.poll_interval_seconds
        self._max_concurrent = max_concurrent_tasks or settings.max_concurrent_tasks
        self._window_seconds = (
            settings.execution_window_seconds if window_seconds is None else window_seconds
        )
        self._policy = policy or PriorityPolicy.with_overrides(
            settings.kind_weights, settings.frequency_weights
        )
        self._timezone = timezone or settings.scheduler_timezone
        self._tz = ZoneInfo(self._timezone)
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._scheduler: AsyncIOScheduler | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Recover, sweep missed tasks, tick once, then arm the interval timer.

        Does nothing if the engine is already running.
        """
        if self._running:
            return
        self._running = True

        try:
            await recover_interrupted_tasks(self._store)
            await sweep_missed_tasks(
                self._store, self._notifier, self._clock(), self._window_seconds
            )
        except Exception:
            logger.exception("Startup housekeeping failed")

        await self._scheduled_tick()

        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._scheduler.add_job(
            self._scheduled_tick,
            trigger=IntervalTrigger(seconds=self._poll_interval, timezone=self._timezone),
            id=_TICK_JOB_ID,
            name="scheduler tick",
            max_instances=3,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Scheduler started (interval=%ss, max_concurrent=%d, window=%ss, tz=%s)",
            self._poll_interval,
            self._max_concurrent,
            self._window_seconds,
            self._timezone,
        )

    async def stop(self) -> None:
        """Cancel the timer. Does nothing if the engine is not running."""
        if not self._running:
            return
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self._running = False
        logger.info("Scheduler stopped")

    async def trigger(self) -> TickReport:
        """Run one tick now, outside the timer cadence."""
        logger.info("Manual scheduler tick requested")
        return await self.tick()

    # -- Task management -------------------------------------------------------

    async def schedule_task(self, task: Task) -> Task:
        """Persist a new pending task; the next tick will consider it."""
        await self._store.add_task(task)
        logger.info("Scheduled task: %s (%s)", task.description, task.id)
        return task

    async def cancel_task(self, task_id: str) -> bool:
        """Deactivate a task so no future scan selects it."""
        deactivated = await self._store.deactivate_task(task_id)
        if deactivated:
            await self._store.update_next_execution(task_id, None)
            logger.info("Cancelled task: %s", task_id)
        return deactivated

    # -- Tick ------------------------------------------------------------------

    async def tick(self) -> TickReport:
        """Scan pending tasks and run the highest-priority due ones."""
        now = self._clock()
        report = TickReport(started_at=now)

        try:
            tasks = await self._store.list_pending_active_tasks()
        except Exception:
            logger.exception("Could not load pending tasks; skipping tick")
            return report

        queue = build_queue(tasks, now, window_seconds=self._window_seconds, policy=self._policy)
        report.due = len(queue)
        batch = select_executable(queue, now, self._max_concurrent)
        if not batch:
            logger.debug("Tick at %s: %d pending, nothing to run", now.isoformat(), len(tasks))
            return report

        logger.info(
            "Tick at %s: %d pending, %d due, dispatching %d",
            now.isoformat(),
            len(tasks),
            len(queue),
            len(batch),
        )
        outcomes = await self._executor.run_batch(batch, now)
        for item, outcome in zip(batch, outcomes, strict=True):
            report.outcomes[item.task.id] = outcome
        return report

    async def _scheduled_tick(self) -> None:
        """Timer callback. A failing tick is logged; the next one still runs."""
        try:
            await self.tick()
        except Exception:
            logger.exception("Scheduler tick failed")
