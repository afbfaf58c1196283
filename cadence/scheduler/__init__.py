"""Task scheduling — models, due-ness, recurrence, priority, execution, looping."""

from cadence.scheduler.due import is_due, scheduled_instant
from cadence.scheduler.engine import SchedulerEngine, TickReport
from cadence.scheduler.executor import ExecutionOutcome, InFlightTracker, TaskExecutor
from cadence.scheduler.missed import find_missed_tasks, sweep_missed_tasks
from cadence.scheduler.models import Frequency, Schedule, Task, TaskKind, TaskStatus
from cadence.scheduler.priority import PriorityPolicy, score
from cadence.scheduler.queue import QueueItem, build_queue, select_executable
from cadence.scheduler.recurrence import next_occurrence
from cadence.scheduler.store import TaskStore

__all__ = [
    "ExecutionOutcome",
    "Frequency",
    "InFlightTracker",
    "PriorityPolicy",
    "QueueItem",
    "Schedule",
    "SchedulerEngine",
    "Task",
    "TaskExecutor",
    "TaskKind",
    "TaskStatus",
    "TaskStore",
    "TickReport",
    "build_queue",
    "find_missed_tasks",
    "is_due",
    "next_occurrence",
    "scheduled_instant",
    "score",
    "select_executable",
    "sweep_missed_tasks",
]
