"""Task, Schedule and kind-specific parameter models."""

from __future__ import annotations

import dataclasses
import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar


class Frequency(StrEnum):
    ONCE = "once"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    EVERY_X_MINUTES = "every_x_minutes"
    MULTIPLE_TIMES = "multiple_times"


class TaskKind(StrEnum):
    REMINDER = "reminder"
    SUMMARY = "summary"
    FETCH = "fetch"
    LEARNING = "learning"


class TaskStatus(StrEnum):
    """Task lifecycle: pending -> running -> completed | failed."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: str) -> TaskStatus:
        """Parse a stored status, accepting the legacy spellings.

        ``PROCESSING`` and ``ERROR`` come from the older enum-style rows;
        ``recurring`` marked a finished run of a recurring task.
        """
        normalized = value.strip().lower()
        return cls(_LEGACY_STATUS.get(normalized, normalized))


_LEGACY_STATUS = {
    "processing": "running",
    "error": "failed",
    "recurring": "completed",
}


# -- Schedule ------------------------------------------------------------------


@dataclass(frozen=True)
class Schedule:
    """Recurrence rule owned by a single task.

    Attributes:
        frequency: One of the ``Frequency`` values. Unknown values are kept
            as-is so a corrupt row still loads; such a schedule is never due.
        time: Wall-clock time of day, ``"HH:MM"``.
        day: Weekday name for weekly schedules (``"monday"`` ...).
        date: ``"YYYY-MM-DD"``. Required for ``once``; anchor otherwise.
        interval: Minutes between runs for ``every_x_minutes``.
        times_per_hour: ``multiple_times`` count per hour.
        times_per_day: ``multiple_times`` count per day.
        times_per_week: ``multiple_times`` count per week.
        times_per_month: ``multiple_times`` count per month.
        day_of_month: Anchor day for monthly schedules. Successors keep it
            so a run clamped to a short month returns to the anchor later.
    """

    frequency: str
    time: str | None = None
    day: str | None = None
    date: str | None = None
    interval: int | None = None
    times_per_hour: int | None = None
    times_per_day: int | None = None
    times_per_week: int | None = None
    times_per_month: int | None = None
    day_of_month: int | None = None

    _CAMEL_KEYS: ClassVar[dict[str, str]] = {
        "timesPerHour": "times_per_hour",
        "timesPerDay": "times_per_day",
        "timesPerWeek": "times_per_week",
        "timesPerMonth": "times_per_month",
        "dayOfMonth": "day_of_month",
    }

    def to_dict(self) -> dict[str, Any]:
        data = {k: v for k, v in dataclasses.asdict(self).items() if v is not None}
        if "frequency" in data:
            data["frequency"] = str(data["frequency"])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schedule:
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            key = cls._CAMEL_KEYS.get(key, key)
            if key in known:
                kwargs[key] = value
        kwargs.setdefault("frequency", "once")
        return cls(**kwargs)

    def anchor_day(self) -> int | None:
        """Day of month a monthly schedule is pinned to, if known."""
        if self.day_of_month is not None:
            return int(self.day_of_month)
        if self.date:
            return datetime.strptime(self.date, "%Y-%m-%d").day
        return None

    def at_occurrence(self, when: datetime) -> Schedule:
        """Return a copy whose date and time point at *when*.

        Monthly schedules also record their anchor day, which the new
        date alone would lose after clamping (Jan 31 -> Feb 28).
        """
        day_of_month = self.day_of_month
        if self.frequency == Frequency.MONTHLY:
            day_of_month = self.anchor_day() or when.day
        return dataclasses.replace(
            self,
            date=when.strftime("%Y-%m-%d"),
            time=when.strftime("%H:%M"),
            day_of_month=day_of_month,
        )


# -- Parameters ----------------------------------------------------------------


@dataclass
class LearningSource:
    name: str
    url: str
    description: str = ""
    content_types: list[str] = field(default_factory=list)


@dataclass
class ReminderParameters:
    kind: ClassVar[TaskKind] = TaskKind.REMINDER

    target: str = ""
    priority: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class SummaryParameters:
    kind: ClassVar[TaskKind] = TaskKind.SUMMARY

    target: str = ""
    source: str | None = None
    format: str | None = None
    count: int = 2
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class FetchParameters:
    kind: ClassVar[TaskKind] = TaskKind.FETCH

    target: str = ""
    count: int | None = None
    format: str | None = None
    use_generator: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class LearningParameters:
    kind: ClassVar[TaskKind] = TaskKind.LEARNING

    topic: str = ""
    format: str = "summary"
    content_types: list[str] = field(default_factory=lambda: ["text"])
    difficulty: str = "beginner"
    sources: list[LearningSource] = field(default_factory=list)
    summary_length: str | None = None
    include_links: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


TaskParameters = ReminderParameters | SummaryParameters | FetchParameters | LearningParameters

_PARAMETER_TYPES: dict[str, type[TaskParameters]] = {
    TaskKind.REMINDER: ReminderParameters,
    TaskKind.SUMMARY: SummaryParameters,
    TaskKind.FETCH: FetchParameters,
    TaskKind.LEARNING: LearningParameters,
}


def parameters_from_dict(kind: str, data: dict[str, Any] | None) -> TaskParameters | None:
    """Build the typed parameter object for *kind*, or None for unknown kinds.

    Keys the parameter class does not declare are kept in ``extra``.
    """
    param_cls = _PARAMETER_TYPES.get(kind)
    if param_cls is None:
        return None
    data = dict(data or {})
    # Older rows spell the learning difficulty as "level"
    if param_cls is LearningParameters and "level" in data and "difficulty" not in data:
        data["difficulty"] = data.pop("level")
    known = {f.name for f in dataclasses.fields(param_cls)} - {"extra"}
    kwargs = {k: v for k, v in data.items() if k in known}
    extra = {k: v for k, v in data.items() if k not in known and k != "extra"}
    extra.update(data.get("extra") or {})
    if param_cls is LearningParameters and "sources" in kwargs:
        kwargs["sources"] = [
            s if isinstance(s, LearningSource) else LearningSource(**s)
            for s in kwargs["sources"]
        ]
    return param_cls(**kwargs, extra=extra)


def parameters_to_dict(params: TaskParameters | None) -> dict[str, Any]:
    if params is None:
        return {}
    data = dataclasses.asdict(params)
    extra = data.pop("extra", {})
    return {**extra, **data}


# -- Task ----------------------------------------------------------------------


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class Task:
    """A unit of schedulable work.

    Attributes:
        id: Unique identifier (UUID hex).
        description: Human-readable label.
        kind: One of the ``TaskKind`` values; drives content routing and
            priority weighting.
        schedule: Recurrence rule, or None for an ad-hoc run.
        parameters: Kind-specific parameters handed to the content generator.
        status: One of the ``TaskStatus`` values.
        is_active: Soft-delete flag. Inactive tasks are never scheduled.
        created_at: ISO 8601 timestamp.
        last_execution_at: When the task (or its predecessor) last ran.
        next_execution_at: The planned occurrence of a successor task.
        preview_result: Text produced by the most recent run.
        predecessor_id: The task this one was created to succeed.
        failure_count: Consecutive failed runs along the successor chain.
    """

    id: str
    description: str
    kind: str
    schedule: Schedule | None = None
    parameters: TaskParameters | None = None
    status: str = TaskStatus.PENDING
    is_active: bool = True
    created_at: str = ""
    last_execution_at: datetime | None = None
    next_execution_at: datetime | None = None
    preview_result: str | None = None
    predecessor_id: str | None = None
    failure_count: int = 0

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()
        if self.parameters is None:
            self.parameters = parameters_from_dict(self.kind, None)

    # -- Convenience properties ------------------------------------------------

    @property
    def frequency(self) -> str | None:
        return self.schedule.frequency if self.schedule else None

    @property
    def is_once(self) -> bool:
        return self.frequency in (None, Frequency.ONCE)

    @property
    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING

    def successor(
        self,
        next_at: datetime,
        *,
        last_execution_at: datetime | None,
        failure_count: int = 0,
    ) -> Task:
        """Build the pending task representing the next occurrence."""
        return Task(
            id=make_task_id(),
            description=self.description,
            kind=self.kind,
            schedule=self.schedule.at_occurrence(next_at) if self.schedule else None,
            parameters=self.parameters,
            status=TaskStatus.PENDING,
            last_execution_at=last_execution_at,
            next_execution_at=next_at,
            predecessor_id=self.id,
            failure_count=failure_count,
        )

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``tasks`` column order."""
        return (
            self.id,
            self.description,
            self.kind,
            json.dumps(self.schedule.to_dict()) if self.schedule else None,
            json.dumps(parameters_to_dict(self.parameters)),
            str(self.status),
            int(self.is_active),
            self.created_at,
            _format_ts(self.last_execution_at),
            _format_ts(self.next_execution_at),
            self.preview_result,
            self.predecessor_id,
            self.failure_count,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        """Deserialize from a SQLite row tuple."""
        schedule_json = row[3]
        return cls(
            id=row[0],
            description=row[1],
            kind=row[2],
            schedule=Schedule.from_dict(json.loads(schedule_json)) if schedule_json else None,
            parameters=parameters_from_dict(row[2], json.loads(row[4] or "{}")),
            status=TaskStatus.parse(row[5]),
            is_active=bool(row[6]),
            created_at=row[7],
            last_execution_at=_parse_ts(row[8]),
            next_execution_at=_parse_ts(row[9]),
            preview_result=row[10],
            predecessor_id=row[11],
            failure_count=row[12] or 0,
        )


def make_task_id() -> str:
    """Generate a new task ID."""
    return uuid.uuid4().hex
