"""Priority scoring for due tasks. Used only for ordering, never for due-ness."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from cadence.scheduler.due import scheduled_instant
from cadence.scheduler.models import Frequency, TaskKind

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from cadence.scheduler.models import Task

OVERDUE_BASE = 1000
OVERDUE_CAP = 2000

_DEFAULT_KIND_WEIGHTS = MappingProxyType({
    TaskKind.REMINDER: 100,
    TaskKind.SUMMARY: 50,
    TaskKind.LEARNING: 30,
    TaskKind.FETCH: 20,
})

# Tighter cadences weigh more
_DEFAULT_FREQUENCY_WEIGHTS = MappingProxyType({
    Frequency.HOURLY: 200,
    Frequency.EVERY_X_MINUTES: 150,
    Frequency.DAILY: 100,
    Frequency.WEEKLY: 50,
    Frequency.MONTHLY: 25,
})


@dataclass(frozen=True)
class PriorityPolicy:
    """Weight tables for task kinds and frequencies.

    Kinds or frequencies missing from a table weigh zero.
    """

    kind_weights: Mapping[str, int] = field(default_factory=lambda: _DEFAULT_KIND_WEIGHTS)
    frequency_weights: Mapping[str, int] = field(default_factory=lambda: _DEFAULT_FREQUENCY_WEIGHTS)

    @classmethod
    def with_overrides(
        cls,
        kind_weights: Mapping[str, int] | None = None,
        frequency_weights: Mapping[str, int] | None = None,
    ) -> PriorityPolicy:
        """Start from the defaults and replace the given entries."""
        return cls(
            kind_weights=MappingProxyType({**_DEFAULT_KIND_WEIGHTS, **(kind_weights or {})}),
            frequency_weights=MappingProxyType(
                {**_DEFAULT_FREQUENCY_WEIGHTS, **(frequency_weights or {})}
            ),
        )

    def kind_weight(self, kind: str) -> int:
        return self.kind_weights.get(kind, 0)

    def frequency_weight(self, frequency: str | None) -> int:
        if frequency is None:
            return 0
        return self.frequency_weights.get(frequency, 0)


DEFAULT_POLICY = PriorityPolicy()


def overdue_bonus(scheduled_at: datetime | None, now: datetime) -> int:
    """``min(1000 + seconds overdue, 2000)`` once the instant has passed."""
    if scheduled_at is None:
        return 0
    seconds_overdue = int((now - scheduled_at).total_seconds())
    if seconds_overdue <= 0:
        return 0
    return min(OVERDUE_BASE + seconds_overdue, OVERDUE_CAP)


def score(
    task: Task,
    now: datetime,
    policy: PriorityPolicy = DEFAULT_POLICY,
    *,
    scheduled_at: datetime | None = None,
) -> int:
    """Score = overdue bonus + kind weight + frequency weight.

    *scheduled_at* may be passed when the caller already resolved the
    task's nominal instant; otherwise it is derived from the schedule.
    """
    if scheduled_at is None:
        scheduled_at = scheduled_instant(task.schedule, now)
    return (
        overdue_bonus(scheduled_at, now)
        + policy.kind_weight(task.kind)
        + policy.frequency_weight(task.frequency)
    )
