"""
Goal and block model handed to / produced by the scheduling engine.

Recurrence is a tagged variant (OneOff | Recurring) instead of nullable
fields, so session expansion can match on the type.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union

from goal_scheduler.errors import InvalidInput
from goal_scheduler.intervals import CalendarType, Interval

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Cadence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class OneOff:
    """
    A goal done once: its estimated effort is split into sessions.
    """


@dataclass(frozen=True)
class Recurring:
    """
    A goal repeated on given weekdays (Monday=0).

    - weekly: days must be non-empty
    - daily: empty days means every day
    """
    cadence: Cadence
    days: FrozenSet[int] = frozenset()

    def __post_init__(self) -> None:
        if any(d not in range(7) for d in self.days):
            raise InvalidInput(f"Weekdays must be 0-6 (Monday=0), got {sorted(self.days)}")
        if self.cadence == Cadence.WEEKLY and not self.days:
            raise InvalidInput("A weekly recurrence needs at least one weekday")

    def matches(self, day: date) -> bool:
        if self.cadence == Cadence.DAILY and not self.days:
            return True
        return day.weekday() in self.days


Recurrence = Union[OneOff, Recurring]


def parse_weekdays(names: Iterable[str]) -> FrozenSet[int]:
    """
    Convert day names ("monday", "Wed") into weekday numbers (Monday=0).
    """
    out = set()
    for raw in names:
        key = str(raw).strip().lower()
        matches = [i for i, name in enumerate(WEEKDAY_NAMES) if len(key) >= 3 and name.startswith(key)]
        if len(matches) != 1:
            raise InvalidInput(f"invalid recurring day: {raw}")
        out.add(matches[0])
    return frozenset(out)


@dataclass(frozen=True)
class Goal:
    """
    One user goal as the engine sees it.

    due_date:
    - date: due by the end of that day (policy timezone)
    - datetime: due at that instant
    - None: no due date (sorts after all dated goals)

    duration_minutes:
    - per-session length; when None, sessions are
      min(estimated_hours * 60, policy.max_default_session_minutes)
    """
    id: str
    title: str
    estimated_hours: float
    due_date: Optional[Union[date, datetime]] = None
    is_hard_deadline: bool = False
    priority: int = 3
    calendar_type: CalendarType = CalendarType.PERSONAL
    preferred_time: Optional[time] = None
    duration_minutes: Optional[int] = None
    recurrence: Recurrence = field(default_factory=OneOff)

    def __post_init__(self) -> None:
        hours = self.estimated_hours
        if isinstance(hours, bool) or not isinstance(hours, (int, float)) or not math.isfinite(hours) or hours <= 0:
            raise InvalidInput(f"Goal {self.id!r}: estimated_hours must be a finite positive number")
        if not 1 <= int(self.priority) <= 5:
            raise InvalidInput(f"Goal {self.id!r}: priority must be between 1 and 5")
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise InvalidInput(f"Goal {self.id!r}: duration_minutes must be positive")

    @property
    def is_recurring(self) -> bool:
        return isinstance(self.recurrence, Recurring)

    @property
    def total_minutes(self) -> int:
        # Any positive estimate needs at least one minute of calendar time
        return max(1, int(round(self.estimated_hours * 60)))

    def session_minutes(self, max_default: int = 120) -> int:
        if self.duration_minutes is not None:
            return int(self.duration_minutes)
        return max(1, min(self.total_minutes, max_default))


class BlockStatus(str, Enum):
    PROPOSED = "proposed"
    COMMITTED = "committed"


@dataclass(frozen=True)
class ProposedBlock:
    """
    A time allocation for a goal.

    PROPOSED blocks are produced by one scheduling call and are not written
    anywhere. COMMITTED blocks come in from the caller, are treated as busy,
    and are never re-emitted.
    """
    goal_id: str
    goal_title: str
    start: datetime
    end: datetime
    calendar_type: CalendarType
    status: BlockStatus = BlockStatus.PROPOSED
    session_index: int = 0

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)

    def minutes(self) -> int:
        return self.interval.minutes()
