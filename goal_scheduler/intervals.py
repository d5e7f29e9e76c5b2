"""
Interval model: time intervals, the work/personal calendar partition, and the
policy filters every candidate block goes through.

This module is deterministic and testable:
- Interval / BusyInterval: half-open [start, end) ranges
- overlaps: overlap test with an optional buffer gap around the existing interval
- within_business_hours: daily window + weekday restriction for work goals
- merge_intervals: sort + merge overlapping (or touching) intervals
- parse_rfc3339 / to_rfc3339 / ensure_aware: datetime plumbing
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Iterable, List

from goal_scheduler.errors import InvalidInput
from goal_scheduler.planning.preferences import SchedulingPolicy


class CalendarType(str, Enum):
    """
    The work/personal partition. Conflict checks against external busy
    intervals are scoped per type.
    """
    WORK = "work"
    PERSONAL = "personal"


@dataclass(frozen=True)
class Interval:
    """
    Simple half-open time interval [start, end).
    """
    start: datetime
    end: datetime

    def minutes(self) -> int:
        """
        Return the length of the interval in whole minutes.
        """
        # Floor to whole minutes to keep behavior deterministic and predictable
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class BusyInterval:
    """
    Time already unavailable on one calendar, as reported by the calendar source.
    """
    start: datetime
    end: datetime
    calendar_type: CalendarType

    def __post_init__(self) -> None:
        try:
            ordered = self.start < self.end
        except TypeError as e:
            raise InvalidInput(f"Busy interval mixes naive and aware datetimes ({self.start} -> {self.end})") from e
        if not ordered:
            raise InvalidInput(f"Busy interval must have start < end (got {self.start} -> {self.end})")

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)


def overlaps(candidate: Interval, existing: Interval, buffer: timedelta = timedelta(0)) -> bool:
    """
    True iff candidate overlaps existing once existing is widened by buffer on
    both sides. Touching intervals ([9,10) and [10,11)) do not overlap at buffer 0.
    """
    return candidate.start < existing.end + buffer and existing.start - buffer < candidate.end


def within_business_hours(
    start: datetime,
    end: datetime,
    calendar_type: CalendarType,
    policy: SchedulingPolicy,
) -> bool:
    """
    Business-hours filter.

    - Both endpoints must sit inside [day_start, day_end] on the same local day.
    - Work blocks must also fall on a work weekday (Mon-Fri by default).
    - Personal blocks may land on any day.
    """
    tz = policy.tz
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)

    if local_start.date() != local_end.date():
        return False
    if local_start.time() < policy.day_start or local_end.time() > policy.day_end:
        return False
    if calendar_type == CalendarType.WORK and local_start.weekday() not in policy.work_weekdays:
        return False
    return True


def parse_rfc3339(dt_str: str) -> datetime:
    """
    Parse an RFC3339 / ISO-8601 datetime string into a datetime.

    Notes:
    - Google returns RFC3339 with offsets (+00:00) or a trailing 'Z' (UTC).
    - Strings without an offset come back naive; see ensure_aware.
    """
    try:
        # Replace 'Z' with '+00:00' for compatibility with fromisoformat
        return datetime.fromisoformat(dt_str.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise InvalidInput(f"Malformed datetime: {dt_str!r}") from e


def to_rfc3339(dt: datetime) -> str:
    """
    Convert a datetime to RFC3339 string (Google accepts ISO-8601 with timezone).
    """
    return dt.isoformat()


def ensure_aware(dt: datetime, tz: tzinfo) -> datetime:
    """
    Attach tz to a naive datetime (read as local wall-clock time); aware
    datetimes are returned unchanged.
    """
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=tz)
    return dt


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Merge intervals into a sorted list of non-overlapping intervals.

    Touching intervals are merged as well; for overlap tests (with any
    non-negative buffer) [a,b) + [b,c) behaves exactly like [a,c).
    """
    ordered = sorted((it for it in intervals if it.end > it.start), key=lambda x: (x.start, x.end))

    merged: List[Interval] = []
    for it in ordered:
        if not merged:
            merged.append(it)
            continue

        last = merged[-1]

        # If the new interval starts after the last ends, it doesn't overlap
        if it.start > last.end:
            merged.append(it)
        else:
            # Otherwise, merge by extending the end if needed
            merged[-1] = Interval(start=last.start, end=max(last.end, it.end))

    return merged
