"""
Slot Finder: the earliest feasible interval for one goal.

Two independent scans, composed by find_next_slot:
- scan_preferred_time: the goal's preferred time of day, one candidate per day
- scan_full: every grid point (15 minutes by default) in the search range

A candidate passes when it:
- lies inside [search_from, search_until]
- passes the business-hours filter (and the weekday rule for work goals)
- does not conflict in the BusySet for the goal's calendar type

"Nothing fits" is a normal result (SlotStatus.NO_FEASIBLE_SLOT), not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from goal_scheduler.busy_set import BusySet
from goal_scheduler.errors import InvalidInput
from goal_scheduler.goals import Goal, Recurring
from goal_scheduler.intervals import CalendarType, Interval, ensure_aware, within_business_hours
from goal_scheduler.planning.preferences import SchedulingPolicy

logger = logging.getLogger(__name__)


class SlotStatus(str, Enum):
    FOUND = "found"
    NO_FEASIBLE_SLOT = "no_feasible_slot"
    # Step cap hit before the range was fully explored.
    RANGE_EXHAUSTED = "range_exhausted"


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    calendar_type: CalendarType

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)


@dataclass(frozen=True)
class SlotResult:
    status: SlotStatus
    slot: Optional[Slot] = None

    @property
    def found(self) -> bool:
        return self.slot is not None


def _passes(
    candidate: Interval,
    calendar_type: CalendarType,
    busy_set: BusySet,
    search_from: datetime,
    search_until: datetime,
    policy: SchedulingPolicy,
) -> bool:
    if candidate.start < search_from or candidate.end > search_until:
        return False
    if not within_business_hours(candidate.start, candidate.end, calendar_type, policy):
        return False
    return not busy_set.conflicts_for(candidate, calendar_type)


def _local_days(search_from: datetime, search_until: datetime, policy: SchedulingPolicy) -> Iterator[date]:
    """
    Local calendar dates from search_from's date through search_until's date, ascending.
    """
    tz = policy.tz
    day = search_from.astimezone(tz).date()
    last = search_until.astimezone(tz).date()
    while day <= last:
        yield day
        day += timedelta(days=1)


def scan_preferred_time(
    goal: Goal,
    busy_set: BusySet,
    search_from: datetime,
    search_until: datetime,
    duration: timedelta,
    policy: SchedulingPolicy,
) -> Optional[Interval]:
    """
    Phase 1: try [preferred_time, preferred_time + duration) on each day in
    order and return the first one that passes. None if the goal has no
    preferred time or no day works.
    """
    if goal.preferred_time is None:
        return None

    tz = policy.tz
    for day in _local_days(search_from, search_until, policy):
        start = datetime.combine(day, goal.preferred_time, tzinfo=tz)
        candidate = Interval(start=start, end=start + duration)
        if _passes(candidate, goal.calendar_type, busy_set, search_from, search_until, policy):
            return candidate
    return None


def _first_grid_point(search_from: datetime, policy: SchedulingPolicy) -> datetime:
    """
    First point at or after search_from on the granularity grid (aligned to local midnight).
    """
    local = search_from.astimezone(policy.tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    step = policy.granularity
    offset = local - midnight
    steps = -(-offset // step)  # ceil division on timedeltas
    return midnight + steps * step


def scan_full(
    goal: Goal,
    busy_set: BusySet,
    search_from: datetime,
    search_until: datetime,
    duration: timedelta,
    policy: SchedulingPolicy,
) -> Tuple[Optional[Interval], bool]:
    """
    Phase 2: step through [search_from, search_until) at policy granularity.

    Returns (first passing candidate or None, truncated). truncated is True
    when the step cap stopped the scan before the end of the range.
    """
    step = policy.granularity
    cursor = _first_grid_point(search_from, policy)
    latest_start = search_until - duration

    steps = 0
    while cursor <= latest_start:
        if steps >= policy.max_scan_steps:
            return None, True
        candidate = Interval(start=cursor, end=cursor + duration)
        if _passes(candidate, goal.calendar_type, busy_set, search_from, search_until, policy):
            return candidate, False
        cursor += step
        steps += 1
    return None, False


def find_next_slot(
    goal: Goal,
    busy_set: BusySet,
    search_from: datetime,
    search_until: datetime,
    policy: Optional[SchedulingPolicy] = None,
    duration_minutes: Optional[int] = None,
) -> SlotResult:
    """
    Earliest feasible slot for goal in [search_from, search_until].

    - duration_minutes overrides the goal's session length (used for a shorter
      last session of a one-off goal)
    - the preferred-time pass runs first; the full scan runs if it finds nothing
    - raises InvalidInput for an empty/inverted range or a non-positive duration
    """
    policy = policy or SchedulingPolicy()
    tz = policy.tz
    search_from = ensure_aware(search_from, tz)
    search_until = ensure_aware(search_until, tz)

    if search_until <= search_from:
        raise InvalidInput(f"search_until ({search_until}) must be after search_from ({search_from})")

    minutes = duration_minutes if duration_minutes is not None else goal.session_minutes(policy.max_default_session_minutes)
    if minutes <= 0:
        raise InvalidInput(f"Duration must be positive, got {minutes} minutes")
    duration = timedelta(minutes=minutes)

    preferred = scan_preferred_time(goal, busy_set, search_from, search_until, duration, policy)
    if preferred is not None:
        return SlotResult(SlotStatus.FOUND, Slot(preferred.start, preferred.end, goal.calendar_type))

    found, truncated = scan_full(goal, busy_set, search_from, search_until, duration, policy)
    if found is not None:
        return SlotResult(SlotStatus.FOUND, Slot(found.start, found.end, goal.calendar_type))

    if truncated:
        logger.warning(
            "Scan step cap (%d) hit for goal %s between %s and %s; reporting no slot",
            policy.max_scan_steps, goal.id, search_from.isoformat(), search_until.isoformat(),
        )
        return SlotResult(SlotStatus.RANGE_EXHAUSTED)

    logger.debug("No feasible %d-minute slot for goal %s", minutes, goal.id)
    return SlotResult(SlotStatus.NO_FEASIBLE_SLOT)


def find_recurring_slots(
    goal: Goal,
    busy_set: BusySet,
    search_from: datetime,
    search_until: datetime,
    policy: Optional[SchedulingPolicy] = None,
) -> List[Slot]:
    """
    Ad hoc scheduling for a recurring goal outside the weekly batch:
    one slot per matching day in the range, each searched within its own day.

    Each found slot is folded into a local copy of busy_set so later days never
    collide with earlier ones. Days with no room are skipped. A one-off goal
    gets at most its single find_next_slot result.
    """
    policy = policy or SchedulingPolicy()
    tz = policy.tz
    search_from = ensure_aware(search_from, tz)
    search_until = ensure_aware(search_until, tz)
    if search_until <= search_from:
        raise InvalidInput(f"search_until ({search_until}) must be after search_from ({search_from})")

    if not isinstance(goal.recurrence, Recurring):
        result = find_next_slot(goal, busy_set, search_from, search_until, policy)
        return [result.slot] if result.slot else []

    slots: List[Slot] = []
    for day in _local_days(search_from, search_until, policy):
        if not goal.recurrence.matches(day):
            continue
        day_start = datetime.combine(day, datetime.min.time(), tzinfo=tz)
        lo = max(search_from, day_start)
        hi = min(search_until, day_start + timedelta(days=1))
        if hi <= lo:
            continue
        result = find_next_slot(goal, busy_set, lo, hi, policy)
        if result.slot is None:
            continue
        slots.append(result.slot)
        busy_set = busy_set.insert(result.slot.interval)
    return slots
