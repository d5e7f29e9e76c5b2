"""
Weekly scheduler: place many goals into one bounded week with zero mutual conflict.

This module is deterministic and testable:
- urgency_key: processing order (hard deadline, days to due, priority, id)
- expand_sessions: one-off goals split by session length, recurring goals one per matching day
- generate_schedule: single-pass greedy allocation on top of the Slot Finder
- current_week_range: Monday 00:00 -> next Monday 00:00, local time

Greedy and non-backtracking on purpose:
- A goal processed later never displaces an earlier goal's block.
- Sessions that do not fit are skipped and reported; the pass always finishes.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from goal_scheduler.busy_set import BusySet
from goal_scheduler.errors import InvalidInput
from goal_scheduler.goals import BlockStatus, Goal, OneOff, ProposedBlock, Recurring
from goal_scheduler.intervals import BusyInterval, Interval, ensure_aware
from goal_scheduler.planning.preferences import SchedulingPolicy
from goal_scheduler.slot_finder import find_next_slot

logger = logging.getLogger(__name__)

# Reasons attached to SkippedSession, besides the SlotStatus values
# ("no_feasible_slot", "range_exhausted") passed through from the slot finder.
SKIP_PAST_DUE = "past_due"
SKIP_EMPTY_WINDOW = "empty_window"


@dataclass(frozen=True)
class Session:
    """
    One required sitting of a goal.

    day is set for recurring sessions: the session must land on that local date.
    """
    goal: Goal
    index: int
    minutes: int
    day: Optional[date] = None


@dataclass(frozen=True)
class SkippedSession:
    goal_id: str
    session_index: int
    minutes: int
    reason: str


@dataclass
class ScheduleResult:
    """
    Output of one generate_schedule call.

    blocks are sorted by start time. Goals with zero blocks are in
    unscheduled_goal_ids; callers must report them (see summary()).
    """
    blocks: List[ProposedBlock] = field(default_factory=list)
    skipped: List[SkippedSession] = field(default_factory=list)
    goal_ids: List[str] = field(default_factory=list)

    def blocks_by_goal(self) -> Dict[str, List[ProposedBlock]]:
        out: Dict[str, List[ProposedBlock]] = {gid: [] for gid in self.goal_ids}
        for b in self.blocks:
            out.setdefault(b.goal_id, []).append(b)
        return out

    @property
    def unscheduled_goal_ids(self) -> List[str]:
        placed = {b.goal_id for b in self.blocks}
        return [gid for gid in self.goal_ids if gid not in placed]

    def summary(self) -> str:
        missing = len(self.unscheduled_goal_ids)
        total = len(self.goal_ids)
        if missing == 0:
            return f"All {total} goals were scheduled this week."
        return f"{missing} of {total} goals could not be scheduled this week."


def due_deadline(goal: Goal, tz: tzinfo) -> Optional[datetime]:
    """
    The instant a goal is due.

    - date -> start of the following local day (due "by end of day")
    - naive datetime -> read as local time
    """
    due = goal.due_date
    if due is None:
        return None
    if isinstance(due, datetime):
        return ensure_aware(due, tz)
    if isinstance(due, date):
        return datetime.combine(due + timedelta(days=1), time(0, 0), tzinfo=tz)
    raise InvalidInput(f"Goal {goal.id!r}: due_date must be a date or datetime, got {due!r}")


def urgency_key(goal: Goal, reference: datetime, tz: tzinfo) -> Tuple[int, float, int, str]:
    """
    Sort key: hard deadlines first, then fewest days until due, then higher
    priority, then goal id. Goals without a due date sort after dated ones.
    """
    deadline = due_deadline(goal, tz)
    days_until_due = math.inf if deadline is None else (deadline - reference).total_seconds() / 86400
    return (0 if goal.is_hard_deadline else 1, days_until_due, -int(goal.priority), str(goal.id))


def _local_dates(start: datetime, end: datetime, tz: tzinfo) -> List[date]:
    """
    Local dates d with [d 00:00, d+1 00:00) intersecting [start, end).
    """
    days: List[date] = []
    day = start.astimezone(tz).date()
    while datetime.combine(day, time(0, 0), tzinfo=tz) < end:
        days.append(day)
        day += timedelta(days=1)
    return days


def expand_sessions(
    goal: Goal,
    week_start: datetime,
    week_end: datetime,
    policy: SchedulingPolicy,
) -> List[Session]:
    """
    Expand a goal into the sessions it needs this week.

    - OneOff: ceil(total / session) sessions; the last one is shortened so the
      total equals estimated_hours * 60 minutes.
    - Recurring: one session per matching local day in [week_start, week_end),
      each session_minutes long, independent of estimated_hours.
    """
    session = goal.session_minutes(policy.max_default_session_minutes)
    recurrence = goal.recurrence

    if isinstance(recurrence, Recurring):
        days = [d for d in _local_dates(week_start, week_end, policy.tz) if recurrence.matches(d)]
        return [Session(goal=goal, index=i, minutes=session, day=d) for i, d in enumerate(days)]

    if isinstance(recurrence, OneOff):
        total = goal.total_minutes
        count = math.ceil(total / session)
        sessions: List[Session] = []
        for i in range(count):
            minutes = min(session, total - i * session)
            sessions.append(Session(goal=goal, index=i, minutes=minutes))
        return sessions

    raise InvalidInput(f"Goal {goal.id!r}: unknown recurrence {recurrence!r}")


def _session_window(
    session: Session,
    lo: datetime,
    hi: datetime,
    tz: tzinfo,
) -> Tuple[datetime, datetime]:
    if session.day is None:
        return lo, hi
    day_start = datetime.combine(session.day, time(0, 0), tzinfo=tz)
    return max(lo, day_start), min(hi, day_start + timedelta(days=1))


def build_busy_set(
    busy_intervals: Iterable[BusyInterval],
    existing_blocks: Iterable[ProposedBlock],
    policy: SchedulingPolicy,
) -> BusySet:
    """
    Initial BusySet for one call: external busy intervals in their calendar
    lane, existing committed blocks in the shared lane. Naive datetimes are
    read as policy-local time.
    """
    tz = policy.tz
    busy = [
        BusyInterval(start=ensure_aware(b.start, tz), end=ensure_aware(b.end, tz), calendar_type=b.calendar_type)
        for b in busy_intervals
    ]
    committed = [
        Interval(start=ensure_aware(b.start, tz), end=ensure_aware(b.end, tz))
        for b in existing_blocks
    ]
    return BusySet.build(busy, committed, buffer=policy.buffer)


def generate_schedule(
    goals: Sequence[Goal],
    busy_intervals: Iterable[BusyInterval],
    existing_blocks: Iterable[ProposedBlock],
    week_start: datetime,
    week_end: datetime,
    policy: Optional[SchedulingPolicy] = None,
    now: Optional[datetime] = None,
) -> ScheduleResult:
    """
    Place goals into [week_start, week_end) greedily, most urgent first.

    Steps:
    1) BusySet = busy intervals (per calendar) + existing committed blocks (shared)
    2) Sort goals by urgency_key
    3) Expand each goal into sessions
    4) For each session, find_next_slot in
       [max(week_start, now), min(week_end, deadline if hard)], then fold the
       accepted block into the shared lane so nothing later can collide with it
    5) Return blocks (sorted by start) plus skipped sessions

    Only InvalidInput is raised; everything else degrades to fewer blocks.
    """
    policy = policy or SchedulingPolicy()
    tz = policy.tz
    week_start = ensure_aware(week_start, tz)
    week_end = ensure_aware(week_end, tz)
    if week_end <= week_start:
        raise InvalidInput(f"week_end ({week_end}) must be after week_start ({week_start})")
    now = ensure_aware(now, tz) if now is not None else datetime.now(tz)

    busy_set = build_busy_set(busy_intervals, existing_blocks, policy)
    logger.debug("Starting from %d busy intervals", len(busy_set))

    window_from = max(week_start, now)
    ordered = sorted(goals, key=lambda g: urgency_key(g, week_start, tz))

    result = ScheduleResult(goal_ids=[g.id for g in ordered])

    for goal in ordered:
        deadline = due_deadline(goal, tz)
        sessions = expand_sessions(goal, week_start, week_end, policy)

        if deadline is not None and deadline < week_start:
            logger.info("Goal %s was due %s, before the window starts; skipping", goal.id, deadline.isoformat())
            result.skipped.extend(SkippedSession(goal.id, s.index, s.minutes, SKIP_PAST_DUE) for s in sessions)
            continue

        goal_until = week_end
        if goal.is_hard_deadline and deadline is not None:
            goal_until = min(week_end, deadline)

        for session in sessions:
            lo, hi = _session_window(session, window_from, goal_until, tz)
            if hi <= lo:
                result.skipped.append(SkippedSession(goal.id, session.index, session.minutes, SKIP_EMPTY_WINDOW))
                continue

            found = find_next_slot(goal, busy_set, lo, hi, policy, duration_minutes=session.minutes)
            if found.slot is None:
                logger.debug("Goal %s session %d: %s", goal.id, session.index, found.status.value)
                result.skipped.append(SkippedSession(goal.id, session.index, session.minutes, found.status.value))
                continue

            block = ProposedBlock(
                goal_id=goal.id,
                goal_title=goal.title,
                start=found.slot.start,
                end=found.slot.end,
                calendar_type=goal.calendar_type,
                status=BlockStatus.PROPOSED,
                session_index=session.index,
            )
            result.blocks.append(block)
            busy_set = busy_set.insert(block.interval)

    result.blocks.sort(key=lambda b: (b.start, b.goal_id))
    logger.info(
        "Scheduled %d blocks for %d goals (%d sessions skipped). %s",
        len(result.blocks), len(result.goal_ids), len(result.skipped), result.summary(),
    )
    return result


def current_week_range(tz: tzinfo, today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    Start and end of the current week: Monday 00:00 to the next Monday 00:00, local.
    """
    today = today or datetime.now(tz).date()
    monday = today - timedelta(days=today.weekday())
    week_start = datetime.combine(monday, time(0, 0), tzinfo=tz)
    week_end = datetime.combine(monday + timedelta(days=7), time(0, 0), tzinfo=tz)
    return week_start, week_end
