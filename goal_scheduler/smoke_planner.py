"""Smoke test: weekly scheduler on a fixed sample week (no calendar access).

Plans the week of 2026-10-19 (Mon) in America/Toronto with:
- a hard-deadline work goal due Wednesday
- a recurring personal goal (Mon/Wed/Fri at 07:30 preferred, i.e. outside business hours)
- a soft personal goal with no due date
and a few busy intervals on both calendars.

Run:
    python -u -m goal_scheduler.smoke_planner
"""

from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from goal_scheduler.goals import Cadence, Goal, Recurring
from goal_scheduler.intervals import BusyInterval, CalendarType
from goal_scheduler.logging_config import configure_logging
from goal_scheduler.planner import generate_schedule
from goal_scheduler.planning.preferences import SchedulingPolicy


def main() -> None:
    configure_logging()

    # ---- Local timezone + policy ----
    tz_name = "America/Toronto"
    tz = ZoneInfo(tz_name)
    policy = SchedulingPolicy(tz_name=tz_name, buffer_minutes=10)

    # ---- Week window (fixed for smoke test) ----
    week_start = datetime(2026, 10, 19, tzinfo=tz)
    week_end = datetime(2026, 10, 26, tzinfo=tz)

    goals = [
        Goal(
            id="report",
            title="Quarterly report",
            estimated_hours=3,
            due_date=date(2026, 10, 21),
            is_hard_deadline=True,
            priority=5,
            calendar_type=CalendarType.WORK,
            duration_minutes=90,
        ),
        Goal(
            id="run",
            title="Morning run",
            estimated_hours=1,
            priority=3,
            preferred_time=time(7, 30),
            duration_minutes=45,
            recurrence=Recurring(Cadence.WEEKLY, frozenset({0, 2, 4})),
        ),
        Goal(
            id="guitar",
            title="Guitar practice",
            estimated_hours=2,
            priority=2,
        ),
    ]

    busy = [
        BusyInterval(datetime(2026, 10, 19, 8, 0, tzinfo=tz), datetime(2026, 10, 19, 11, 0, tzinfo=tz), CalendarType.WORK),
        BusyInterval(datetime(2026, 10, 19, 12, 0, tzinfo=tz), datetime(2026, 10, 19, 13, 0, tzinfo=tz), CalendarType.PERSONAL),
        BusyInterval(datetime(2026, 10, 20, 9, 0, tzinfo=tz), datetime(2026, 10, 20, 17, 0, tzinfo=tz), CalendarType.WORK),
    ]

    print("\n=== DEBUG: Planning Window (Local) ===")
    print(f"{week_start.isoformat()} → {week_end.isoformat()}")

    print("\n=== DEBUG: Busy Intervals ===")
    for b in busy:
        print(f"- [{b.calendar_type.value}] {b.start.isoformat()} → {b.end.isoformat()}")

    result = generate_schedule(goals, busy, [], week_start, week_end, policy=policy, now=week_start)

    print("\n=== DEBUG: Proposed Goal Blocks ===")
    print(f"Proposed block count: {len(result.blocks)}")
    if not result.blocks:
        print("(No goal blocks could be allocated.)")

    for b in result.blocks:
        print(f"- {b.goal_title} [{b.calendar_type.value}]: {b.start.isoformat()} → {b.end.isoformat()} ({b.minutes()} min)")

    print("\n=== DEBUG: Skipped Sessions ===")
    for s in result.skipped:
        print(f"- {s.goal_id} #{s.session_index} ({s.minutes} min): {s.reason}")

    print(f"\n{result.summary()}")


if __name__ == "__main__":
    main()
