"""
Acceptance tests for the weekly scheduler (generate_schedule).

Week under test: Mon 2026-10-19 00:00 -> Mon 2026-10-26 00:00, America/Toronto,
business hours 08:00-21:00, no buffer, now = week start unless stated.

What these prove:
- Urgency order (hard deadline, days to due, priority, id) decides who gets the early slots.
- No two proposed blocks overlap, whatever their calendar type.
- Proposals avoid busy time of their own calendar and every committed block.
- Recurring goals expand to one block per matching day.
- Unplaceable sessions are reported, never raised.
- Same input, same output.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from itertools import combinations
from zoneinfo import ZoneInfo

import pytest

from goal_scheduler.errors import InvalidInput
from goal_scheduler.goals import BlockStatus, Cadence, Goal, ProposedBlock, Recurring
from goal_scheduler.intervals import BusyInterval, CalendarType
from goal_scheduler.planner import (
    SKIP_PAST_DUE,
    current_week_range,
    expand_sessions,
    generate_schedule,
    urgency_key,
)
from goal_scheduler.planning.preferences import SchedulingPolicy

TZ = ZoneInfo("America/Toronto")
POLICY = SchedulingPolicy(tz_name="America/Toronto")
WEEK_START = datetime(2026, 10, 19, tzinfo=TZ)
WEEK_END = datetime(2026, 10, 26, tzinfo=TZ)


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, tzinfo=TZ)


def make_goal(goal_id: str, **overrides) -> Goal:
    fields = dict(
        id=goal_id,
        title=goal_id.title(),
        estimated_hours=1,
        duration_minutes=60,
        priority=3,
        calendar_type=CalendarType.PERSONAL,
    )
    fields.update(overrides)
    return Goal(**fields)


def schedule(goals, busy=(), existing=(), **kwargs):
    kwargs.setdefault("policy", POLICY)
    kwargs.setdefault("now", WEEK_START)
    return generate_schedule(goals, list(busy), list(existing), WEEK_START, WEEK_END, **kwargs)


def assert_no_mutual_overlap(blocks):
    for a, b in combinations(blocks, 2):
        assert not (a.start < b.end and b.start < a.end), f"Blocks overlap: {a} / {b}"


def test_goal_a_hard_deadline_two_sessions_earliest_times():
    """
    Goal A: priority 5, hard deadline in 2 days, 2 hours, 60-minute sessions, work.
    Expected: two adjacent 60-minute weekday blocks starting at the first business hour.
    """
    goal_a = make_goal(
        "goal-a",
        estimated_hours=2,
        priority=5,
        is_hard_deadline=True,
        due_date=WEEK_START + timedelta(days=2),
        calendar_type=CalendarType.WORK,
    )

    result = schedule([goal_a])

    assert len(result.blocks) == 2, f"Expected 2 blocks, got {result.blocks}"
    assert [(b.start, b.end) for b in result.blocks] == [
        (at(19, 8), at(19, 9)),
        (at(19, 9), at(19, 10)),
    ]
    for b in result.blocks:
        assert b.calendar_type == CalendarType.WORK
        assert b.status == BlockStatus.PROPOSED
        assert b.start.weekday() < 5
        assert b.end <= goal_a.due_date
        assert b.minutes() == 60
    assert result.unscheduled_goal_ids == []
    assert result.skipped == []


def test_two_equal_goals_stable_id_order_gets_earlier_slot():
    """
    Same priority, same due date: the goal with the smaller id is processed
    first and gets the earlier slot, regardless of input order.
    """
    due = date(2026, 10, 23)
    alpha = make_goal("alpha", due_date=due)
    beta = make_goal("beta", due_date=due)

    result = schedule([beta, alpha])

    assert [(b.goal_id, b.start) for b in result.blocks] == [
        ("alpha", at(19, 8)),
        ("beta", at(19, 9)),
    ]
    assert_no_mutual_overlap(result.blocks)


def test_fully_busy_week_reports_every_goal_unscheduled():
    busy = []
    for day in range(19, 26):
        for cal in CalendarType:
            busy.append(BusyInterval(at(day, 8), at(day, 21), cal))
    goals = [make_goal("gym"), make_goal("taxes", calendar_type=CalendarType.WORK, estimated_hours=3)]

    result = schedule(goals, busy=busy)

    assert result.blocks == []
    assert sorted(result.unscheduled_goal_ids) == ["gym", "taxes"]
    assert len(result.skipped) == 4
    assert result.summary() == "2 of 2 goals could not be scheduled this week."


def test_weekly_recurrence_monday_wednesday_yields_two_blocks():
    goal = make_goal(
        "piano",
        duration_minutes=45,
        estimated_hours=10,  # ignored for recurring goals
        recurrence=Recurring(Cadence.WEEKLY, frozenset({0, 2})),
    )

    result = schedule([goal])

    assert len(result.blocks) == 2
    assert [b.start.weekday() for b in result.blocks] == [0, 2]
    assert all(b.minutes() == 45 for b in result.blocks)
    assert [b.session_index for b in result.blocks] == [0, 1]


def test_daily_recurrence_without_days_means_every_day():
    goal = make_goal("stretch", duration_minutes=15, recurrence=Recurring(Cadence.DAILY))

    result = schedule([goal])

    assert [b.start.date() for b in result.blocks] == [date(2026, 10, d) for d in range(19, 26)]


def test_blocks_avoid_busy_time_and_each_other_across_calendar_types():
    busy = [
        BusyInterval(at(19, 8), at(19, 10), CalendarType.WORK),
        BusyInterval(at(19, 8), at(19, 9), CalendarType.PERSONAL),
        BusyInterval(at(20, 12), at(20, 15), CalendarType.PERSONAL),
    ]
    existing = [
        ProposedBlock("old", "Old block", at(19, 10), at(19, 11), CalendarType.PERSONAL, BlockStatus.COMMITTED),
    ]
    goals = [
        make_goal("deck", calendar_type=CalendarType.WORK, estimated_hours=3, priority=5),
        make_goal("read", estimated_hours=2, duration_minutes=30),
        make_goal("call", preferred_time=time(12, 0), recurrence=Recurring(Cadence.WEEKLY, frozenset({1}))),
    ]

    result = schedule(goals, busy=busy, existing=existing)

    assert_no_mutual_overlap(result.blocks)
    for b in result.blocks:
        assert WEEK_START <= b.start and b.end <= WEEK_END
        assert not (b.start < at(19, 11) and at(19, 10) < b.end), f"{b} overlaps the committed block"
        for busy_iv in busy:
            if busy_iv.calendar_type == b.calendar_type:
                assert not (b.start < busy_iv.end and busy_iv.start < b.end), f"{b} overlaps {busy_iv}"
    assert all(b.goal_id != "old" for b in result.blocks), "Committed blocks must not be re-emitted"

    by_goal = result.blocks_by_goal()
    assert len(by_goal["deck"]) == 3
    assert len(by_goal["read"]) == 4
    # Tuesday 12:00 is busy on the personal calendar, so the preferred time moves on
    assert [b.start for b in by_goal["call"]] == [at(20, 8)]


def test_work_and_personal_goals_do_not_double_book_the_person():
    work = make_goal("a-work", calendar_type=CalendarType.WORK)
    personal = make_goal("b-personal")

    result = schedule([personal, work])

    assert [(b.goal_id, b.start) for b in result.blocks] == [
        ("a-work", at(19, 8)),
        ("b-personal", at(19, 9)),
    ]


def test_schedule_is_deterministic():
    goals = [
        make_goal("x", estimated_hours=2.5, priority=4, due_date=date(2026, 10, 22)),
        make_goal("y", calendar_type=CalendarType.WORK, is_hard_deadline=True, due_date=date(2026, 10, 20)),
        make_goal("z", preferred_time=time(19, 0), recurrence=Recurring(Cadence.WEEKLY, frozenset({4, 5}))),
    ]
    busy = [BusyInterval(at(19, 9), at(19, 17), CalendarType.WORK)]

    first = schedule(goals, busy=busy)
    second = schedule(goals, busy=busy)

    assert first.blocks == second.blocks
    assert first.skipped == second.skipped


def test_one_off_last_session_is_shorter():
    goal = make_goal("essay", estimated_hours=2.5, duration_minutes=60)

    sessions = expand_sessions(goal, WEEK_START, WEEK_END, POLICY)
    assert [s.minutes for s in sessions] == [60, 60, 30]

    result = schedule([goal])
    assert sum(b.minutes() for b in result.blocks) == 150


def test_tiny_estimate_still_gets_a_block():
    """
    An estimate that rounds to zero minutes is still a goal with work to do:
    it must come back as a block, not vanish from both blocks and skipped.
    """
    goal = make_goal("tiny", estimated_hours=0.005, duration_minutes=None)

    assert [s.minutes for s in expand_sessions(goal, WEEK_START, WEEK_END, POLICY)] == [1]

    result = schedule([goal])
    assert [(b.start, b.end) for b in result.blocks] == [(at(19, 8), at(19, 8, 1))]
    assert result.unscheduled_goal_ids == []


def test_urgency_order_hard_deadline_then_due_then_priority():
    soft_urgent = make_goal("soft", priority=5, due_date=date(2026, 10, 19))
    hard_late = make_goal("hard", priority=1, is_hard_deadline=True, due_date=date(2026, 10, 25))
    later_high = make_goal("later-high", priority=5, due_date=date(2026, 10, 22))
    later_low = make_goal("later-low", priority=2, due_date=date(2026, 10, 22))
    undated = make_goal("undated", priority=5)

    ordered = sorted(
        [undated, later_low, soft_urgent, later_high, hard_late],
        key=lambda g: urgency_key(g, WEEK_START, TZ),
    )

    assert [g.id for g in ordered] == ["hard", "soft", "later-high", "later-low", "undated"]


def test_hard_deadline_limits_search_window():
    """
    Due Monday (end of day) with 20 hours of work: only Monday's 13 business
    hours can be used; the rest is reported as skipped.
    """
    goal = make_goal("crunch", estimated_hours=20, is_hard_deadline=True, due_date=date(2026, 10, 19))

    result = schedule([goal])

    assert len(result.blocks) == 13
    assert all(b.start.date() == date(2026, 10, 19) for b in result.blocks)
    assert len(result.skipped) == 7


def test_soft_deadline_does_not_limit_search_window():
    goal = make_goal("slow", estimated_hours=20, due_date=date(2026, 10, 19))

    result = schedule([goal])

    assert len(result.blocks) == 20


def test_goal_due_before_window_is_skipped_as_past_due():
    goal = make_goal("late", due_date=date(2026, 10, 10))

    result = schedule([goal])

    assert result.blocks == []
    assert [s.reason for s in result.skipped] == [SKIP_PAST_DUE]
    assert result.unscheduled_goal_ids == ["late"]


def test_now_inside_week_moves_search_start():
    result = schedule([make_goal("later")], now=at(21, 12, 5))

    assert result.blocks[0].start == at(21, 12, 15)


def test_inverted_week_is_invalid_input():
    with pytest.raises(InvalidInput):
        generate_schedule([make_goal("a")], [], [], WEEK_END, WEEK_START, policy=POLICY, now=WEEK_START)


def test_buffer_policy_spaces_out_blocks():
    buffered = SchedulingPolicy(tz_name="America/Toronto", buffer_minutes=15)

    result = schedule([make_goal("one"), make_goal("two")], policy=buffered)

    assert [b.start for b in result.blocks] == [at(19, 8), at(19, 9, 15)]


def test_current_week_range_is_monday_to_monday():
    start, end = current_week_range(TZ, today=date(2026, 10, 22))

    assert start == WEEK_START
    assert end == WEEK_END
