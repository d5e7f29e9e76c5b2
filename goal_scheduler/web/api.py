"""
FastAPI wrapper around the scheduling engine.

This exposes a minimal HTTP API so a frontend can:
- preview a weekly schedule (read-only: proposed blocks + what could not be placed)
- ask for the next free slot for one goal (ad hoc scheduling, e.g. a sub-task)

Why this exists:
- planner + slot_finder are the "engine"
- this file is the "web wrapper"; nothing here writes to a calendar
"""

from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Literal

from fastapi import FastAPI, HTTPException
# Enables browser clients on another origin to call the API
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from goal_scheduler.errors import InvalidInput, UpstreamDataMissing
from goal_scheduler.goals import BlockStatus, Cadence, Goal, OneOff, ProposedBlock, Recurring, parse_weekdays
from goal_scheduler.intervals import BusyInterval, CalendarType, ensure_aware, parse_rfc3339, to_rfc3339
from goal_scheduler.logging_config import configure_logging
from goal_scheduler.planner import build_busy_set, current_week_range, generate_schedule
from goal_scheduler.planning.preferences import SchedulingPolicy, parse_hhmm, policy_from_env
from goal_scheduler.slot_finder import SlotStatus, find_next_slot, find_recurring_slots

configure_logging()

# Create the FastAPI app object (the web server routes requests to functions below)
app = FastAPI(title="Goal Scheduler API", version="0.3.0")
# --- CORS (development only) ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],          # Dev-only. In production, restrict to your UI domain.
    allow_credentials=False,      # Must be False when allow_origins is "*"
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------
# Request models (API contracts)
# ----------------------------

class RecurringIn(BaseModel):
    """
    Recurrence as captured from chat: {"type": "weekly", "days": ["monday", "wednesday"]}.
    """
    type: Literal["daily", "weekly"]
    days: list[str] = Field(default_factory=list, description="Lowercase day names")


class GoalIn(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    due_date: str | None = Field(None, description="YYYY-MM-DD or RFC3339 timestamp")
    estimated_hours: float = Field(..., gt=0, allow_inf_nan=False)
    is_hard_deadline: bool = False
    priority: int = Field(3, ge=1, le=5, description="1 (low) .. 5 (critical)")
    is_work: bool = Field(False, description="True = work calendar, False = personal")
    preferred_time: str | None = Field(None, pattern=r"^\d{2}:\d{2}$", description="HH:MM, 24-hour")
    duration_minutes: int | None = Field(None, ge=15, description="Length of each session")
    recurring: RecurringIn | None = None


class BusyIn(BaseModel):
    start: datetime
    end: datetime
    calendar_type: CalendarType


class BlockIn(BaseModel):
    """
    A block already committed to a calendar; always treated as busy.
    """
    goal_id: str
    goal_title: str = ""
    start: datetime
    end: datetime
    calendar_type: CalendarType


class ScheduleRequest(BaseModel):
    goals: list[GoalIn]
    busy: list[BusyIn] = Field(default_factory=list)
    existing_blocks: list[BlockIn] = Field(default_factory=list)
    week_start: datetime | None = Field(None, description="Defaults to this Monday 00:00 local")
    week_end: datetime | None = Field(None, description="Defaults to next Monday 00:00 local")
    now: datetime | None = Field(None, description="Defaults to the current time")
    tz: str | None = Field(None, description="IANA timezone; overrides SCHEDULER_TZ")
    degraded_sources: list[str] = Field(
        default_factory=list,
        description="Calendars whose busy data could not be fetched",
    )


class NextSlotRequest(BaseModel):
    goal: GoalIn
    busy: list[BusyIn] = Field(default_factory=list)
    existing_blocks: list[BlockIn] = Field(default_factory=list)
    search_from: datetime
    search_until: datetime
    tz: str | None = None
    all_recurring: bool = Field(False, description="Return one slot per matching day for recurring goals")


# ----------------------------
# Helpers (internal plumbing)
# ----------------------------

def _policy(tz_name: str | None) -> SchedulingPolicy:
    policy = policy_from_env()
    if tz_name:
        policy = replace(policy, tz_name=tz_name)
    return policy


def _parse_due(raw: str | None) -> date | datetime | None:
    if raw is None or not raw.strip():
        return None
    raw = raw.strip()
    if len(raw) == 10:
        try:
            return date.fromisoformat(raw)
        except ValueError as e:
            raise InvalidInput("due_date must be a valid date (YYYY-MM-DD)") from e
    return parse_rfc3339(raw)


def _to_goal(g: GoalIn) -> Goal:
    recurrence = OneOff()
    if g.recurring is not None:
        recurrence = Recurring(cadence=Cadence(g.recurring.type), days=parse_weekdays(g.recurring.days))
    return Goal(
        id=g.id,
        title=g.title,
        estimated_hours=g.estimated_hours,
        due_date=_parse_due(g.due_date),
        is_hard_deadline=g.is_hard_deadline,
        priority=g.priority,
        calendar_type=CalendarType.WORK if g.is_work else CalendarType.PERSONAL,
        preferred_time=parse_hhmm(g.preferred_time) if g.preferred_time else None,
        duration_minutes=g.duration_minutes,
        recurrence=recurrence,
    )


def _to_busy(items: list[BusyIn], policy: SchedulingPolicy) -> list[BusyInterval]:
    # Naive datetimes are wall-clock time in the policy timezone
    tz = policy.tz
    return [
        BusyInterval(start=ensure_aware(b.start, tz), end=ensure_aware(b.end, tz), calendar_type=b.calendar_type)
        for b in items
    ]


def _to_committed(items: list[BlockIn], policy: SchedulingPolicy) -> list[ProposedBlock]:
    tz = policy.tz
    return [
        ProposedBlock(
            goal_id=b.goal_id,
            goal_title=b.goal_title,
            start=ensure_aware(b.start, tz),
            end=ensure_aware(b.end, tz),
            calendar_type=b.calendar_type,
            status=BlockStatus.COMMITTED,
        )
        for b in items
    ]


def _week_window(req: ScheduleRequest, policy: SchedulingPolicy) -> tuple[datetime, datetime]:
    """
    Resolve the scheduling week. With neither bound given it is the current
    Monday-to-Monday week; with one bound given the other is 7 days away.
    """
    tz = policy.tz
    week_start = ensure_aware(req.week_start, tz) if req.week_start is not None else None
    week_end = ensure_aware(req.week_end, tz) if req.week_end is not None else None
    if week_start is None and week_end is None:
        return current_week_range(tz)
    if week_end is None:
        return week_start, week_start + timedelta(days=7)
    if week_start is None:
        return week_end - timedelta(days=7), week_end
    return week_start, week_end


def _block_json(b: ProposedBlock) -> dict[str, Any]:
    return {
        "goal_id": b.goal_id,
        "goal_title": b.goal_title,
        "calendar_type": b.calendar_type.value,
        "start": to_rfc3339(b.start),
        "end": to_rfc3339(b.end),
        "minutes": b.minutes(),
        "session_index": b.session_index,
        "status": b.status.value,
    }


# ----------------------------
# Endpoints
# ----------------------------

@app.get("/health")
def health():
    """
    Health check endpoint.
    Used to confirm the service is running.
    """
    return {"ok": True}


@app.post("/schedule/preview")
def schedule_preview(req: ScheduleRequest):
    """
    Read-only: propose blocks for the week.

    Steps:
    1) Resolve policy (env + optional tz) and the week window
    2) Convert request models into engine values
    3) Run the weekly scheduler
    4) Return blocks + skipped sessions + unscheduled goals + warnings
    """
    try:
        policy = _policy(req.tz)
        week_start, week_end = _week_window(req, policy)

        result = generate_schedule(
            goals=[_to_goal(g) for g in req.goals],
            busy_intervals=_to_busy(req.busy, policy),
            existing_blocks=_to_committed(req.existing_blocks, policy),
            week_start=week_start,
            week_end=week_end,
            policy=policy,
            now=req.now,
        )
    except InvalidInput as e:
        # Convert to a clean 400 so the frontend can show it as a client error
        raise HTTPException(status_code=400, detail=str(e)) from e

    warnings = [
        UpstreamDataMissing(source=source, calendar_type=None, reason="not loaded").message()
        for source in req.degraded_sources
    ]

    return {
        "week": {"start": to_rfc3339(week_start), "end": to_rfc3339(week_end)},
        "blocks": [_block_json(b) for b in result.blocks],
        "skipped": [
            {
                "goal_id": s.goal_id,
                "session_index": s.session_index,
                "minutes": s.minutes,
                "reason": s.reason,
            }
            for s in result.skipped
        ],
        "unscheduled_goal_ids": result.unscheduled_goal_ids,
        "summary": result.summary(),
        "warnings": warnings,
    }


@app.post("/schedule/next-slot")
def schedule_next_slot(req: NextSlotRequest):
    """
    Read-only: earliest feasible slot for one goal.

    Returns {"status": "found" | "no_feasible_slot" | "range_exhausted", "slot": {...} | null}.
    With all_recurring=true a recurring goal gets {"status", "slots": [...]}, one per matching day.
    """
    try:
        policy = _policy(req.tz)
        goal = _to_goal(req.goal)
        busy_set = build_busy_set(_to_busy(req.busy, policy), _to_committed(req.existing_blocks, policy), policy)

        if req.all_recurring:
            slots = find_recurring_slots(goal, busy_set, req.search_from, req.search_until, policy)
            status = SlotStatus.FOUND if slots else SlotStatus.NO_FEASIBLE_SLOT
            return {
                "status": status.value,
                "slots": [
                    {"start": to_rfc3339(s.start), "end": to_rfc3339(s.end), "calendar_type": s.calendar_type.value}
                    for s in slots
                ],
            }

        result = find_next_slot(goal, busy_set, req.search_from, req.search_until, policy)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    slot = None
    if result.slot is not None:
        slot = {
            "start": to_rfc3339(result.slot.start),
            "end": to_rfc3339(result.slot.end),
            "calendar_type": result.slot.calendar_type.value,
        }
    return {"status": result.status.value, "slot": slot}
