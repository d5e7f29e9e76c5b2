"""
Scheduling policy (product knobs, not algorithm).

Business hours, buffer gap, scan granularity and the scan step cap are
policy decisions, so they live here instead of being hard-coded in the engine.
Defaults can be overridden through environment variables (policy_from_env).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import time, timedelta
from typing import FrozenSet
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from goal_scheduler.errors import InvalidInput

DEFAULT_TZ_NAME = "America/Toronto"

# Monday=0 .. Friday=4
WORK_WEEKDAYS: FrozenSet[int] = frozenset(range(5))


@dataclass(frozen=True)
class SchedulingPolicy:
    """
    Constraints every candidate block must satisfy.

    tz_name:
    - Business hours and "which day is it" are evaluated in this timezone.
    - Naive datetimes handed to the engine are read as local time here.

    day_start/day_end:
    - Daily window for both calendar types (default 08:00-21:00).

    buffer_minutes:
    - Minimum gap kept around every busy interval (default 0).

    granularity_minutes / max_scan_steps:
    - Full-scan step size and the hard cap on the number of steps.
      2880 steps of 15 minutes covers 30 days.

    max_default_session_minutes:
    - Session length used for goals that do not set duration_minutes.
    """
    tz_name: str = DEFAULT_TZ_NAME
    day_start: time = time(8, 0)
    day_end: time = time(21, 0)
    buffer_minutes: int = 0
    granularity_minutes: int = 15
    max_scan_steps: int = 2880
    work_weekdays: FrozenSet[int] = WORK_WEEKDAYS
    max_default_session_minutes: int = 120

    def __post_init__(self) -> None:
        if self.day_end <= self.day_start:
            raise InvalidInput("day_end must be after day_start")
        if self.buffer_minutes < 0:
            raise InvalidInput("buffer_minutes must be >= 0")
        if self.granularity_minutes <= 0:
            raise InvalidInput("granularity_minutes must be > 0")
        if self.max_scan_steps <= 0:
            raise InvalidInput("max_scan_steps must be > 0")
        # Fail fast on unknown zone names.
        _ = self.tz

    @property
    def tz(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.tz_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidInput(f"Unknown timezone: {self.tz_name!r}") from e

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)

    @property
    def granularity(self) -> timedelta:
        return timedelta(minutes=self.granularity_minutes)


def parse_hhmm(raw: str) -> time:
    """
    Parse a 24-hour "HH:MM" string (e.g. "08:30") into a time.
    """
    parts = raw.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise InvalidInput(f"Expected HH:MM, got {raw!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise InvalidInput(f"Invalid hours or minutes in {raw!r}")
    return time(hours, minutes)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidInput(f"{name} must be an integer, got {raw!r}") from e


def _env_time(name: str, default: time) -> time:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return parse_hhmm(raw)


def policy_from_env() -> SchedulingPolicy:
    """
    Build a SchedulingPolicy from environment variables.

    Reads (all optional):
      - SCHEDULER_TZ                   IANA name, e.g. America/Toronto
      - SCHEDULER_DAY_START            HH:MM
      - SCHEDULER_DAY_END              HH:MM
      - SCHEDULER_BUFFER_MINUTES       int
      - SCHEDULER_GRANULARITY_MINUTES  int
      - SCHEDULER_MAX_SCAN_STEPS       int
    """
    defaults = SchedulingPolicy()
    return SchedulingPolicy(
        tz_name=os.getenv("SCHEDULER_TZ", "").strip() or defaults.tz_name,
        day_start=_env_time("SCHEDULER_DAY_START", defaults.day_start),
        day_end=_env_time("SCHEDULER_DAY_END", defaults.day_end),
        buffer_minutes=_env_int("SCHEDULER_BUFFER_MINUTES", defaults.buffer_minutes),
        granularity_minutes=_env_int("SCHEDULER_GRANULARITY_MINUTES", defaults.granularity_minutes),
        max_scan_steps=_env_int("SCHEDULER_MAX_SCAN_STEPS", defaults.max_scan_steps),
    )
