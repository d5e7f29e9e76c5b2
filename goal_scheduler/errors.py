"""
Error taxonomy for the scheduling engine.

Only InvalidInput is ever raised. "No feasible slot" and "range exhausted" are
normal outcomes and travel as SlotStatus values (see slot_finder). Missing
upstream calendar data is reported as UpstreamDataMissing records next to the
busy intervals that could be read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class SchedulerError(Exception):
    """
    Base class for errors raised by the scheduling engine.
    """


class InvalidInput(SchedulerError, ValueError):
    """
    Raised for inputs the engine cannot work with at all:
    non-positive durations, empty or inverted search ranges, malformed dates,
    out-of-range goal fields.

    Fatal to the single call that received it.
    """


@dataclass(frozen=True)
class UpstreamDataMissing:
    """
    A calendar source whose busy data could not be obtained.

    The engine never sees this directly. The schedule computed without that
    source may contain blocks that collide with events we could not read, so
    callers must surface these next to the schedule.
    """
    source: str
    calendar_type: Optional[str]
    reason: str

    def message(self) -> str:
        label = f"{self.calendar_type} calendar" if self.calendar_type else "calendar"
        return f"Busy times from {label} '{self.source}' are unavailable ({self.reason}); the schedule may conflict with it."
