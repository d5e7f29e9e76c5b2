"""
Busy Set: the occupied time one scheduling call works against.

Lanes:
- one lane per CalendarType for external busy intervals (only conflict with
  goals of the same calendar type)
- a shared lane (key None) for blocks this engine placed, committed or newly
  proposed: a person can only be in one place, so those conflict with both types

Each lane is kept merged and sorted, so a conflict check is one bisect plus
one comparison. The set is immutable: insert returns a new BusySet and the
old one is left untouched, which keeps a single call's state confined to
that call.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

from goal_scheduler.intervals import BusyInterval, CalendarType, Interval, merge_intervals

LaneKey = Optional[CalendarType]
Lane = Tuple[Interval, ...]


def _lane_conflicts(lane: Lane, starts: Tuple[datetime, ...], candidate: Interval, buffer: timedelta) -> bool:
    # Last interval whose (buffered) start is before the candidate ends.
    idx = bisect.bisect_left(starts, candidate.end + buffer) - 1
    if idx < 0:
        return False
    # Lanes are disjoint and sorted, so ends are sorted too: only lane[idx] can reach the candidate.
    return lane[idx].end + buffer > candidate.start


@dataclass(frozen=True)
class BusySet:
    buffer: timedelta = timedelta(0)
    lanes: Dict[LaneKey, Lane] = field(default_factory=dict)
    _starts: Dict[LaneKey, Tuple[datetime, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        starts = {key: tuple(it.start for it in lane) for key, lane in self.lanes.items()}
        object.__setattr__(self, "_starts", starts)

    @classmethod
    def build(
        cls,
        busy_intervals: Iterable[BusyInterval] = (),
        committed: Iterable[Interval] = (),
        buffer: timedelta = timedelta(0),
    ) -> "BusySet":
        """
        Build the initial set from external busy intervals (per calendar type)
        and already committed blocks (shared lane).
        """
        grouped: Dict[LaneKey, list] = {}
        for b in busy_intervals:
            grouped.setdefault(b.calendar_type, []).append(b.interval)
        shared = list(committed)
        if shared:
            grouped.setdefault(None, []).extend(shared)

        lanes = {key: tuple(merge_intervals(items)) for key, items in grouped.items()}
        return cls(buffer=buffer, lanes=lanes)

    def conflicts_for(self, candidate: Interval, calendar_type: CalendarType) -> bool:
        """
        True if candidate overlaps (with buffer) anything busy for calendar_type,
        including the shared lane.
        """
        for key in (calendar_type, None):
            lane = self.lanes.get(key)
            if not lane:
                continue
            if _lane_conflicts(lane, self._starts[key], candidate, self.buffer):
                return True
        return False

    def insert(self, interval: Interval, calendar_type: LaneKey = None) -> "BusySet":
        """
        Return a new BusySet with interval added to the lane for calendar_type
        (None = shared lane, blocks both calendar types).
        """
        lanes = dict(self.lanes)
        lanes[calendar_type] = tuple(merge_intervals(list(lanes.get(calendar_type, ())) + [interval]))
        return BusySet(buffer=self.buffer, lanes=lanes)

    def intervals(self, calendar_type: LaneKey = None) -> Lane:
        return self.lanes.get(calendar_type, ())

    def __len__(self) -> int:
        return sum(len(lane) for lane in self.lanes.values())
