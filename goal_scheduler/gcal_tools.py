"""
Deterministic Google Calendar tools (read side of the calendar collaborator).

These are "safe hands" for the scheduler:
- Read events from the work and personal calendars
- Drop events this app created itself (self-conflict avoidance)
- Never write: build_event_payload only drafts the body a caller may insert

A calendar that cannot be read (HTTP error, timeout, expired credentials) does
not fail the call. It is reported as UpstreamDataMissing and treated as
"no known conflicts", which can under-report busy time. Callers must pass
those warnings on to the user.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Tuple

from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from goal_scheduler.errors import InvalidInput, UpstreamDataMissing
from goal_scheduler.goals import ProposedBlock
from goal_scheduler.intervals import BusyInterval, CalendarType, parse_rfc3339, to_rfc3339

logger = logging.getLogger(__name__)

# Network, auth-refresh and socket failures are as "unavailable" as an HTTP error.
FETCH_ERRORS = (HttpError, TransportError, RefreshError, OSError)

# Private extended property stamped on every event we create.
APP_TAG_KEY = "goal_scheduler"
APP_TAG_VALUE = "1"


def list_events(
    service,
    calendar_id: str,
    time_min: str,
    time_max: str,
) -> List[Dict[str, Any]]:
    """
    List events on one calendar within a time window.

    Args:
        time_min/time_max: RFC3339 timestamps (inclusive-ish start, exclusive-ish end)

    Returns:
        A list of raw Google Calendar event objects.
    """
    events: List[Dict[str, Any]] = []
    page_token: str | None = None

    # Google Calendar API paginates results; we loop until done.
    while True:
        resp = (
            service.events()
            .list(
                calendarId=calendar_id,
                timeMin=time_min,
                timeMax=time_max,
                singleEvents=True,       # Expand recurring events into individual instances
                orderBy="startTime",     # Makes results deterministic and easier to debug
                pageToken=page_token,
            )
            .execute()
        )

        events.extend(resp.get("items", []))
        page_token = resp.get("nextPageToken")

        if not page_token:
            break

    return events


def is_app_event(event: Mapping[str, Any]) -> bool:
    props = (event.get("extendedProperties") or {}).get("private") or {}
    return props.get(APP_TAG_KEY) == APP_TAG_VALUE


def event_to_busy(event: Mapping[str, Any], calendar_type: CalendarType) -> BusyInterval | None:
    """
    Convert one event into a BusyInterval, or None when it does not block time:
    all-day events, events marked "free" (transparent), cancelled events and
    zero-length events.
    """
    if event.get("status") == "cancelled" or event.get("transparency") == "transparent":
        return None

    start_raw = (event.get("start") or {}).get("dateTime")
    end_raw = (event.get("end") or {}).get("dateTime")
    if not start_raw or not end_raw:
        return None

    start = parse_rfc3339(start_raw)
    end = parse_rfc3339(end_raw)
    if end <= start:
        return None
    return BusyInterval(start=start, end=end, calendar_type=calendar_type)


def _failure_reason(e: Exception) -> str:
    if isinstance(e, HttpError):
        return f"HTTP {getattr(e.resp, 'status', '?')}"
    return f"{type(e).__name__}: {e}" if str(e) else type(e).__name__


def fetch_busy_intervals(
    service,
    calendar_ids_by_type: Mapping[CalendarType, str],
    time_min: str,
    time_max: str,
) -> Tuple[List[BusyInterval], List[UpstreamDataMissing]]:
    """
    Collect busy intervals from each calendar, tagged with its calendar type.

    Returns:
        (busy intervals, sources that could not be read)
    """
    busy: List[BusyInterval] = []
    missing: List[UpstreamDataMissing] = []

    for calendar_type, calendar_id in calendar_ids_by_type.items():
        try:
            events = list_events(service, calendar_id, time_min, time_max)
        except FETCH_ERRORS as e:
            logger.warning("Could not read %s calendar %s: %s", calendar_type.value, calendar_id, e)
            missing.append(
                UpstreamDataMissing(
                    source=calendar_id,
                    calendar_type=calendar_type.value,
                    reason=_failure_reason(e),
                )
            )
            continue

        for event in events:
            if is_app_event(event):
                continue
            try:
                interval = event_to_busy(event, calendar_type)
            except InvalidInput:
                logger.warning("Skipping event %s with malformed times", event.get("id"))
                continue
            if interval is not None:
                busy.append(interval)

    busy.sort(key=lambda b: (b.start, b.end, b.calendar_type.value))
    return busy, missing


def build_event_payload(block: ProposedBlock, tz_name: str) -> Dict[str, Any]:
    """
    Convert a proposed block into a Google Calendar event payload, tagged so
    fetch_busy_intervals will not treat it as an external conflict later.
    """
    return {
        "summary": block.goal_title,
        "start": {"dateTime": to_rfc3339(block.start), "timeZone": tz_name},
        "end": {"dateTime": to_rfc3339(block.end), "timeZone": tz_name},
        "description": "Scheduled by Goal Scheduler.",
        "extendedProperties": {"private": {APP_TAG_KEY: APP_TAG_VALUE}},
    }
