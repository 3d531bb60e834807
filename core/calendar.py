# =============================================================================
# core/calendar.py  —  Calendar Reading & Free-Slot Finding
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Reads calendar events from a local source and answers the questions a
#   scheduling agent asks: what is on today, what is coming up, and where
#   are the gaps in a workday.
#
# DATA SOURCE TOGGLE:
#   CALENDAR_SOURCE=applescript  → macOS Calendar.app via `osascript` (default)
#   CALENDAR_SOURCE=file         → JSON file named by CALENDAR_EVENTS_FILE
#
#   Both readers return the same list[CalendarEvent], so the query functions
#   below never know where the events came from.
#
# THE SEPARATION OF "READ" AND "QUERY":
#   Readers do I/O.  events_on / upcoming_events / find_free_slots are pure
#   functions over a list of events and an explicit "now" or day, which is
#   what makes them testable without a calendar.
# =============================================================================

import json
import logging
import math
import os
import subprocess
from datetime import date, datetime, time, timedelta
from typing import Optional

from core.models import BusyPeriod, CalendarEvent, FreeSlot, FreeSlotResult

logger = logging.getLogger(__name__)


class CalendarReadError(RuntimeError):
    """The calendar source could not be read."""


# AppleScript emits one line per event: title|start|end|location|description
_APPLESCRIPT = """
tell application "Calendar"
  set eventList to {}
  set startDate to (current date) - 7 * days
  set endDate to (current date) + 365 * days

  repeat with calendarAccount in calendars
    set eventList to eventList & (every event of calendarAccount whose start date is greater than or equal to startDate and start date is less than or equal to endDate)
  end repeat

  set output to ""
  repeat with anEvent in eventList
    set theTitle to summary of anEvent
    set theStart to start date of anEvent as string
    set theEnd to end date of anEvent as string
    set theLoc to location of anEvent
    set theDesc to description of anEvent
    if theLoc is missing value then
      set theLoc to ""
    end if
    if theDesc is missing value then
      set theDesc to ""
    end if
    set output to output & theTitle & "|" & theStart & "|" & theEnd & "|" & theLoc & "|" & theDesc & linefeed
  end repeat

  return output
end tell
"""

_APPLESCRIPT_DATE_FORMATS = (
    "%B %d, %Y %I:%M:%S %p",           # January 3, 2025 9:00:00 AM
    "%d %B %Y %H:%M:%S",               # 3 January 2025 09:00:00 (24h locales)
)


def parse_applescript_date(raw: str) -> datetime:
    """Parse a date as AppleScript prints it, e.g.
    "Friday, January 3, 2025 at 9:00:00 AM".
    """
    text = raw.strip()
    # Drop the leading weekday ("Friday, ")
    head, sep, tail = text.partition(",")
    if sep and head.strip().isalpha():
        text = tail.strip()
    text = text.replace(" at ", " ")

    for fmt in _APPLESCRIPT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized calendar date: {raw!r}")


def parse_applescript_output(output: str) -> list[CalendarEvent]:
    """Turn raw osascript output into events sorted by start time.

    Lines that cannot be parsed are logged and skipped.
    """
    events = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("|")
        try:
            if len(parts) < 3:
                raise ValueError(f"expected at least 3 fields, got {len(parts)}")
            title, start_raw, end_raw = parts[0], parts[1], parts[2]
            location = parts[3] if len(parts) > 3 else ""
            description = parts[4] if len(parts) > 4 else ""
            events.append(CalendarEvent(
                title=title.strip(),
                start=parse_applescript_date(start_raw),
                end=parse_applescript_date(end_raw),
                location=location.strip(),
                description=description.strip(),
            ))
        except ValueError as exc:
            logger.error("Failed to parse event line %r: %s", line, exc)

    return sorted(events, key=lambda e: e.start)


# =============================================================================
# Readers
# =============================================================================
class AppleScriptCalendarReader:
    """Reads the local macOS Calendar app through osascript."""

    def __init__(self, timeout_seconds: float = 60.0):
        self.timeout_seconds = timeout_seconds

    def get_events(self) -> list[CalendarEvent]:
        try:
            completed = subprocess.run(
                ["osascript", "-e", _APPLESCRIPT],
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise CalendarReadError("osascript is not available on this host") from exc
        except subprocess.CalledProcessError as exc:
            logger.info("Raw AppleScript error: %s", exc.stderr)
            raise CalendarReadError(f"Failed to read Mac calendar: {exc.stderr.strip() or exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise CalendarReadError(f"Reading Mac calendar timed out after {self.timeout_seconds}s") from exc

        return parse_applescript_output(completed.stdout)


class JsonFileCalendarReader:
    """Reads events from a JSON file: a list of
    {title, start, end, location?, description?} with ISO timestamps.
    """

    def __init__(self, path: str):
        self.path = path

    def get_events(self) -> list[CalendarEvent]:
        try:
            with open(self.path, encoding="utf-8") as f:
                raw_events = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise CalendarReadError(f"Failed to read calendar file {self.path}: {exc}") from exc

        events = []
        for raw in raw_events:
            try:
                events.append(CalendarEvent(
                    title=str(raw.get("title", "")),
                    start=datetime.fromisoformat(raw["start"]),
                    end=datetime.fromisoformat(raw["end"]),
                    location=raw.get("location") or "",
                    description=raw.get("description") or "",
                ))
            except (KeyError, TypeError, ValueError) as exc:
                logger.error("Skipping malformed calendar entry %r: %s", raw, exc)

        return sorted(events, key=lambda e: e.start)


def get_calendar_reader():
    """Pick a reader based on CALENDAR_SOURCE (see module header)."""
    source = os.environ.get("CALENDAR_SOURCE", "applescript").lower()

    if source == "file":
        path = os.environ.get("CALENDAR_EVENTS_FILE")
        if not path:
            raise CalendarReadError("CALENDAR_SOURCE=file requires CALENDAR_EVENTS_FILE")
        return JsonFileCalendarReader(path)
    if source == "applescript":
        return AppleScriptCalendarReader()
    raise CalendarReadError(f"Unknown CALENDAR_SOURCE '{source}'")


# =============================================================================
# Queries
# =============================================================================
def events_on(events: list[CalendarEvent], day: date) -> list[CalendarEvent]:
    """Events that start on `day`, in start order."""
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)
    return sorted(
        (e for e in events if day_start <= e.start < day_end),
        key=lambda e: e.start,
    )


def upcoming_events(
    events: list[CalendarEvent],
    now: datetime,
    days: int = 7,
    limit: int = 10,
) -> list[dict]:
    """Events starting between `now` and `now + days`, at most `limit`.

    Each entry is the event dict plus `days_from_now` (rounded up).
    """
    horizon = now + timedelta(days=days)
    upcoming = [e for e in sorted(events, key=lambda e: e.start) if now <= e.start <= horizon]

    result = []
    for event in upcoming[:limit]:
        entry = event.to_dict()
        entry["days_from_now"] = math.ceil((event.start - now) / timedelta(days=1))
        result.append(entry)
    return result


def find_free_slots(
    events: list[CalendarEvent],
    day: date,
    workday_start: int = 9,
    workday_end: int = 17,
    minimum_slot_minutes: int = 30,
) -> FreeSlotResult:
    """Find open slots of at least `minimum_slot_minutes` in the workday.

    A cursor walks from workday start through the day's events (by start
    time).  Each gap between the cursor and the next event start becomes a
    slot; the cursor then jumps to that event's end if it is later.  The
    gap from the final cursor to workday end is checked the same way.
    Slots are clipped to the workday.

    Raises:
        ValueError: invalid workday hours or minimum slot length.
    """
    if not 0 <= workday_start < workday_end <= 24:
        raise ValueError(
            f"Workday hours must satisfy 0 <= start < end <= 24, got {workday_start}-{workday_end}"
        )
    if minimum_slot_minutes <= 0:
        raise ValueError("minimum_slot_minutes must be positive")

    day_start = datetime.combine(day, time.min)
    work_start = day_start + timedelta(hours=workday_start)
    work_end = day_start + timedelta(hours=workday_end)
    minimum = timedelta(minutes=minimum_slot_minutes)

    free_slots: list[FreeSlot] = []
    busy_periods: list[BusyPeriod] = []

    def add_slot(start: datetime, end: datetime) -> None:
        end = min(end, work_end)
        if end - start >= minimum:
            free_slots.append(FreeSlot(
                start=start.isoformat(),
                end=end.isoformat(),
                duration_minutes=round((end - start) / timedelta(minutes=1)),
            ))

    cursor = work_start
    for event in events_on(events, day):
        if event.start > cursor and cursor < work_end:
            add_slot(cursor, event.start)

        busy_periods.append(BusyPeriod(
            title=event.title or "Busy",
            start=event.start.isoformat(),
            end=event.end.isoformat(),
        ))

        if event.end > cursor:
            cursor = event.end

    if cursor < work_end:
        add_slot(cursor, work_end)

    return FreeSlotResult(date=day.isoformat(), free_slots=free_slots, busy_periods=busy_periods)


def parse_day(value: Optional[str]) -> date:
    """ISO date or datetime string → date.  None means today."""
    if not value:
        return date.today()
    return datetime.fromisoformat(value).date()
