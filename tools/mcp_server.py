# =============================================================================
# tools/mcp_server.py  —  FastMCP Tool Server (ALL tools in one place)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Defines every MCP tool the agents can call.  Each tool is a thin
#   wrapper around a core/ function: it parses arguments, calls core/,
#   converts dataclasses to dicts and bounds the size of the response.
#
# TOOL NAMING CONVENTIONS:
#   - get_* / list_*   → Read-only retrieval (safe to retry)
#   - find_* / search_* → Query with filters (safe to retry)
#   - start_* / resume_* → Workflow control (changes run state)
#   Everything else is a pure conversion.
#
# ERRORS:
#   Domain failures (bad CSV, unknown run id, calendar unavailable) come
#   back as {"error": "..."} so the agent can explain or retry.  Anything
#   else propagates to FastMCP, which reports it as a tool error.
#
# RUNNING THIS SERVER:
#   a) Standalone:  python -m tools.mcp_server
#   b) As a subprocess of an ADK agent over stdio (see agent/registry.py)
# =============================================================================

import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import datetime
from typing import Any, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from core.calendar import (
    CalendarReadError,
    events_on,
    find_free_slots as find_free_slots_in,
    get_calendar_reader,
    parse_day,
    upcoming_events,
)
from core.downsample import downsample
from core.ingestion import create_ingestion_workflow
from core.spatial_index import build_point_index, search_bounds
from core.tabular import TabularError, csv_to_records, read_csv_file, records_to_csv
from core.validation import validate_data as validate_against_schema
from core.workflow import RunStore, WorkflowError, run_summary

load_dotenv()

# =============================================================================
# Logging Setup
# =============================================================================
# Logs go to STDERR: STDOUT carries the MCP JSON protocol when the server
# runs over stdio, and anything else written there corrupts the stream.
#
#   CYAN   → incoming requests (tool name + parameters)
#   YELLOW → intermediate status
#   GREEN  → response JSON
# =============================================================================
_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [MCP] %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stderr,
)

# Longest JSON we echo to the log per response
_LOG_PREVIEW_CHARS = 2000

MAX_EVENTS = 50
MAX_SPATIAL_RESULTS = 100


def _log_request(tool_name: str, **params) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={_short(v)}" for k, v in params.items())
    logging.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def _log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logging.info(f"{_YELLOW}  → {message}{_RESET}")


def _log_response(tool_name: str, result: dict) -> dict:
    """Log the tool response as compact JSON in GREEN, then return it."""
    text = json.dumps(result, separators=(",", ":"), default=str)
    if len(text) > _LOG_PREVIEW_CHARS:
        text = text[:_LOG_PREVIEW_CHARS] + "…"
    logging.info(f"{_GREEN}  ← {tool_name} response: {text}{_RESET}")
    return result


def _short(value: Any) -> str:
    """repr() truncated, so large CSV payloads don't flood the log."""
    text = repr(value)
    return text if len(text) <= 120 else text[:117] + "..."


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    return int(raw) if raw else None


# =============================================================================
# Create the FastMCP server instance
# =============================================================================
mcp = FastMCP("agent-toolkit")

# Workflow runs live in the server process; old finished runs are evicted.
_runs = RunStore(max_finished_runs=_env_int("WORKFLOW_MAX_FINISHED_RUNS") or 100)
_ingestion = create_ingestion_workflow()


# =============================================================================
# CALENDAR TOOLS
# =============================================================================
@mcp.tool()
def list_calendar_events(start_date: Optional[str] = None) -> dict:
    """List calendar events from the local calendar, oldest first.

    WHEN TO CALL THIS: When the user asks about their schedule in general
    or over a period that is not "today" or "the next few days".

    Args:
        start_date: Only return events starting on or after this ISO date
            (e.g., "2025-01-03").  Omit to list everything available
            (a week back through a year ahead).

    Returns:
        A dict with:
          - events: Up to 50 events (title, start, end, location, description)
          - count: Total number of matching events (may exceed len(events))
    """
    _log_request("list_calendar_events", start_date=start_date)

    try:
        events = get_calendar_reader().get_events()
    except CalendarReadError as exc:
        _log_status(f"Calendar read failed: {exc}")
        return _log_response("list_calendar_events", {"error": str(exc)})

    if start_date:
        try:
            threshold = datetime.fromisoformat(start_date)
        except ValueError as exc:
            _log_status(f"Bad start_date: {exc}")
            return _log_response("list_calendar_events", {"error": f"Invalid start_date: {exc}", "events": [], "count": 0})
        events = [e for e in events if e.start >= threshold]
    _log_status(f"Found {len(events)} calendar events")

    return _log_response("list_calendar_events", {
        "events": [e.to_dict() for e in events[:MAX_EVENTS]],
        "count": len(events),
    })


@mcp.tool()
def get_today_events() -> dict:
    """Get every calendar event that starts today.

    Returns:
        A dict with:
          - events: Today's events in start order
          - count: Number of events
    """
    _log_request("get_today_events")

    try:
        events = get_calendar_reader().get_events()
    except CalendarReadError as exc:
        _log_status(f"Calendar read failed: {exc}")
        return _log_response("get_today_events", {"error": str(exc), "events": [], "count": 0})

    today = events_on(events, parse_day(None))
    return _log_response("get_today_events", {
        "events": [e.to_dict() for e in today[:MAX_EVENTS]],
        "count": len(today),
    })


@mcp.tool()
def get_upcoming_events(days: int = 7, limit: int = 10) -> dict:
    """Get events starting between now and `days` days from now.

    Args:
        days: How many days to look ahead (default 7).
        limit: Maximum number of events to return (default 10, max 50).

    Returns:
        A dict with:
          - events: Each event plus days_from_now (rounded up)
          - count: Number of events returned
    """
    _log_request("get_upcoming_events", days=days, limit=limit)

    try:
        events = get_calendar_reader().get_events()
    except CalendarReadError as exc:
        _log_status(f"Calendar read failed: {exc}")
        return _log_response("get_upcoming_events", {"error": str(exc), "events": [], "count": 0})

    upcoming = upcoming_events(events, datetime.now(), days=days, limit=min(limit, MAX_EVENTS))
    return _log_response("get_upcoming_events", {"events": upcoming, "count": len(upcoming)})


@mcp.tool()
def find_free_slots(
    date: str,
    workday_start: int = 9,
    workday_end: int = 17,
    minimum_slot_minutes: int = 30,
) -> dict:
    """Find open time slots on a given day for scheduling.

    WHEN TO CALL THIS: Before proposing a meeting time.  Never suggest a
    time without checking it here first.

    Args:
        date: The day to check (ISO format, e.g., "2025-01-03").
        workday_start: First working hour, 0-23 (default 9).
        workday_end: Hour the workday ends, 1-24 (default 17).
        minimum_slot_minutes: Ignore gaps shorter than this (default 30).

    Returns:
        A dict with:
          - date: The day checked
          - free_slots: [{start, end, duration_minutes}]
          - busy_periods: [{title, start, end}] for events on that day
    """
    _log_request("find_free_slots", date=date, workday_start=workday_start,
                 workday_end=workday_end, minimum_slot_minutes=minimum_slot_minutes)

    try:
        events = get_calendar_reader().get_events()
        result = find_free_slots_in(
            events,
            parse_day(date),
            workday_start=workday_start,
            workday_end=workday_end,
            minimum_slot_minutes=minimum_slot_minutes,
        )
    except (CalendarReadError, ValueError) as exc:
        _log_status(f"Free slot search failed: {exc}")
        return _log_response("find_free_slots", {"error": str(exc), "free_slots": [], "busy_periods": []})

    _log_status(f"Found {len(result.free_slots)} free slots, {len(result.busy_periods)} busy periods")
    return _log_response("find_free_slots", asdict(result))


# =============================================================================
# CSV / JSON TOOLS
# =============================================================================
@mcp.tool()
def csv_to_json(
    csv_data: Optional[str] = None,
    file_path: Optional[str] = None,
    delimiter: str = ",",
    columns: bool = True,
    trim: bool = True,
    skip_empty_lines: bool = True,
) -> dict:
    """Convert CSV to JSON records.  Accepts raw CSV text or a file path.

    Args:
        csv_data: Raw CSV string.
        file_path: Absolute path to a CSV file (takes precedence over csv_data).
        delimiter: Field separator (default ",").
        columns: Treat the first row as headers and return objects (default True).
        trim: Strip whitespace around values (default True).
        skip_empty_lines: Skip blank lines (default True).

    Returns:
        A dict with:
          - data: Parsed records
          - error: Present only when parsing failed (data is then [])
    """
    _log_request("csv_to_json", csv_data=csv_data, file_path=file_path, delimiter=delimiter)

    options = {
        "delimiter": delimiter,
        "columns": columns,
        "trim": trim,
        "skip_empty_lines": skip_empty_lines,
        "max_rows": _env_int("CSV_MAX_ROWS"),
    }
    try:
        if file_path:
            records = read_csv_file(file_path, **options)
        else:
            records = csv_to_records(csv_data, **options)
    except TabularError as exc:
        _log_status(f"CSV parse failed: {exc}")
        return _log_response("csv_to_json", {"data": [], "error": str(exc)})

    _log_status(f"Converted {len(records)} records")
    return _log_response("csv_to_json", {"data": records})


@mcp.tool()
def json_to_csv(
    data: list[dict[str, Any]],
    delimiter: str = ",",
    include_headers: bool = True,
) -> dict:
    """Convert a list of JSON objects to CSV text.

    Nested objects and arrays are written as JSON inside the cell.

    Args:
        data: The records to convert.
        delimiter: Field separator (default ",").
        include_headers: Emit a header row (default True).

    Returns:
        A dict with:
          - csv: The CSV text ("" for no records)
          - error: Present only when conversion failed
    """
    _log_request("json_to_csv", records=len(data), delimiter=delimiter)

    try:
        csv_text = records_to_csv(
            data,
            delimiter=delimiter,
            include_headers=include_headers,
            max_rows=_env_int("CSV_MAX_ROWS"),
        )
    except TabularError as exc:
        _log_status(f"CSV export failed: {exc}")
        return _log_response("json_to_csv", {"csv": "", "error": str(exc)})

    return _log_response("json_to_csv", {"csv": csv_text})


# =============================================================================
# VALIDATION
# =============================================================================
@mcp.tool()
def validate_data(data: Any, schema: dict[str, Any]) -> dict:
    """Validate data against a schema definition you provide.

    Schema format: {"type": "string" | "number" | "boolean" | "object" |
    "array" | "enum", "optional": bool, ...}.  Strings accept minLength,
    maxLength, email, url; numbers accept min, max, int; objects take
    "properties" (name → schema); arrays take "items"; enums take "values".

    Args:
        data: The value to validate.
        schema: The schema definition.

    Returns:
        A dict with:
          - valid: True or False
          - errors: "path: message" strings when invalid
          - cleaned_data: The data with unknown object keys removed (when valid)
    """
    _log_request("validate_data", schema=schema)

    result = validate_against_schema(data, schema, max_errors=_env_int("VALIDATOR_MAX_ERRORS"))
    _log_status(f"valid={result.valid}, errors={len(result.errors)}")
    return _log_response("validate_data", asdict(result))


# =============================================================================
# CHART DATA TOOLS
# =============================================================================
@mcp.tool()
def downsample_series(values: list[float], target: int, algorithm: str = "lttb") -> dict:
    """Downsample a numeric series for charting.

    WHEN TO CALL THIS: Before charting more than a few hundred points.

    Args:
        values: The numeric series.
        target: Desired number of points (at least 2).
        algorithm: "lttb" (shape-preserving, exactly `target` points),
            "min-max" (keeps peaks, up to 2x target), or "m4" (keeps bucket
            edges and extremes, up to 4x target).

    Returns:
        A dict with:
          - indices: Positions kept from the original series
          - values: The kept values
          - original_length, target, algorithm
    """
    _log_request("downsample_series", length=len(values), target=target, algorithm=algorithm)

    try:
        result = downsample(values, target, algorithm)
    except ValueError as exc:
        return _log_response("downsample_series", {"error": str(exc)})

    _log_status(f"{result.original_length} → {len(result.indices)} points ({result.algorithm})")
    return _log_response("downsample_series", asdict(result))


@mcp.tool()
def build_spatial_index(points: list[dict[str, Any]]) -> dict:
    """Build a spatial index over map points and return it as JSON.

    Keep the returned tree_json and pass it to search_spatial_index.

    Args:
        points: [{"id": str, "lat": float, "lng": float, "data": {...}?}]

    Returns:
        A dict with:
          - tree_json: Serialized R-tree
          - count: Number of indexed points
    """
    _log_request("build_spatial_index", points=len(points))

    try:
        index = build_point_index(points)
    except (KeyError, TypeError, ValueError) as exc:
        return _log_response("build_spatial_index", {"error": f"Invalid points: {exc}"})

    return _log_response("build_spatial_index", {"tree_json": index.to_json(), "count": len(index)})


@mcp.tool()
def search_spatial_index(
    tree_json: dict[str, Any],
    south_west: list[float],
    north_east: list[float],
) -> dict:
    """Find indexed points inside a bounding box.

    Args:
        tree_json: The tree returned by build_spatial_index.
        south_west: [lat, lng] of the south-west corner.
        north_east: [lat, lng] of the north-east corner.

    Returns:
        A dict with:
          - results: Up to 100 items {minX, minY, maxX, maxY, id, data?}
          - count: Total number of matches
    """
    _log_request("search_spatial_index", south_west=south_west, north_east=north_east)

    if len(south_west) != 2 or len(north_east) != 2:
        return _log_response("search_spatial_index", {"error": "Corners must be [lat, lng] pairs"})
    try:
        matches = search_bounds(tree_json, tuple(south_west), tuple(north_east))
    except ValueError as exc:
        return _log_response("search_spatial_index", {"error": str(exc)})

    return _log_response("search_spatial_index", {
        "results": [m.to_dict() for m in matches[:MAX_SPATIAL_RESULTS]],
        "count": len(matches),
    })


# =============================================================================
# WORKFLOW TOOLS (human-in-the-loop ingestion)
# =============================================================================
@mcp.tool()
def start_data_ingestion(
    csv_data: Optional[str] = None,
    file_path: Optional[str] = None,
    schema: Optional[dict[str, Any]] = None,
    delimiter: str = ",",
) -> dict:
    """Start the data-ingestion workflow: parse, validate, then wait for approval.

    WHEN TO CALL THIS: When the user wants to import a CSV.  The run stops
    at the human-approval step; show the preview to the user and call
    resume_data_ingestion with their decision.

    Args:
        csv_data: Raw CSV text.
        file_path: Path to a CSV file (takes precedence).
        schema: Optional schema (validate_data format) applied to each row,
            usually {"type": "object", "properties": {...}}.
        delimiter: Field separator (default ",").

    Returns:
        A run summary: run_id, status ("suspended" when waiting for
        approval, "failed" on bad input), suspend_payload (preview, counts),
        error.
    """
    _log_request("start_data_ingestion", csv_data=csv_data, file_path=file_path, schema=schema)

    run = _ingestion.start({
        "csv_data": csv_data,
        "file_path": file_path,
        "schema": schema,
        "delimiter": delimiter,
        "max_rows": _env_int("CSV_MAX_ROWS"),
    })
    _runs.save(run)
    _log_status(f"Run {run.run_id} is {run.status.value}")
    return _log_response("start_data_ingestion", run_summary(run))


@mcp.tool()
def resume_data_ingestion(
    run_id: str,
    approved: bool,
    approved_by: Optional[str] = None,
    feedback: Optional[str] = None,
    rejected_rows: Optional[list[int]] = None,
) -> dict:
    """Resume a suspended ingestion run with the reviewer's decision.

    Args:
        run_id: The id returned by start_data_ingestion.
        approved: Whether the import is approved.
        approved_by: Who made the decision.
        feedback: Free-text reviewer notes (included in the report).
        rejected_rows: Preview-order indices of valid rows to drop.

    Returns:
        The run summary; on success `output` holds accepted_count, records,
        json, csv and a markdown report.
    """
    _log_request("resume_data_ingestion", run_id=run_id, approved=approved,
                 approved_by=approved_by, rejected_rows=rejected_rows)

    try:
        run = _ingestion.resume(_runs.get(run_id), {
            "approved": approved,
            "approved_by": approved_by,
            "feedback": feedback,
            "rejected_rows": rejected_rows or [],
        })
        _runs.save(run)
    except WorkflowError as exc:
        return _log_response("resume_data_ingestion", {"error": str(exc)})

    _log_status(f"Run {run.run_id} is {run.status.value}")
    return _log_response("resume_data_ingestion", run_summary(run))


@mcp.tool()
def get_workflow_run(run_id: str) -> dict:
    """Look up the current state of a workflow run.

    Args:
        run_id: The id returned by start_data_ingestion.

    Returns:
        The run summary, or an error if the id is unknown.
    """
    _log_request("get_workflow_run", run_id=run_id)

    try:
        run = _runs.get(run_id)
    except WorkflowError as exc:
        return _log_response("get_workflow_run", {"error": str(exc)})
    return _log_response("get_workflow_run", run_summary(run))


# Names the agent registry is allowed to bind to.
TOOL_NAMES = (
    "list_calendar_events",
    "get_today_events",
    "get_upcoming_events",
    "find_free_slots",
    "csv_to_json",
    "json_to_csv",
    "validate_data",
    "downsample_series",
    "build_spatial_index",
    "search_spatial_index",
    "start_data_ingestion",
    "resume_data_ingestion",
    "get_workflow_run",
)


# =============================================================================
# Server entry point
# =============================================================================
if __name__ == "__main__":
    mcp.run()
