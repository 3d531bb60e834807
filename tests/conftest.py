"""
Shared fixtures for the toolkit tests.
"""
import json
from datetime import datetime

import pytest

from core.models import CalendarEvent


# ============================================================
# Calendar fixtures
# ============================================================

@pytest.fixture
def workday_events():
    """Three events on 2025-01-03 plus one on the next day."""
    return [
        CalendarEvent("Planning", datetime(2025, 1, 3, 14, 0), datetime(2025, 1, 3, 15, 30)),
        CalendarEvent("Standup", datetime(2025, 1, 3, 10, 0), datetime(2025, 1, 3, 11, 0)),
        CalendarEvent("Review", datetime(2025, 1, 3, 11, 15), datetime(2025, 1, 3, 12, 0), location="Room 4"),
        CalendarEvent("Offsite", datetime(2025, 1, 4, 9, 0), datetime(2025, 1, 4, 17, 0)),
    ]


@pytest.fixture
def calendar_file(tmp_path, workday_events, monkeypatch):
    """Point the calendar tools at a JSON file holding workday_events."""
    path = tmp_path / "events.json"
    path.write_text(json.dumps([e.to_dict() for e in workday_events]), encoding="utf-8")
    monkeypatch.setenv("CALENDAR_SOURCE", "file")
    monkeypatch.setenv("CALENDAR_EVENTS_FILE", str(path))
    return path


# ============================================================
# MCP helpers
# ============================================================

@pytest.fixture
def call_tool():
    """Call a tool on the in-process FastMCP server and decode its JSON reply."""
    from fastmcp import Client

    from tools.mcp_server import mcp

    async def _call(name: str, arguments: dict | None = None) -> dict:
        async with Client(mcp) as client:
            result = await client.call_tool(name, arguments or {})
        return json.loads(result.content[0].text)

    return _call
