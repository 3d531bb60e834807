# =============================================================================
# core/models.py  —  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the shape of every piece of information that flows
# between core/ and the tool layer.  They carry no behavior beyond simple
# conversions; the tool layer turns them into dicts with asdict() before
# sending them over MCP.
#
# DESIGN PRINCIPLE — "No Phantom Fields":
#   If a field exists in a model, the agent will reason about it.
#   Anything the agent does not need stays out of the model.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


# -----------------------------------------------------------------------------
# DownsampleResult — output of core/downsample.py
# -----------------------------------------------------------------------------
@dataclass
class DownsampleResult:
    """A reduced numeric series plus the indices it was sampled from."""

    indices: list[int]                 # Positions in the original series (ascending)
    values: list[float]                # values[i] == original[indices[i]]
    original_length: int
    target: int                        # Requested number of samples
    algorithm: str = "lttb"            # "lttb", "min-max", "m4" or "uniform"


# -----------------------------------------------------------------------------
# Calendar models
# -----------------------------------------------------------------------------
@dataclass
class CalendarEvent:
    """One calendar entry.  Times are naive local datetimes."""

    title: str
    start: datetime
    end: datetime
    location: str = ""
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "location": self.location,
            "description": self.description,
        }


@dataclass
class FreeSlot:
    """An open block of time inside the workday."""

    start: str                         # ISO timestamp
    end: str                           # ISO timestamp
    duration_minutes: int


@dataclass
class BusyPeriod:
    """An event that occupies time on the requested day."""

    title: str
    start: str
    end: str


@dataclass
class FreeSlotResult:
    """Output of find_free_slots: the open slots and what blocks the rest."""

    date: str                          # "2025-01-03"
    free_slots: list[FreeSlot] = field(default_factory=list)
    busy_periods: list[BusyPeriod] = field(default_factory=list)


# -----------------------------------------------------------------------------
# SpatialItem — one entry stored in the R-tree
# -----------------------------------------------------------------------------
# Serialised with RBush key names (minX, minY, ...) so index JSON stays
# compatible with the JavaScript charting front-ends that consume it.
# -----------------------------------------------------------------------------
@dataclass
class SpatialItem:
    """A bounding box with an identifier and optional payload."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    id: str
    data: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict:
        item = {
            "minX": self.min_x,
            "minY": self.min_y,
            "maxX": self.max_x,
            "maxY": self.max_y,
            "id": self.id,
        }
        if self.data is not None:
            item["data"] = self.data
        return item

    @classmethod
    def from_dict(cls, raw: dict) -> "SpatialItem":
        return cls(
            min_x=float(raw["minX"]),
            min_y=float(raw["minY"]),
            max_x=float(raw["maxX"]),
            max_y=float(raw["maxY"]),
            id=str(raw["id"]),
            data=raw.get("data"),
        )


# -----------------------------------------------------------------------------
# ValidationResult — output of core/validation.py
# -----------------------------------------------------------------------------
@dataclass
class ValidationResult:
    """Outcome of validating a value against a schema definition."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    cleaned_data: Any = None           # Only set when valid
