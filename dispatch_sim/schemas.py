from __future__ import annotations

"""
File: dispatch_sim/schemas.py
Purpose: Pydantic models for command payloads and the read model.
Key responsibilities:
- Validate incoming assign/unassign payloads.
- Define the state snapshot contract served to the presentation layer.
Key entrypoints:
- AssignRequest, UnassignRequest, StateResponse
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional


UnitType = Literal["LF", "DLK", "RW", "ELW", "RTW"]
UnitStatus = Literal["idle", "traveling_to_scene", "on_scene", "traveling_back"]
IncidentStatus = Literal["open", "in_progress", "resolved", "escalated"]


class AssignRequest(BaseModel):
    """Request body for dispatching one unit of a type."""
    unit_type: UnitType


class UnassignRequest(BaseModel):
    """Request body for withdrawing an arrived unit."""
    unit_type: UnitType
    unit_id: str = Field(min_length=1)


class UnitView(BaseModel):
    """Unit row of the read model."""
    id: str
    type: UnitType
    status: UnitStatus
    remaining_commitment_ms: float = Field(ge=0)
    incident_id: Optional[str] = None
    phase: Optional[Literal["to_scene", "at_scene", "returning"]] = None


class IncidentView(BaseModel):
    """Incident row of the read model."""
    id: str
    name: str
    requirements: dict[str, int]
    assigned: dict[str, list[str]]
    assigned_counts: dict[str, int]
    status: IncidentStatus
    progress: float = Field(ge=0, le=1)
    deadline_remaining_ms: float = Field(ge=0)
    created_at: float
    started_at: Optional[float] = None
    last_message: str = ""
    outcome: Optional[Literal["on_time", "late", "missed"]] = None
    served_by: list[str] = Field(default_factory=list)


class StateResponse(BaseModel):
    """Full snapshot returned by /api/state and every command endpoint."""
    running: bool
    elapsed_ms: float
    score: int
    open_count: int
    available_by_type: dict[str, int]
    units: list[UnitView]
    incidents: list[IncidentView]
    metrics: dict[str, float]
