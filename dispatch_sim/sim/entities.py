from __future__ import annotations

"""
File: dispatch_sim/sim/entities.py
Purpose: Core records and type aliases for simulation state.
Key responsibilities:
- Immutable Unit/Incident records updated via dataclasses.replace.
- The SimulationState aggregate that owns the unit and incident arenas.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional


UnitType = Literal["LF", "DLK", "RW", "ELW", "RTW"]
UnitStatus = Literal["idle", "traveling_to_scene", "on_scene", "traveling_back"]
AssignmentPhase = Literal["to_scene", "at_scene", "returning"]
IncidentStatus = Literal["open", "in_progress", "resolved", "escalated"]
Outcome = Literal["on_time", "late", "missed"]

ACTIVE_STATUSES: frozenset[str] = frozenset({"open", "in_progress"})
TERMINAL_STATUSES: frozenset[str] = frozenset({"resolved", "escalated"})


@dataclass(frozen=True)
class UnitAssignment:
    """Reference from a committed unit to the incident it serves."""
    incident_id: str
    phase: AssignmentPhase


@dataclass(frozen=True)
class Unit:
    """Response unit tracked through its commitment lifecycle."""
    id: str
    type: UnitType
    status: UnitStatus = "idle"
    commit_until: Optional[float] = None
    current_assignment: Optional[UnitAssignment] = None

    @property
    def is_idle(self) -> bool:
        return self.status == "idle"


@dataclass(frozen=True)
class Incident:
    """Incident definition and lifecycle tracking.

    ``assigned`` holds unit ids that have arrived on scene, per type, in
    arrival order. Dispatched units that are still traveling are not listed.
    On a terminal transition the roster moves to ``served_by`` so a unit id
    is listed by at most one incident across the whole set.
    """
    id: str
    template_name: str
    requirements: dict[str, int]
    assigned: dict[str, tuple[str, ...]]
    created_at: float
    deadline: float
    status: IncidentStatus = "open"
    started_at: Optional[float] = None
    resolved_at: Optional[float] = None
    progress: float = 0.0
    last_update: float = 0.0
    last_message: str = ""
    outcome: Optional[Outcome] = None
    served_by: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def assigned_counts(self) -> dict[str, int]:
        return {unit_type: len(self.assigned.get(unit_type, ())) for unit_type in self.requirements}

    def attached_unit_ids(self) -> list[str]:
        return [unit_id for ids in self.assigned.values() for unit_id in ids]


@dataclass
class SimulationState:
    """Container for all simulation entities and counters.

    Units and incidents are arenas keyed by id; dict order is roster order
    and creation order respectively.
    """
    units: dict[str, Unit]
    incidents: dict[str, Incident] = field(default_factory=dict)
    now: float = 0.0
    spawn_accumulator: float = 0.0
    next_incident_seq: int = 1

    def open_count(self) -> int:
        """Number of incidents that are open or in progress."""
        return sum(1 for incident in self.incidents.values() if incident.is_active)
