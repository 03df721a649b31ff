from __future__ import annotations

"""
File: dispatch_sim/sim/incidents.py
Purpose: Incident state machine as pure transition functions.
Key responsibilities:
- Attach arrived units and start work once requirements are met.
- Escalate open incidents past their deadline.
- Accrue progress for in-progress incidents and resolve them.
"""

from dataclasses import replace

from dispatch_sim.sim.entities import Incident, Outcome

# Absorbs float drift from summing many small tick deltas.
_PROGRESS_EPSILON = 1e-9


def requirements_met(incident: Incident) -> bool:
    """True when every required type has at least the required count attached."""
    return all(
        len(incident.assigned.get(unit_type, ())) >= need
        for unit_type, need in incident.requirements.items()
    )


def attach_unit(incident: Incident, unit_id: str, unit_type: str, now: float) -> Incident:
    """Record an arrived unit; open incidents start work once fully staffed.

    Terminal incidents are returned unchanged.
    """
    if not incident.is_active:
        return incident
    assigned = dict(incident.assigned)
    assigned[unit_type] = assigned.get(unit_type, ()) + (unit_id,)
    updated = replace(
        incident,
        assigned=assigned,
        last_update=now,
        last_message=f"{unit_id} arrived ({unit_type}).",
    )
    if updated.status == "open" and requirements_met(updated):
        updated = replace(updated, status="in_progress", started_at=now)
    return updated


def detach_unit(incident: Incident, unit_id: str, unit_type: str, message: str | None = None) -> Incident:
    """Remove a unit from the roster; only allowed while the incident is open.

    Returns the same object when nothing changed.
    """
    if incident.status != "open":
        return incident
    current = incident.assigned.get(unit_type, ())
    if unit_id not in current:
        return incident
    assigned = dict(incident.assigned)
    assigned[unit_type] = tuple(uid for uid in current if uid != unit_id)
    return replace(
        incident,
        assigned=assigned,
        last_message=message or f"{unit_id} withdrawn.",
    )


def expected_end(incident: Incident, base_resolve_ms: float) -> float | None:
    """Simulated time at which an in-progress incident reaches full progress."""
    if incident.status != "in_progress":
        return None
    return incident.last_update + (1.0 - incident.progress) * base_resolve_ms


def _close(incident: Incident, **changes) -> Incident:
    """Terminal transition: freeze the roster into ``served_by``."""
    return replace(
        incident,
        assigned={unit_type: () for unit_type in incident.assigned},
        served_by=tuple(incident.attached_unit_ids()),
        **changes,
    )


def evaluate(incident: Incident, now: float, base_resolve_ms: float) -> tuple[Incident, Outcome | None]:
    """Advance one incident to ``now``.

    Returns the updated incident and the outcome of a terminal transition
    made during this call, if any.
    """
    if incident.is_terminal:
        return incident, None

    # In-progress incidents never escalate; they can only resolve late.
    if now > incident.deadline and incident.status == "open":
        escalated = _close(
            incident,
            status="escalated",
            outcome="missed",
            last_update=now,
            last_message="Incident escalated (work started too late).",
        )
        return escalated, "missed"

    if incident.status == "in_progress":
        dt = max(0.0, now - incident.last_update)
        progress = min(1.0, incident.progress + dt / base_resolve_ms)
        if progress >= 1.0 - _PROGRESS_EPSILON:
            outcome: Outcome = "on_time" if now <= incident.deadline else "late"
            resolved = _close(
                incident,
                status="resolved",
                progress=1.0,
                last_update=now,
                resolved_at=now,
                outcome=outcome,
                last_message="Resolved on time." if outcome == "on_time" else "Resolved late.",
            )
            return resolved, outcome
        return replace(incident, progress=progress, last_update=now), None

    return replace(incident, last_update=now), None
