from __future__ import annotations

"""
File: dispatch_sim/sim/pool.py
Purpose: Unit pool queries and commitment transitions.
Key responsibilities:
- Answer availability queries by unit type.
- Reserve/release units while enforcing the single-assignment rule.
- Release units whose commitment window has elapsed.
"""

from dataclasses import replace

from dispatch_sim.sim.entities import Unit, UnitAssignment, UnitStatus


class UnitBusyError(ValueError):
    """Raised when a unit that is not idle would be reserved again."""


def find_available(units: dict[str, Unit], unit_type: str) -> Unit | None:
    """Return the first idle unit of the type in roster order."""
    for unit in units.values():
        if unit.type == unit_type and unit.is_idle:
            return unit
    return None


def available_by_type(units: dict[str, Unit], unit_types: list[str]) -> dict[str, int]:
    """Count idle units for each type."""
    counts = {unit_type: 0 for unit_type in unit_types}
    for unit in units.values():
        if unit.is_idle:
            counts[unit.type] = counts.get(unit.type, 0) + 1
    return counts


def reserve(unit: Unit, until: float, assignment: UnitAssignment | None) -> Unit:
    """Commit an idle unit to travel toward an incident."""
    if not unit.is_idle:
        raise UnitBusyError(f"unit {unit.id} is already committed")
    return replace(
        unit,
        status="traveling_to_scene",
        commit_until=until,
        current_assignment=assignment,
    )


def recommit(unit: Unit, until: float, status: UnitStatus, assignment: UnitAssignment | None) -> Unit:
    """Move an already committed unit into its next phase."""
    return replace(unit, status=status, commit_until=until, current_assignment=assignment)


def release(unit: Unit) -> Unit:
    return replace(unit, status="idle", commit_until=None, current_assignment=None)


def release_expired(units: dict[str, Unit], now: float, strict: bool = False) -> list[Unit]:
    """Return every committed unit to idle once ``commit_until <= now``.

    With ``strict`` only windows that ended before ``now`` are released; a
    unit due exactly at ``now`` (an arrival firing then) stays committed.
    Mutates the arena in place and returns the released units as they were
    just before release, so callers can see the assignment they left.
    """
    released: list[Unit] = []
    for unit_id, unit in list(units.items()):
        if unit.is_idle or unit.commit_until is None:
            continue
        expired = unit.commit_until < now if strict else unit.commit_until <= now
        if expired:
            units[unit_id] = release(unit)
            released.append(unit)
    return released


def extend(unit: Unit, until: float) -> Unit:
    """Keep an on-scene unit busy at least until ``until``.

    A unit already shown on its return leg goes back on scene.
    """
    if unit.status not in ("on_scene", "traveling_back") or unit.commit_until is None:
        return unit
    if unit.commit_until >= until:
        return unit
    assignment = unit.current_assignment
    if assignment is not None:
        assignment = replace(assignment, phase="at_scene")
    return recommit(unit, until, "on_scene", assignment)


def advance_phases(units: dict[str, Unit], now: float, travel_ms: float) -> None:
    """Show on-scene units as traveling back once only the return leg remains."""
    for unit_id, unit in list(units.items()):
        if unit.status != "on_scene" or unit.commit_until is None:
            continue
        if unit.commit_until - travel_ms <= now:
            assignment = unit.current_assignment
            if assignment is not None:
                assignment = replace(assignment, phase="returning")
            units[unit_id] = recommit(unit, unit.commit_until, "traveling_back", assignment)
