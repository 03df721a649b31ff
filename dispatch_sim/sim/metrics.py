from __future__ import annotations

"""
File: dispatch_sim/sim/metrics.py
Purpose: Compute aggregate outcome metrics from incident and unit state.
Key responsibilities:
- Counts per outcome, on-time rate, unit utilisation.
"""

from dispatch_sim.sim.entities import Incident, Unit


def compute_metrics(incidents: list[Incident], units: list[Unit]) -> dict[str, float | int]:
    """Compute session-level metrics used by the status bar and API."""
    total_incidents = len(incidents)
    resolved_on_time = sum(1 for i in incidents if i.outcome == "on_time")
    resolved_late = sum(1 for i in incidents if i.outcome == "late")
    escalated = sum(1 for i in incidents if i.outcome == "missed")
    active = sum(1 for i in incidents if i.is_active)
    finished = resolved_on_time + resolved_late + escalated
    on_time_rate = (resolved_on_time / finished * 100.0) if finished else 0.0

    idle_units = sum(1 for u in units if u.is_idle)

    return {
        "total_incidents": total_incidents,
        "active_incidents": active,
        "resolved_on_time": resolved_on_time,
        "resolved_late": resolved_late,
        "escalated": escalated,
        "on_time_rate": round(on_time_rate, 6),
        "idle_units": idle_units,
        "busy_units": len(units) - idle_units,
        "total_units": len(units),
    }
