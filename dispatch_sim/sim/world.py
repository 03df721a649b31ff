from __future__ import annotations

"""
File: dispatch_sim/sim/world.py
Purpose: Station roster, incident catalog and incident generation.
Key responsibilities:
- Build the fixed start roster of units.
- Spawn incidents from the template catalog on a fixed interval.
"""

from dataclasses import dataclass
import random

from dispatch_sim.settings import Settings
from dispatch_sim.sim.entities import Incident, SimulationState, Unit


UNIT_TYPES: dict[str, str] = {
    "LF": "LF (fire engine)",
    "DLK": "DLK (aerial ladder)",
    "RW": "RW (rescue truck)",
    "ELW": "ELW (command vehicle)",
    "RTW": "RTW (ambulance)",
}

START_UNITS: list[tuple[str, str]] = [
    ("LF-1", "LF"),
    ("LF-2", "LF"),
    ("DLK-1", "DLK"),
    ("RW-1", "RW"),
    ("ELW-1", "ELW"),
    ("RTW-1", "RTW"),
    ("RTW-2", "RTW"),
]


@dataclass(frozen=True)
class IncidentTemplate:
    """Catalog entry an incident is materialized from."""
    name: str
    requirements: dict[str, int]


INCIDENT_TEMPLATES: list[IncidentTemplate] = [
    IncidentTemplate("Residential fire", {"LF": 2, "DLK": 1, "ELW": 1}),
    IncidentTemplate("Traffic collision, person trapped", {"LF": 1, "RW": 1, "RTW": 1, "ELW": 1}),
    IncidentTemplate("Small kitchen fire", {"LF": 1, "RTW": 1}),
    IncidentTemplate("Suspected CO exposure", {"LF": 1, "RTW": 1, "ELW": 1}),
    IncidentTemplate("Water damage", {"LF": 1}),
    IncidentTemplate("Fire alarm activation", {"LF": 1, "ELW": 1}),
]


def build_roster(units: list[tuple[str, str]] | None = None) -> dict[str, Unit]:
    """Return the unit arena in roster order, every unit idle."""
    roster = START_UNITS if units is None else units
    pool: dict[str, Unit] = {}
    for unit_id, unit_type in roster:
        if unit_type not in UNIT_TYPES:
            raise ValueError(f"invalid unit type: {unit_type}")
        if unit_id in pool:
            raise ValueError(f"duplicate unit id: {unit_id}")
        pool[unit_id] = Unit(id=unit_id, type=unit_type)
    return pool


class IncidentGenerator:
    """Periodically materialize incidents, subject to the open-incident cap."""
    def __init__(
        self,
        settings: Settings,
        rng: random.Random,
        templates: list[IncidentTemplate] | None = None,
    ) -> None:
        self.settings = settings
        self.rng = rng
        self.templates = INCIDENT_TEMPLATES if templates is None else templates
        if not self.templates:
            raise ValueError("incident catalog must not be empty")

    def maybe_spawn(self, state: SimulationState, elapsed: float) -> Incident | None:
        """Accumulate elapsed time and spawn once the interval is reached."""
        state.spawn_accumulator += elapsed
        if state.spawn_accumulator < self.settings.spawn_every_ms:
            return None
        state.spawn_accumulator = 0.0
        return self.spawn(state)

    def spawn(self, state: SimulationState) -> Incident | None:
        """Create and append one incident now; skipped silently at capacity."""
        if state.open_count() >= self.settings.max_open_incidents:
            return None

        template = self.templates[self.rng.randrange(len(self.templates))]
        jitter = 0
        if self.settings.deadline_jitter_ms > 0:
            jitter = self.rng.randrange(self.settings.deadline_jitter_ms)
        created_at = state.now
        deadline = (
            created_at
            + self.settings.base_resolve_ms
            + self.settings.deadline_grace_ms
            + jitter
        )
        incident = Incident(
            id=f"INC-{state.next_incident_seq:04d}",
            template_name=template.name,
            requirements=dict(template.requirements),
            assigned={unit_type: () for unit_type in template.requirements},
            created_at=created_at,
            deadline=deadline,
            last_update=created_at,
        )
        state.next_incident_seq += 1
        state.incidents[incident.id] = incident
        return incident
