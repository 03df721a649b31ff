from __future__ import annotations

"""
File: dispatch_sim/sim/engine.py
Purpose: Dispatch simulation engine: tick loop wiring and assignment protocol.
Key responsibilities:
- Advance clock, arrivals, unit releases, spawning and incidents each tick.
- Validate and execute assign/unassign commands as silent no-ops on failure.
- Book score events and emit structured events on state changes.
- Expose a pull-based snapshot for the presentation layer.
"""

import logging
import random
from typing import Any, Callable

from dispatch_sim.settings import Settings
from dispatch_sim.sim import incidents as incident_fsm
from dispatch_sim.sim import pool
from dispatch_sim.sim.clock import SimClock
from dispatch_sim.sim.effects import ArrivalEffect, EffectQueue
from dispatch_sim.sim.entities import Incident, Outcome, SimulationState, UnitAssignment
from dispatch_sim.sim.metrics import compute_metrics
from dispatch_sim.sim.scoring import ScoreBoard
from dispatch_sim.sim.world import (
    INCIDENT_TEMPLATES,
    UNIT_TYPES,
    IncidentGenerator,
    IncidentTemplate,
    build_roster,
)

logger = logging.getLogger("dispatch-sim")


class DispatchEngine:
    """Simulation engine that owns the state aggregate and advances it per tick."""
    def __init__(
        self,
        settings: Settings,
        event_sink: Callable[[dict], None] | None = None,
        roster: list[tuple[str, str]] | None = None,
        templates: list[IncidentTemplate] | None = None,
    ) -> None:
        """Initialize the engine with simulation parameters."""
        self.settings = settings
        self.event_sink = event_sink or (lambda _: None)
        self.roster = roster
        self.templates = INCIDENT_TEMPLATES if templates is None else templates

        self.clock = SimClock()
        self.effects = EffectQueue()
        self.score = ScoreBoard(settings)
        self.rng = random.Random(settings.seed)
        self.generator = IncidentGenerator(settings, self.rng, self.templates)
        self.state = SimulationState(units=build_roster(roster))

    # --- Commands ---

    def start(self) -> None:
        self.clock.start()
        logger.info("simulation started t=%.0f", self.state.now)

    def pause(self) -> None:
        self.clock.pause()
        logger.info("simulation paused t=%.0f", self.state.now)

    def toggle(self) -> bool:
        running = self.clock.toggle()
        logger.info("simulation %s t=%.0f", "started" if running else "paused", self.state.now)
        return running

    def reset(self) -> None:
        """Stop and restore the initial roster, empty incident set and zero score."""
        self.clock.reset()
        self.effects.clear()
        self.score.reset()
        self.rng.seed(self.settings.seed)
        self.state = SimulationState(units=build_roster(self.roster))
        logger.info("simulation reset")

    def assign(self, incident_id: str, unit_type: str) -> bool:
        """Dispatch one idle unit of ``unit_type`` to an active incident."""
        now = self.state.now
        incident = self.state.incidents.get(incident_id)
        if incident is None or not incident.is_active:
            logger.debug("assign ignored: incident %s not active", incident_id)
            return False

        unit = pool.find_available(self.state.units, unit_type)
        if unit is None:
            logger.debug("assign ignored: no idle %s for %s", unit_type, incident_id)
            return False

        arrival_at = now + self.settings.travel_ms
        self.state.units[unit.id] = pool.reserve(
            unit,
            until=arrival_at,
            assignment=UnitAssignment(incident_id=incident_id, phase="to_scene"),
        )
        self.score.record("assign", incident_id, now)
        self.effects.schedule(
            ArrivalEffect(fire_at=arrival_at, unit_id=unit.id, incident_id=incident_id, unit_type=unit_type)
        )
        logger.info("dispatched unit=%s type=%s incident=%s eta=%.0f", unit.id, unit_type, incident_id, arrival_at)
        self._emit("unit.dispatched", unit_id=unit.id, unit_type=unit_type, incident_id=incident_id, arrival_at=arrival_at)
        return True

    def unassign(self, incident_id: str, unit_type: str, unit_id: str) -> bool:
        """Withdraw an arrived unit from an open incident's roster.

        The unit keeps its own commitment; a pending arrival is not cancelled.
        """
        incident = self.state.incidents.get(incident_id)
        if incident is None:
            logger.debug("unassign ignored: unknown incident %s", incident_id)
            return False
        updated = incident_fsm.detach_unit(incident, unit_id, unit_type)
        if updated is incident:
            logger.debug("unassign ignored: incident=%s unit=%s status=%s", incident_id, unit_id, incident.status)
            return False
        self.state.incidents[incident_id] = updated
        self._emit("unit.withdrawn", unit_id=unit_id, unit_type=unit_type, incident_id=incident_id)
        return True

    def spawn_incident(self) -> Incident | None:
        """Create one incident immediately; skipped when at capacity."""
        incident = self.generator.spawn(self.state)
        if incident is not None:
            self._on_spawned(incident)
        return incident

    # --- Tick processing ---

    def tick(self, wall_ms: float) -> None:
        """Process one wall-clock tick; no state changes while paused."""
        elapsed = self.clock.tick(wall_ms)
        if not self.clock.running:
            return
        self.step(elapsed)

    def step(self, elapsed_ms: float) -> None:
        """Advance the simulation by ``elapsed_ms`` of simulated time."""
        now = self.clock.advance(elapsed_ms)
        self.state.now = now

        for effect in self.effects.pop_due(now):
            # Replay releases and the target incident up to the arrival time
            # first: windows that ended earlier no longer count, and a deadline
            # that passed before arrival still escalates.
            self._release_expired(effect.fire_at, strict=True)
            self._evaluate_incident(effect.incident_id, effect.fire_at)
            self._apply_arrival(effect)

        self._release_expired(now)
        pool.advance_phases(self.state.units, now, self.settings.travel_ms)

        spawned = self.generator.maybe_spawn(self.state, elapsed_ms)
        if spawned is not None:
            self._on_spawned(spawned)

        for incident_id in list(self.state.incidents):
            self._evaluate_incident(incident_id, now)

    def _apply_arrival(self, effect: ArrivalEffect) -> None:
        """Attach an arrived unit if its incident is still active; always recommit it."""
        incident = self.state.incidents.get(effect.incident_id)
        attached = incident is not None and incident.is_active
        unit = self.state.units[effect.unit_id]
        self.state.units[unit.id] = pool.recommit(
            unit,
            until=effect.fire_at + self.settings.base_resolve_ms + self.settings.travel_ms,
            status="on_scene",
            assignment=UnitAssignment(incident_id=effect.incident_id, phase="at_scene") if attached else None,
        )
        if not attached:
            logger.info("unit=%s arrived at inactive incident=%s", effect.unit_id, effect.incident_id)
            return

        updated = incident_fsm.attach_unit(incident, effect.unit_id, effect.unit_type, effect.fire_at)
        self.state.incidents[incident.id] = updated
        self._emit("unit.arrived", unit_id=effect.unit_id, unit_type=effect.unit_type, incident_id=incident.id)
        if incident.status == "open" and updated.status == "in_progress":
            logger.info("incident started id=%s t=%.0f", incident.id, effect.fire_at)
            self._hold_roster(updated)
            self._emit("incident.started", incident_id=incident.id, started_at=updated.started_at)

    def _hold_roster(self, incident: Incident) -> None:
        """Keep every attached unit on scene until the work ends, plus the return leg."""
        end = incident_fsm.expected_end(incident, self.settings.base_resolve_ms)
        if end is None:
            return
        until = end + self.settings.travel_ms
        for unit_id in incident.attached_unit_ids():
            unit = self.state.units.get(unit_id)
            if unit is not None:
                self.state.units[unit_id] = pool.extend(unit, until)

    def _release_expired(self, now: float, strict: bool = False) -> None:
        """Free units whose window elapsed; an open incident loses them from its roster."""
        for unit in pool.release_expired(self.state.units, now, strict=strict):
            incident_id = unit.current_assignment.incident_id if unit.current_assignment else None
            incident = self.state.incidents.get(incident_id) if incident_id else None
            if incident is not None:
                updated = incident_fsm.detach_unit(
                    incident,
                    unit.id,
                    unit.type,
                    message=f"{unit.id} left the scene (commitment ended).",
                )
                self.state.incidents[incident.id] = updated
            self._emit("unit.released", unit_id=unit.id, unit_type=unit.type, incident_id=incident_id)

    def _evaluate_incident(self, incident_id: str, now: float) -> None:
        incident = self.state.incidents.get(incident_id)
        if incident is None or incident.is_terminal:
            return
        updated, outcome = incident_fsm.evaluate(incident, now, self.settings.base_resolve_ms)
        self.state.incidents[incident_id] = updated
        if outcome is not None:
            self._on_outcome(updated, outcome, now)

    def _on_outcome(self, incident: Incident, outcome: Outcome, now: float) -> None:
        event = self.score.record(outcome, incident.id, now)
        delta = event.delta if event is not None else 0
        event_type = "incident.escalated" if outcome == "missed" else "incident.resolved"
        logger.info("%s id=%s outcome=%s delta=%d score=%d", event_type, incident.id, outcome, delta, self.score.total)
        self._emit(event_type, incident_id=incident.id, outcome=outcome, delta=delta, score=self.score.total)

    def _on_spawned(self, incident: Incident) -> None:
        logger.info(
            "incident created id=%s name=%s requirements=%s deadline=%.0f",
            incident.id,
            incident.template_name,
            incident.requirements,
            incident.deadline,
        )
        self._emit(
            "incident.created",
            incident_id=incident.id,
            name=incident.template_name,
            requirements=dict(incident.requirements),
            deadline=incident.deadline,
        )

    def _emit(self, event_type: str, **fields: Any) -> None:
        payload = {"event_type": event_type, "sim_time_ms": self.state.now}
        payload.update(fields)
        self.event_sink(payload)

    # --- Read model ---

    @staticmethod
    def _deadline_remaining(incident: Incident, now: float) -> float:
        # Terminal records report the value frozen at their last transition.
        at = now
        if incident.is_terminal:
            at = incident.resolved_at if incident.resolved_at is not None else incident.last_update
        return max(0.0, incident.deadline - at)

    def open_count(self) -> int:
        return self.state.open_count()

    def snapshot(self) -> dict:
        """Return a serializable snapshot of current sim state."""
        now = self.state.now
        units = list(self.state.units.values())
        incidents = list(self.state.incidents.values())
        return {
            "running": self.clock.running,
            "elapsed_ms": now,
            "score": self.score.total,
            "open_count": self.state.open_count(),
            "available_by_type": pool.available_by_type(self.state.units, list(UNIT_TYPES)),
            "units": [
                {
                    "id": u.id,
                    "type": u.type,
                    "status": u.status,
                    "remaining_commitment_ms": max(0.0, u.commit_until - now) if u.commit_until is not None else 0.0,
                    "incident_id": u.current_assignment.incident_id if u.current_assignment else None,
                    "phase": u.current_assignment.phase if u.current_assignment else None,
                }
                for u in units
            ],
            "incidents": [
                {
                    "id": i.id,
                    "name": i.template_name,
                    "requirements": dict(i.requirements),
                    "assigned": {t: list(ids) for t, ids in i.assigned.items()},
                    "assigned_counts": i.assigned_counts(),
                    "status": i.status,
                    "progress": round(i.progress, 6),
                    "deadline_remaining_ms": self._deadline_remaining(i, now),
                    "created_at": i.created_at,
                    "started_at": i.started_at,
                    "last_message": i.last_message,
                    "outcome": i.outcome,
                    "served_by": list(i.served_by),
                }
                for i in incidents
            ],
            "metrics": compute_metrics(incidents, units),
        }
