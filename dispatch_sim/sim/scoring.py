from __future__ import annotations

"""
File: dispatch_sim/sim/scoring.py
Purpose: Running score and score event ledger.
"""

from dataclasses import dataclass
import logging
from typing import Literal

from dispatch_sim.settings import Settings

logger = logging.getLogger("dispatch-sim.scoring")

ScoreKind = Literal["assign", "on_time", "late", "missed"]


@dataclass(frozen=True)
class ScoreEvent:
    """Single score change attributed to an incident."""
    kind: ScoreKind
    incident_id: str
    delta: int
    at: float


class ScoreBoard:
    """Integer score total; terminal outcomes are booked once per incident."""
    def __init__(self, settings: Settings) -> None:
        self.points: dict[str, int] = {
            "assign": settings.assign_points,
            "on_time": settings.on_time_points,
            "late": settings.slow_penalty,
            "missed": settings.missed_penalty,
        }
        self.total = 0
        self.events: list[ScoreEvent] = []
        self._settled: set[str] = set()

    def record(self, kind: ScoreKind, incident_id: str, at: float) -> ScoreEvent | None:
        """Apply the delta for ``kind`` and return the booked event."""
        if kind != "assign":
            if incident_id in self._settled:
                logger.warning("duplicate outcome ignored incident=%s kind=%s", incident_id, kind)
                return None
            self._settled.add(incident_id)
        event = ScoreEvent(kind=kind, incident_id=incident_id, delta=self.points[kind], at=at)
        self.total += event.delta
        self.events.append(event)
        return event

    def events_for(self, incident_id: str) -> list[ScoreEvent]:
        return [event for event in self.events if event.incident_id == incident_id]

    def reset(self) -> None:
        self.total = 0
        self.events.clear()
        self._settled.clear()
