from __future__ import annotations

"""
File: dispatch_sim/main.py
Purpose: FastAPI entrypoint that hosts the dispatch simulation.
Key responsibilities:
- Drive the engine from a background asyncio tick loop.
- Expose start/pause/reset/assign/unassign commands and the state snapshot.
Key entrypoints:
- create_app()
- SimRunner.run()
Config/env vars:
- SPAWN_EVERY_MS, BASE_RESOLVE_MS, TRAVEL_MS, DEADLINE_GRACE_MS, DEADLINE_JITTER_MS
- MAX_OPEN_INCIDENTS, POINTS_*, SIM_SEED, SIM_TICK_HZ, DISPATCH_HOST, DISPATCH_PORT
"""

import asyncio
import logging
import time
from typing import Any

from fastapi import FastAPI, status

from dispatch_sim.schemas import AssignRequest, StateResponse, UnassignRequest
from dispatch_sim.settings import Settings, settings
from dispatch_sim.sim.engine import DispatchEngine
from dispatch_sim.sim.world import UNIT_TYPES, IncidentTemplate

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s dispatch-sim %(message)s")
logger = logging.getLogger("dispatch-sim")


class SimRunner:
    """Owns the engine and ticks it on the event loop.

    Commands from the HTTP handlers run on the same loop and never await
    while mutating, so ticks and commands are applied one at a time.
    """
    def __init__(self, cfg: Settings, templates: list[IncidentTemplate] | None = None) -> None:
        self.settings = cfg
        self.engine = DispatchEngine(cfg, event_sink=self._on_event, templates=templates)
        self.task: asyncio.Task | None = None
        self.recent_events: list[dict[str, Any]] = []

    def _on_event(self, payload: dict[str, Any]) -> None:
        self.recent_events.append(payload)
        if len(self.recent_events) > 200:
            del self.recent_events[: len(self.recent_events) - 200]

    async def run(self) -> None:
        """Tick the engine at SIM_TICK_HZ until cancelled."""
        interval = 1.0 / self.settings.sim_tick_hz
        logger.info("tick loop started hz=%s", self.settings.sim_tick_hz)
        while True:
            try:
                self.engine.tick(time.monotonic() * 1000.0)
            except Exception as exc:  # noqa: BLE001
                logger.exception("tick failed: %s", exc)
            await asyncio.sleep(interval)

    def start_background(self) -> None:
        if self.task is None or self.task.done():
            self.task = asyncio.create_task(self.run())

    async def stop_background(self) -> None:
        if self.task is None:
            return
        self.task.cancel()
        try:
            await self.task
        except asyncio.CancelledError:
            pass
        self.task = None


def create_app(cfg: Settings | None = None, templates: list[IncidentTemplate] | None = None) -> FastAPI:
    """Build the HTTP surface around a fresh runner."""
    runner = SimRunner(cfg or settings, templates)
    app = FastAPI(title="dispatch-sim", version="1.0.0")
    app.state.runner = runner

    @app.on_event("startup")
    async def startup_event() -> None:
        """Start the background tick loop on service startup."""
        runner.start_background()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await runner.stop_background()

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness/readiness endpoint."""
        return {"status": "ok"}

    @app.get("/api/config")
    async def config() -> dict[str, Any]:
        """Return timing constants, unit types and the incident catalog."""
        s = runner.settings
        return {
            "timing": {
                "spawn_every_ms": s.spawn_every_ms,
                "base_resolve_ms": s.base_resolve_ms,
                "travel_ms": s.travel_ms,
                "deadline_grace_ms": s.deadline_grace_ms,
                "deadline_jitter_ms": s.deadline_jitter_ms,
            },
            "max_open_incidents": s.max_open_incidents,
            "points": dict(runner.engine.score.points),
            "unit_types": UNIT_TYPES,
            "templates": [{"name": t.name, "requirements": t.requirements} for t in runner.engine.templates],
        }

    @app.get("/api/state", response_model=StateResponse)
    async def state() -> dict[str, Any]:
        """Return the current read model."""
        return runner.engine.snapshot()

    @app.get("/api/events")
    async def events() -> list[dict[str, Any]]:
        """Return the most recent engine events, oldest first."""
        return list(runner.recent_events)

    @app.post("/api/start", response_model=StateResponse, status_code=status.HTTP_202_ACCEPTED)
    async def start() -> dict[str, Any]:
        runner.engine.start()
        return runner.engine.snapshot()

    @app.post("/api/pause", response_model=StateResponse, status_code=status.HTTP_202_ACCEPTED)
    async def pause() -> dict[str, Any]:
        runner.engine.pause()
        return runner.engine.snapshot()

    @app.post("/api/toggle", response_model=StateResponse, status_code=status.HTTP_202_ACCEPTED)
    async def toggle() -> dict[str, Any]:
        runner.engine.toggle()
        return runner.engine.snapshot()

    @app.post("/api/reset", response_model=StateResponse, status_code=status.HTTP_202_ACCEPTED)
    async def reset() -> dict[str, Any]:
        runner.engine.reset()
        runner.recent_events.clear()
        return runner.engine.snapshot()

    @app.post(
        "/api/incidents/{incident_id}/assign",
        response_model=StateResponse,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def assign(incident_id: str, req: AssignRequest) -> dict[str, Any]:
        """Dispatch a unit; unknown incidents or missing units are ignored."""
        runner.engine.assign(incident_id, req.unit_type)
        return runner.engine.snapshot()

    @app.post(
        "/api/incidents/{incident_id}/unassign",
        response_model=StateResponse,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def unassign(incident_id: str, req: UnassignRequest) -> dict[str, Any]:
        """Withdraw an arrived unit while the incident is still open."""
        runner.engine.unassign(incident_id, req.unit_type, req.unit_id)
        return runner.engine.snapshot()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
