"""
File: dispatch_sim/settings.py
Purpose: Environment-backed configuration for the dispatch simulator.
Key responsibilities:
- Parse timing constants, capacity and point values.
- Parse host/tick settings for the HTTP runner.
"""

from dataclasses import dataclass
import os


def _int_env(name: str, default: int = 0) -> int:
    """Parse an integer env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Simulation configuration parsed from environment.

    All durations are simulated milliseconds. Tests override fields by
    constructing ``Settings(...)`` directly.
    """
    spawn_every_ms: int = _int_env("SPAWN_EVERY_MS", 5500)
    base_resolve_ms: int = _int_env("BASE_RESOLVE_MS", 8000)
    travel_ms: int = _int_env("TRAVEL_MS", 3500)
    deadline_grace_ms: int = _int_env("DEADLINE_GRACE_MS", 10000)
    deadline_jitter_ms: int = _int_env("DEADLINE_JITTER_MS", 10000)
    max_open_incidents: int = _int_env("MAX_OPEN_INCIDENTS", 6)
    assign_points: int = _int_env("POINTS_ASSIGN", 5)
    on_time_points: int = _int_env("POINTS_ON_TIME", 120)
    slow_penalty: int = _int_env("POINTS_SLOW_PENALTY", -80)
    missed_penalty: int = _int_env("POINTS_MISSED_PENALTY", -150)
    seed: int = _int_env("SIM_SEED", 42)
    sim_tick_hz: int = _int_env("SIM_TICK_HZ", 20)
    host: str = os.getenv("DISPATCH_HOST", "0.0.0.0")
    port: int = _int_env("DISPATCH_PORT", 8000)

    def __post_init__(self) -> None:
        if self.base_resolve_ms <= 0:
            raise ValueError("base_resolve_ms must be > 0")
        if self.spawn_every_ms <= 0:
            raise ValueError("spawn_every_ms must be > 0")
        if self.travel_ms < 0 or self.deadline_grace_ms < 0 or self.deadline_jitter_ms < 0:
            raise ValueError("durations must be >= 0")
        if self.max_open_incidents < 0:
            raise ValueError("max_open_incidents must be >= 0")
        if self.sim_tick_hz <= 0:
            raise ValueError("sim_tick_hz must be > 0")


settings = Settings()
