from __future__ import annotations

"""
File: dispatch_sim/sim/clock.py
Purpose: Simulated clock driven by wall-clock deltas.
"""

from typing import Optional


class SimClock:
    """Track simulated time in milliseconds; honors pause/resume.

    The driving loop calls ``tick(wall_ms)`` continuously. While paused the
    wall reference is re-anchored and the measured delta is zero, so a resume
    never replays the paused span.
    """
    def __init__(self) -> None:
        self.running = False
        self.now_ms = 0.0
        self.last_elapsed_ms = 0.0
        self._last_wall_ms: Optional[float] = None

    def start(self) -> None:
        self.running = True

    def pause(self) -> None:
        self.running = False

    def toggle(self) -> bool:
        """Flip between running and paused; return the new running flag."""
        self.running = not self.running
        return self.running

    def tick(self, wall_ms: float) -> float:
        """Return the simulated delta for this wall tick (0 while paused)."""
        previous = self._last_wall_ms
        self._last_wall_ms = wall_ms
        if not self.running or previous is None:
            return 0.0
        return max(0.0, wall_ms - previous)

    def advance(self, elapsed_ms: float) -> float:
        """Move simulated time forward and return the new time."""
        if elapsed_ms < 0:
            raise ValueError("elapsed_ms must be >= 0")
        self.now_ms += elapsed_ms
        self.last_elapsed_ms = elapsed_ms
        return self.now_ms

    def reset(self) -> None:
        self.running = False
        self.now_ms = 0.0
        self.last_elapsed_ms = 0.0
        self._last_wall_ms = None
