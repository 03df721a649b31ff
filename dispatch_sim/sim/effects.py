from __future__ import annotations

"""
File: dispatch_sim/sim/effects.py
Purpose: Deferred effects scheduled on the simulated timeline.
Key responsibilities:
- Hold arrival effects in fire-time order.
- Hand due effects to the tick loop exactly once.
"""

from dataclasses import dataclass
import heapq


@dataclass(frozen=True)
class ArrivalEffect:
    """Unit reaching the scene of the incident it was dispatched to."""
    fire_at: float
    unit_id: str
    incident_id: str
    unit_type: str


class EffectQueue:
    """Min-heap of effects keyed by (fire_at, insertion order)."""
    def __init__(self) -> None:
        self._heap: list[tuple[float, int, ArrivalEffect]] = []
        self._seq = 0

    def __len__(self) -> int:
        return len(self._heap)

    def schedule(self, effect: ArrivalEffect) -> None:
        heapq.heappush(self._heap, (effect.fire_at, self._seq, effect))
        self._seq += 1

    def pop_due(self, now: float) -> list[ArrivalEffect]:
        """Remove and return every effect with ``fire_at <= now`` in order."""
        due: list[ArrivalEffect] = []
        while self._heap and self._heap[0][0] <= now:
            _, _, effect = heapq.heappop(self._heap)
            due.append(effect)
        return due

    def pending(self) -> list[ArrivalEffect]:
        return [effect for _, _, effect in sorted(self._heap)]

    def clear(self) -> None:
        self._heap.clear()
        self._seq = 0
