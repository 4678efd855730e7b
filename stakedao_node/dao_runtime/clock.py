from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class ClockReading:
    wall_time: int  # unix seconds, used for join dates and reputation decay
    tick: int  # ordinal slot, used for expiry and same-slot checks


class SystemClock:
    """
    Wall-clock backed clock. Ticks are `slot_seconds` long, so the tick
    only advances between commands that are at least one slot apart.
    """

    def __init__(self, slot_seconds: float = 0.4) -> None:
        if slot_seconds <= 0:
            raise ValueError("slot_seconds must be positive")
        self.slot_seconds = float(slot_seconds)

    def now(self) -> ClockReading:
        t = time.time()
        return ClockReading(wall_time=int(t), tick=int(t / self.slot_seconds))


class ManualClock:
    """Clock advanced explicitly; used by tests and simulations."""

    def __init__(self, wall_time: int = 1_700_000_000, tick: int = 1) -> None:
        self.wall_time = int(wall_time)
        self.tick = int(tick)

    def now(self) -> ClockReading:
        return ClockReading(wall_time=self.wall_time, tick=self.tick)

    def advance(self, ticks: int = 1, seconds: int = 0) -> ClockReading:
        self.tick += int(ticks)
        self.wall_time += int(seconds)
        return self.now()
