"""Triangular-wave state machine behind the threads_active metric.

The value climbs from 0 to the upper bound one step per tick, then falls back
to 0, and repeats. A tick that lands on a boundary flips the direction and
still emits a step in the new direction.
"""
from __future__ import annotations

import enum
from typing import Callable, Optional, Tuple

from .errors import ConfigError


class Direction(enum.Enum):
    RISING = "rising"
    FALLING = "falling"


def step(value: int, upper_bound: int, direction: Direction) -> Tuple[int, int, Direction]:
    """Advance one tick. Returns ``(delta, new_value, new_direction)``."""
    if upper_bound == 0:
        # Nothing to oscillate over: hold at 0 and just flip the direction
        flipped = Direction.FALLING if direction is Direction.RISING else Direction.RISING
        return 0, 0, flipped

    if direction is Direction.RISING:
        if value < upper_bound:
            return 1, value + 1, Direction.RISING
        return -1, value - 1, Direction.FALLING

    if value > 0:
        return -1, value - 1, Direction.FALLING
    return 1, value + 1, Direction.RISING


class ThreadsOscillator:
    """Holds the current value and direction; owned by a single scheduler."""

    def __init__(self, upper_bound: int) -> None:
        if upper_bound < 0:
            raise ConfigError(f"threads upper bound must be non-negative: {upper_bound}")
        self.upper_bound = upper_bound
        self.value = 0
        self.direction = Direction.RISING

    def tick(self, apply: Optional[Callable[[int], None]] = None) -> int:
        """Advance one step and return its delta.

        When given, ``apply(delta)`` runs before the new state is committed, so
        a failing apply leaves the oscillator where it was.
        """
        delta, value, direction = step(self.value, self.upper_bound, self.direction)
        if apply is not None and delta:
            apply(delta)
        self.value, self.direction = value, direction
        return delta

    def __repr__(self) -> str:
        return (
            f"ThreadsOscillator(value={self.value}, upper_bound={self.upper_bound}, "
            f"direction={self.direction.value})"
        )
