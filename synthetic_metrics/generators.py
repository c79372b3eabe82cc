"""Random value sources for the asynchronous instruments.

The SDK's collection thread calls a RandomObservationCallback once per
collection period. Every call is an independent draw from ``[0, upper_bound)``.
"""
from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

from opentelemetry.metrics import CallbackOptions, Observation

from .errors import CallbackError, ConfigError

logger = logging.getLogger(__name__)


class BoundedRandom:
    """Uniform integers in ``[0, upper_bound)`` from a private random source."""

    def __init__(self, upper_bound: int, rng: Optional[random.Random] = None) -> None:
        self.upper_bound = upper_bound
        self._rng = rng or random.Random()

    def draw(self) -> int:
        if self.upper_bound <= 0:
            raise ConfigError(f"upper bound must be positive to draw a value: {self.upper_bound}")
        return self._rng.randrange(0, self.upper_bound)


class RandomObservationCallback:
    """Observable-instrument callback reporting one fresh random value per call.

    The bound is captured at construction; nothing else is read at call time.
    A failing draw raises CallbackError, which the SDK logs before skipping the
    instrument for that cycle.
    """

    def __init__(self, instrument_name: str, upper_bound: int, rng: Optional[random.Random] = None) -> None:
        self.instrument_name = instrument_name
        self._source = BoundedRandom(upper_bound, rng)
        self.observations = 0
        self.failures = 0

    @property
    def upper_bound(self) -> int:
        return self._source.upper_bound

    def __call__(self, options: CallbackOptions) -> Iterable[Observation]:
        try:
            value = self._source.draw()
        except ConfigError as exc:
            self.failures += 1
            raise CallbackError(f"{self.instrument_name}: {exc}") from exc

        self.observations += 1
        logger.debug("%s observed %d", self.instrument_name, value)
        return [Observation(value)]

    def __repr__(self) -> str:
        return f"RandomObservationCallback({self.instrument_name!r}, upper_bound={self.upper_bound})"
