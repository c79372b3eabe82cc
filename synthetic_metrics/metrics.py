"""OTel metric instruments for the synthetic generator.

Instruments are created through an InstrumentRegistry, once per process, after
the MeterProvider is set up. register_instruments() builds the four instruments
the generator reports and wires the random callbacks to the observable ones.
"""
from __future__ import annotations

import enum
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Sequence

from opentelemetry.metrics import Counter, Meter, UpDownCounter

from .config import Config
from .errors import RegistrationError
from .generators import RandomObservationCallback

logger = logging.getLogger(__name__)

TIME_ALIVE = "time_alive"
CPU_USAGE = "cpu_usage"
TOTAL_HEAP_SIZE = "total_heap_size"
THREADS_ACTIVE = "threads_active"


class InstrumentKind(enum.Enum):
    COUNTER = "counter"
    ASYNC_GAUGE = "async_gauge"
    ASYNC_UP_DOWN_COUNTER = "async_up_down_counter"
    SYNC_UP_DOWN_COUNTER = "sync_up_down_counter"

    @property
    def asynchronous(self) -> bool:
        return self in (InstrumentKind.ASYNC_GAUGE, InstrumentKind.ASYNC_UP_DOWN_COUNTER)


class InstrumentRegistry:
    """Creates instruments on a meter and remembers them by name.

    Each name can be registered once; a second attempt is a programmer error
    and raises RegistrationError, as does any rejection from the meter.
    Observable instruments take their callbacks here, since the SDK only
    accepts them at creation time.
    """

    def __init__(self, meter: Meter) -> None:
        self._meter = meter
        self._instruments: Dict[str, Any] = {}

    def register(
        self,
        kind: InstrumentKind,
        name: str,
        unit: str,
        description: str,
        callbacks: Optional[Sequence[Callable]] = None,
    ) -> Any:
        if name in self._instruments:
            raise RegistrationError(f"instrument {name!r} is already registered")
        if kind.asynchronous and not callbacks:
            raise RegistrationError(f"{kind.value} instrument {name!r} needs at least one callback")
        if not kind.asynchronous and callbacks:
            raise RegistrationError(f"{kind.value} instrument {name!r} does not take callbacks")

        try:
            instrument = self._create(kind, name, unit, description, callbacks)
        except Exception as exc:
            raise RegistrationError(f"meter rejected {kind.value} instrument {name!r}: {exc}") from exc

        self._instruments[name] = instrument
        logger.debug("Registered %s instrument %s (%s)", kind.value, name, unit)
        return instrument

    def _create(self, kind, name, unit, description, callbacks):
        if kind is InstrumentKind.COUNTER:
            return self._meter.create_counter(name=name, unit=unit, description=description)
        if kind is InstrumentKind.SYNC_UP_DOWN_COUNTER:
            return self._meter.create_up_down_counter(name=name, unit=unit, description=description)
        if kind is InstrumentKind.ASYNC_GAUGE:
            return self._meter.create_observable_gauge(
                name=name, callbacks=list(callbacks), unit=unit, description=description
            )
        return self._meter.create_observable_up_down_counter(
            name=name, callbacks=list(callbacks), unit=unit, description=description
        )

    def get(self, name: str) -> Any:
        return self._instruments[name]

    def names(self) -> Iterator[str]:
        return iter(self._instruments)

    def __contains__(self, name: object) -> bool:
        return name in self._instruments

    def __len__(self) -> int:
        return len(self._instruments)


@dataclass(frozen=True)
class SyntheticInstruments:
    """Handles for the four reported metrics."""
    time_alive: Counter
    cpu_usage: Any
    total_heap_size: Any
    threads_active: UpDownCounter
    cpu_usage_callback: RandomObservationCallback
    total_heap_size_callback: RandomObservationCallback


def register_instruments(
    registry: InstrumentRegistry,
    config: Config,
    rng_factory: Optional[Callable[[], random.Random]] = None,
) -> SyntheticInstruments:
    """Register every instrument the generator reports. Call exactly once.

    ``rng_factory`` supplies one random source per callback; tests pass a
    seeded factory.
    """
    new_rng = rng_factory or random.Random

    cpu_callback = RandomObservationCallback(CPU_USAGE, config.cpu_usage_upper_bound, new_rng())
    heap_callback = RandomObservationCallback(TOTAL_HEAP_SIZE, config.total_heap_size_upper_bound, new_rng())

    time_alive = registry.register(
        InstrumentKind.COUNTER,
        TIME_ALIVE,
        unit="s",
        description="Time Alive: total amount of time that the application has been alive",
    )
    # Observable instruments: values are pulled by the SDK at each collection cycle
    cpu_usage = registry.register(
        InstrumentKind.ASYNC_GAUGE,
        CPU_USAGE,
        unit="%",
        description="CPU Usage: cpu usage percent",
        callbacks=[cpu_callback],
    )
    total_heap_size = registry.register(
        InstrumentKind.ASYNC_UP_DOWN_COUNTER,
        TOTAL_HEAP_SIZE,
        unit="1",
        description="Total Heap Size: the current total heap size",
        callbacks=[heap_callback],
    )
    threads_active = registry.register(
        InstrumentKind.SYNC_UP_DOWN_COUNTER,
        THREADS_ACTIVE,
        unit="1",
        description="Threads Active: the total amount of threads active",
    )

    logger.info("Registered %d metric instruments", len(registry))
    return SyntheticInstruments(
        time_alive=time_alive,
        cpu_usage=cpu_usage,
        total_heap_size=total_heap_size,
        threads_active=threads_active,
        cpu_usage_callback=cpu_callback,
        total_heap_size_callback=heap_callback,
    )
