"""Background update loop for the synchronous instruments.

Runs as a daemon thread, adding to time_alive and stepping the threads_active
oscillator every ``time_interval`` seconds. The observable instruments are not
touched here; the SDK's reader pulls them on its own collection period.
"""
import logging
import threading
from typing import Optional

from .config import Config
from .metrics import SyntheticInstruments
from .oscillator import ThreadsOscillator

logger = logging.getLogger("update_loop")


class UpdateScheduler:
    def __init__(self, instruments: SyntheticInstruments, config: Config) -> None:
        self._instruments = instruments
        self._config = config
        self._oscillator = ThreadsOscillator(config.threads_active_upper_bound)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def oscillator(self) -> ThreadsOscillator:
        return self._oscillator

    def tick(self) -> int:
        """Apply one round of synchronous updates and return the threads delta."""
        self._instruments.time_alive.add(self._config.time_alive_incrementer)

        delta = self._oscillator.tick(self._instruments.threads_active.add)

        self.ticks += 1
        logger.debug("Updated time alive and threads active (threads=%d)", self._oscillator.value)
        return delta

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Update tick failed")
            self._stop.wait(self._config.time_interval)

    def start(self) -> None:
        """Start the update loop daemon thread."""
        if self._thread is not None:
            raise RuntimeError("update loop already started")
        self._thread = threading.Thread(target=self._run, daemon=True, name="update-loop")
        self._thread.start()
        logger.info("Update loop started (interval=%ss)", self._config.time_interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to exit and wait up to ``timeout`` seconds for it."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Update loop did not exit within %ss", timeout)
        logger.info("Update loop stopped after %d ticks", self.ticks)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
