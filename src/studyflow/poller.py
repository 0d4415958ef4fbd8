"""Background clock that drives the scheduler."""
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 30


class ClockPoller:
    """Calls ``on_tick(now)`` once on start, then every ``interval`` seconds.

    Each tick samples ``clock`` exactly once. ``stop()`` cancels the pending
    wait; no tick fires after it returns.
    """

    def __init__(
        self,
        on_tick: Callable[[datetime], object],
        interval: float = POLL_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.on_tick = on_tick
        self.interval = interval
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> None:
        now = self.clock()
        try:
            self.on_tick(now)
        except Exception as e:
            logger.error(f"Poll tick at {now:%H:%M:%S} failed: {e}")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self.tick()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="studyflow-poll")
        self._thread.start()
        logger.debug(f"Poller started, every {self.interval}s")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        logger.debug("Poller stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.tick()
