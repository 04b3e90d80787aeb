"""Single-slot rate limiter for outbound geocoding requests."""

import threading
import time
from collections.abc import Callable


class IntervalRateLimiter:
    """Guarantees a minimum interval between consecutive ``acquire()`` returns.

    The lock is held while waiting, so concurrent callers queue up and are
    released one per interval, process-wide.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_dispatch: float | None = None

    def acquire(self) -> float:
        """Block until the caller may dispatch. Returns the dispatch time."""
        with self._lock:
            now = self._clock()
            if self._last_dispatch is not None:
                wait = self._last_dispatch + self.min_interval - now
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last_dispatch = now
            return now
