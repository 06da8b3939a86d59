import threading
import time


class YahooRateLimiter:
    """
    Spaces out Yahoo Finance calls by at least min_interval seconds.

    One limiter is held per provider and the provider is shared by every
    job worker thread, so the lock serializes the waits.
    """

    def __init__(self, min_interval: float = 0.25):
        self.min_interval = min_interval
        self._next_slot = 0.0
        self._lock = threading.Lock()

    def wait_if_needed(self) -> float:
        """Block until the next call is allowed; returns the seconds slept."""
        with self._lock:
            now = time.monotonic()
            delay = max(0.0, self._next_slot - now)
            if delay:
                time.sleep(delay)
            self._next_slot = max(now, self._next_slot) + self.min_interval
            return delay
