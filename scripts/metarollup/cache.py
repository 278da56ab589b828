"""Time-bounded cache for reference data loaded once per process."""

import time


class TtlCache:
    """Holds the result of `loader()` until it is older than ttl_seconds.

    The clock is injectable so staleness can be driven explicitly; `now`
    arguments default to `clock()`.
    """

    def __init__(self, loader, ttl_seconds, clock=time.monotonic):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._value = None
        self._loaded_at = None

    def is_stale(self, now=None):
        if self._loaded_at is None:
            return True
        now = self.clock() if now is None else now
        return now - self._loaded_at >= self.ttl_seconds

    def refresh_if_stale(self, now=None):
        """Reload when stale. Returns True if the loader ran."""
        now = self.clock() if now is None else now
        if not self.is_stale(now):
            return False
        self._value = self.loader()
        self._loaded_at = now
        return True

    def get(self, now=None):
        self.refresh_if_stale(now)
        return self._value
