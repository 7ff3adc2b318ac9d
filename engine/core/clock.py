import time


class SystemClock:
    """Wall clock in whole seconds since epoch."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Settable clock for simulations and tests."""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int):
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        self._now += seconds
        return self._now
