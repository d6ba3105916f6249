"""
Shared test helpers.
"""

from vibelink_engine.config import HOUR_MS


# Arbitrary fixed epoch (ms) so tests never depend on wall-clock time
T0 = 1_700_000_000_000


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start_ms: int = T0):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

    def advance_hours(self, hours: float) -> int:
        return self.advance(int(hours * HOUR_MS))
