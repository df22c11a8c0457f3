"""Fake clock adapter — a manually driven clock for tests and simulations.

Time only moves when told to, which makes reservation expiry deterministic.
"""

from datetime import UTC, datetime, timedelta

from inventory.clock.port import ClockPort

_EPOCH = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


class FakeClock(ClockPort):
    """Clock frozen at a configurable instant."""

    def __init__(self, start: datetime | None = None):
        self._now = _aware(start) if start is not None else _EPOCH

    def now(self) -> datetime:
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = _aware(instant)

    def advance(self, **delta) -> datetime:
        """Move the clock forward, e.g. ``clock.advance(minutes=16)``."""
        step = timedelta(**delta)
        if step < timedelta(0):
            raise ValueError("A clock cannot move backwards")
        self._now = self._now + step
        return self._now


def _aware(instant: datetime) -> datetime:
    return instant if instant.tzinfo else instant.replace(tzinfo=UTC)
