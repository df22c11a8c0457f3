"""Clock adapter abstraction — pluggable time source for the stock ledger."""

import os
from datetime import UTC, datetime

from inventory.clock.port import ClockPort

_clock_instance = None


def get_clock() -> ClockPort:
    """Return the configured clock adapter (singleton).

    Uses SystemClock by default. Set INVENTORY_CLOCK=fake to start from a
    FakeClock, or install one explicitly with ``set_clock``.
    """
    global _clock_instance
    if _clock_instance is None:
        adapter = os.environ.get("INVENTORY_CLOCK", "system")
        if adapter == "system":
            from inventory.clock.system_clock import SystemClock

            _clock_instance = SystemClock()
        elif adapter == "fake":
            from inventory.clock.fake_clock import FakeClock

            _clock_instance = FakeClock()
        else:
            raise ValueError(f"Unknown clock adapter: {adapter}")
    return _clock_instance


def set_clock(clock: ClockPort) -> None:
    global _clock_instance
    _clock_instance = clock


def reset_clock():
    """Reset the clock singleton (useful for testing)."""
    global _clock_instance
    _clock_instance = None


def as_utc(instant: datetime | None) -> datetime | None:
    """Normalize a datetime to aware UTC.

    Some database adapters hand back naive datetimes, which cannot be
    compared with the aware instants the clock produces.
    """
    if instant is None:
        return None
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)
