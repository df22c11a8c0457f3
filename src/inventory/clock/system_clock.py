"""System clock adapter — reads the host's wall clock."""

from datetime import UTC, datetime

from inventory.clock.port import ClockPort


class SystemClock(ClockPort):
    def now(self) -> datetime:
        return datetime.now(UTC)
