"""Clock port — the single source of "now" for the stock ledger.

Reservation expiry and every ledger timestamp are computed from the clock
handed to the operation, never from the wall clock directly, so tests and
replays can pin time.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class ClockPort(ABC):
    """Abstract interface for clock adapters."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware UTC datetime."""
        ...
