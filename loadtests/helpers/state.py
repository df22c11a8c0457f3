"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state; nothing is shared across
users. State tracks IDs returned by creation endpoints so follow-up
operations can reference them.
"""

from dataclasses import dataclass, field


@dataclass
class InventoryState:
    """Tracks state for a single inventory record lifecycle."""

    inventory_record_id: str | None = None
    sku: str | None = None
    reservation_ids: list[str] = field(default_factory=list)
    current_quantity: int = 0
    current_available: int = 0


@dataclass
class ContentionState:
    """Tracks outcomes while many users reserve against one scarce SKU."""

    sku: str | None = None
    reserved: int = 0
    rejected: int = 0
