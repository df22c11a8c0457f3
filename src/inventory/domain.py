"""Inventory bounded context — the stock ledger.

Tracks on-hand and reserved quantities per SKU, the reservation lifecycle
that holds stock for orders, and the append-only movement log that explains
every change to on-hand quantity.
"""

from protean.domain import Domain

from inventory.utils.logging import configure_logging

configure_logging()

inventory = Domain(name="inventory")
