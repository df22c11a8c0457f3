"""Stock movement log — the movement journal flattened across records.

One entry per movement, keyed by the movement id, so reporting can query by
record, by time range and by movement type without loading aggregates.
"""

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.clock import as_utc
from inventory.domain import inventory
from inventory.stock.events import (
    ReservationFulfilled,
    StockAdded,
    StockAdjusted,
    StockRemoved,
    StockReturned,
    StockWrittenOff,
)
from inventory.stock.record import InventoryRecord


@inventory.projection
class StockMovementLog:
    movement_id = Identifier(identifier=True, required=True)
    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)
    quantity_change = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reason = String()
    reference = String()
    order_id = Identifier()
    actor = String()
    occurred_at = DateTime(required=True)


def _add_entry(event, occurred_at, actor=None, reference=None):
    current_domain.repository_for(StockMovementLog).add(
        StockMovementLog(
            movement_id=event.movement_id,
            inventory_record_id=event.inventory_record_id,
            sku=event.sku,
            movement_type=event.movement_type,
            quantity=event.quantity,
            quantity_change=event.new_quantity - event.previous_quantity,
            previous_quantity=event.previous_quantity,
            new_quantity=event.new_quantity,
            reason=event.reason,
            reference=reference,
            order_id=getattr(event, "order_id", None),
            actor=actor,
            occurred_at=occurred_at,
        )
    )


def _ordered(entries):
    return sorted(entries, key=lambda entry: as_utc(entry.occurred_at))


def movements_for_record(inventory_record_id):
    entries = (
        current_domain.repository_for(StockMovementLog)
        ._dao.query.filter(inventory_record_id=str(inventory_record_id))
        .all()
        .items
    )
    return _ordered(entries)


def movements_of_type(movement_type, inventory_record_id=None):
    filters = {"movement_type": movement_type}
    if inventory_record_id is not None:
        filters["inventory_record_id"] = str(inventory_record_id)
    return _ordered(current_domain.repository_for(StockMovementLog)._dao.query.filter(**filters).all().items)


def movements_between(start, end, inventory_record_id=None):
    """Entries that occurred in ``[start, end)``, optionally for one record."""
    start, end = as_utc(start), as_utc(end)
    if inventory_record_id is not None:
        entries = movements_for_record(inventory_record_id)
    else:
        entries = _ordered(current_domain.repository_for(StockMovementLog)._dao.query.all().items)
    return [entry for entry in entries if start <= as_utc(entry.occurred_at) < end]


@inventory.projector(projector_for=StockMovementLog, aggregates=[InventoryRecord])
class StockMovementLogProjector:
    @on(StockAdded)
    def on_stock_added(self, event):
        _add_entry(event, event.added_at, actor=event.created_by, reference=event.reference)

    @on(StockRemoved)
    def on_stock_removed(self, event):
        _add_entry(event, event.removed_at, actor=event.created_by, reference=event.reference)

    @on(StockReturned)
    def on_stock_returned(self, event):
        _add_entry(event, event.returned_at, actor=event.created_by, reference=event.order_id)

    @on(StockWrittenOff)
    def on_stock_written_off(self, event):
        _add_entry(event, event.written_off_at, actor=event.created_by)

    @on(StockAdjusted)
    def on_stock_adjusted(self, event):
        _add_entry(event, event.adjusted_at, actor=event.counted_by)

    @on(ReservationFulfilled)
    def on_reservation_fulfilled(self, event):
        _add_entry(event, event.fulfilled_at, actor=event.created_by, reference=event.order_id)
