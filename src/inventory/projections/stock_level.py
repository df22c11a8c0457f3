"""Stock level — per-record counters and statuses for real-time display."""

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.events import (
    InventoryRecordCreated,
    LifecycleStatusChanged,
    ReservationCancelled,
    ReservationExpired,
    ReservationFulfilled,
    ReservationReleased,
    StockAdded,
    StockAdjusted,
    StockRemoved,
    StockReserved,
    StockReturned,
    StockWrittenOff,
    ThresholdsChanged,
    UnitCostChanged,
)
from inventory.stock.record import InventoryRecord, StockStatus


@inventory.projection
class StockLevel:
    inventory_record_id = Identifier(identifier=True, required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    quantity = Integer(default=0)
    reserved = Integer(default=0)
    available = Integer(default=0)
    stock_status = String(required=True)
    lifecycle_status = String(required=True)
    low_stock_threshold = Integer(default=10)
    reorder_point = Integer(default=5)
    max_stock_level = Integer(default=1000)
    unit_cost = Float()
    total_value = Float(default=0.0)
    updated_at = DateTime()


def _apply_counters(event, occurred_at):
    """Copy the after-change counters carried by every quantity event."""
    repo = current_domain.repository_for(StockLevel)
    level = repo.get(event.inventory_record_id)
    level.quantity = event.new_quantity
    level.reserved = event.new_reserved
    level.available = event.new_available
    level.stock_status = event.stock_status
    if getattr(event, "total_value", None) is not None:
        level.total_value = event.total_value
    level.updated_at = occurred_at
    repo.add(level)


def out_of_stock_levels():
    levels = (
        current_domain.repository_for(StockLevel)
        ._dao.query.filter(stock_status=StockStatus.OUT_OF_STOCK.value)
        .all()
        .items
    )
    return sorted(levels, key=lambda level: level.sku)


@inventory.projector(projector_for=StockLevel, aggregates=[InventoryRecord])
class StockLevelProjector:
    @on(InventoryRecordCreated)
    def on_inventory_record_created(self, event):
        current_domain.repository_for(StockLevel).add(
            StockLevel(
                inventory_record_id=event.inventory_record_id,
                product_id=event.product_id,
                variant_id=event.variant_id,
                sku=event.sku,
                quantity=0,
                reserved=0,
                available=0,
                stock_status=event.stock_status,
                lifecycle_status=event.lifecycle_status,
                low_stock_threshold=event.low_stock_threshold,
                reorder_point=event.reorder_point,
                max_stock_level=event.max_stock_level,
                unit_cost=event.unit_cost,
                total_value=0.0,
                updated_at=event.created_at,
            )
        )

    @on(StockAdded)
    def on_stock_added(self, event):
        _apply_counters(event, event.added_at)

    @on(StockRemoved)
    def on_stock_removed(self, event):
        _apply_counters(event, event.removed_at)

    @on(StockReturned)
    def on_stock_returned(self, event):
        _apply_counters(event, event.returned_at)

    @on(StockWrittenOff)
    def on_stock_written_off(self, event):
        _apply_counters(event, event.written_off_at)

    @on(StockAdjusted)
    def on_stock_adjusted(self, event):
        _apply_counters(event, event.adjusted_at)

    @on(StockReserved)
    def on_stock_reserved(self, event):
        _apply_counters(event, event.reserved_at)

    @on(ReservationReleased)
    def on_reservation_released(self, event):
        _apply_counters(event, event.released_at)

    @on(ReservationFulfilled)
    def on_reservation_fulfilled(self, event):
        _apply_counters(event, event.fulfilled_at)

    @on(ReservationExpired)
    def on_reservation_expired(self, event):
        _apply_counters(event, event.expired_at)

    @on(ReservationCancelled)
    def on_reservation_cancelled(self, event):
        _apply_counters(event, event.cancelled_at)

    @on(ThresholdsChanged)
    def on_thresholds_changed(self, event):
        repo = current_domain.repository_for(StockLevel)
        level = repo.get(event.inventory_record_id)
        level.low_stock_threshold = event.low_stock_threshold
        level.reorder_point = event.reorder_point
        level.max_stock_level = event.max_stock_level
        level.stock_status = event.stock_status
        level.updated_at = event.changed_at
        repo.add(level)

    @on(LifecycleStatusChanged)
    def on_lifecycle_status_changed(self, event):
        repo = current_domain.repository_for(StockLevel)
        level = repo.get(event.inventory_record_id)
        level.lifecycle_status = event.new_status
        level.stock_status = event.stock_status
        level.updated_at = event.changed_at
        repo.add(level)

    @on(UnitCostChanged)
    def on_unit_cost_changed(self, event):
        repo = current_domain.repository_for(StockLevel)
        level = repo.get(event.inventory_record_id)
        level.unit_cost = event.unit_cost
        level.total_value = event.total_value
        level.updated_at = event.changed_at
        repo.add(level)
