"""Low stock report — records at or below their reorder point, for purchasing."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.events import (
    ReorderPointReached,
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
)
from inventory.stock.record import InventoryRecord


@inventory.projection
class LowStockReport:
    inventory_record_id = Identifier(identifier=True, required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    current_available = Integer(default=0)
    reorder_point = Integer(default=5)
    is_critical = Boolean(default=False)  # available == 0
    detected_at = DateTime()


def _refresh(inventory_record_id, new_available, reorder_point=None):
    """Drop the record from the report once available is back above its reorder point."""
    repo = current_domain.repository_for(LowStockReport)
    try:
        report = repo.get(inventory_record_id)
    except ObjectNotFoundError:
        return  # Not in the report

    if reorder_point is not None:
        report.reorder_point = reorder_point
    if new_available > report.reorder_point:
        repo._dao.delete(report)
    else:
        report.current_available = new_available
        report.is_critical = new_available == 0
        repo.add(report)


def low_stock_entries():
    """Every reported record, emptiest first."""
    entries = current_domain.repository_for(LowStockReport)._dao.query.all().items
    return sorted(entries, key=lambda entry: (entry.current_available, entry.sku))


@inventory.projector(projector_for=LowStockReport, aggregates=[InventoryRecord])
class LowStockReportProjector:
    @on(ReorderPointReached)
    def on_reorder_point_reached(self, event):
        repo = current_domain.repository_for(LowStockReport)
        try:
            report = repo.get(event.inventory_record_id)
            report.current_available = event.current_available
            report.reorder_point = event.reorder_point
            report.is_critical = event.current_available == 0
            report.detected_at = event.detected_at
        except ObjectNotFoundError:
            report = LowStockReport(
                inventory_record_id=event.inventory_record_id,
                product_id=event.product_id,
                variant_id=event.variant_id,
                sku=event.sku,
                current_available=event.current_available,
                reorder_point=event.reorder_point,
                is_critical=event.current_available == 0,
                detected_at=event.detected_at,
            )
        repo.add(report)

    @on(StockAdded)
    def on_stock_added(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(StockReturned)
    def on_stock_returned(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(StockAdjusted)
    def on_stock_adjusted(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(ReservationReleased)
    def on_reservation_released(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(ReservationExpired)
    def on_reservation_expired(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(ReservationCancelled)
    def on_reservation_cancelled(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(ThresholdsChanged)
    def on_thresholds_changed(self, event):
        _refresh(event.inventory_record_id, event.new_available, reorder_point=event.reorder_point)

    @on(StockRemoved)
    def on_stock_removed(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(StockWrittenOff)
    def on_stock_written_off(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(StockReserved)
    def on_stock_reserved(self, event):
        _refresh(event.inventory_record_id, event.new_available)

    @on(ReservationFulfilled)
    def on_reservation_fulfilled(self, event):
        _refresh(event.inventory_record_id, event.new_available)
