"""Stock reservation — commands and handler."""

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import load_record
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class ReserveStock:
    """Hold available stock for an order."""

    inventory_record_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    expires_at = DateTime()  # Optional; a reservation without expiry never lapses
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class ReleaseReservation:
    """Give a hold back to available stock."""

    inventory_record_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    reason = String(max_length=255, default="released")
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class CancelReservation:
    """Cancel a hold, typically because the order was cancelled."""

    inventory_record_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    reason = String(max_length=255, default="cancelled")
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class ExtendReservation:
    inventory_record_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    expires_at = DateTime(required=True)
    as_of = DateTime()


@inventory.command_handler(part_of=InventoryRecord)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        record = load_record(command.inventory_record_id)
        reservation = record.reserve(
            quantity=command.quantity,
            order_id=command.order_id,
            expires_at=command.expires_at,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(reservation.id)

    @handle(ReleaseReservation)
    def release_reservation(self, command):
        record = load_record(command.inventory_record_id)
        record.release(
            reservation_id=command.reservation_id,
            reason=command.reason or "released",
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(CancelReservation)
    def cancel_reservation(self, command):
        record = load_record(command.inventory_record_id)
        cancelled = record.cancel(
            reservation_id=command.reservation_id,
            reason=command.reason or "cancelled",
            now=command.as_of,
        )
        if cancelled is not None:
            current_domain.repository_for(InventoryRecord).add(record)
        return cancelled is not None

    @handle(ExtendReservation)
    def extend_reservation(self, command):
        record = load_record(command.inventory_record_id)
        record.extend_reservation(
            reservation_id=command.reservation_id,
            expires_at=command.expires_at,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
