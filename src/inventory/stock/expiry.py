"""Reservation expiry — command and handler for closing one lapsed hold.

The periodic sweep that finds due reservations lives in
``InventoryControl.expire_due``; it dispatches one ExpireReservation per
due hold so every expiry runs under that record's lock.
"""

from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import load_record
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class ExpireReservation:
    """Close a reservation whose expiry time has passed."""

    inventory_record_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    as_of = DateTime()  # Optional: defaults to the configured clock


@inventory.command_handler(part_of=InventoryRecord)
class ExpireReservationHandler:
    @handle(ExpireReservation)
    def expire_reservation(self, command):
        record = load_record(command.inventory_record_id)
        record.expire(reservation_id=command.reservation_id, now=command.as_of)
        current_domain.repository_for(InventoryRecord).add(record)
