"""Reservation fulfillment — command and handler.

Fulfillment is the one operation that touches on-hand, reserved, a
reservation and the movement log at once. The aggregate performs it as a
single atomic change and the handler persists it in one unit of work.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import load_record
from inventory.stock.record import InventoryRecord

logger = structlog.get_logger(__name__)


@inventory.command(part_of="InventoryRecord")
class FulfillReservation:
    """Ship the units held by a reservation."""

    inventory_record_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    created_by = String(max_length=255)
    as_of = DateTime()


@inventory.command_handler(part_of=InventoryRecord)
class FulfillReservationHandler:
    @handle(FulfillReservation)
    def fulfill_reservation(self, command):
        record = load_record(command.inventory_record_id)
        movement = record.fulfill(
            reservation_id=command.reservation_id,
            created_by=command.created_by,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)

        logger.info(
            "Reservation fulfilled",
            inventory_record_id=str(record.id),
            reservation_id=str(command.reservation_id),
            quantity=movement.quantity,
            remaining_quantity=record.quantity,
        )
        return str(movement.id)
