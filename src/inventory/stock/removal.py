"""Stock removal and write-offs — commands and handler."""

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import load_record
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class RemoveStock:
    """Take unreserved stock out of the warehouse (walk-in sale, manual pick)."""

    inventory_record_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(max_length=255, default="sale")
    reference = String(max_length=255)
    order_id = Identifier()
    created_by = String(max_length=255)
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class WriteOffStock:
    """Write off damaged, expired or promotional units."""

    inventory_record_id = Identifier(required=True)
    quantity = Integer(required=True)
    movement_type = String(required=True, max_length=20)
    reason = String(required=True, max_length=255)
    created_by = String(max_length=255)
    as_of = DateTime()


@inventory.command_handler(part_of=InventoryRecord)
class RemovalHandler:
    @handle(RemoveStock)
    def remove_stock(self, command):
        record = load_record(command.inventory_record_id)
        movement = record.remove_stock(
            quantity=command.quantity,
            reason=command.reason or "sale",
            reference=command.reference,
            order_id=command.order_id,
            created_by=command.created_by,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(movement.id)

    @handle(WriteOffStock)
    def write_off_stock(self, command):
        record = load_record(command.inventory_record_id)
        movement = record.write_off(
            quantity=command.quantity,
            movement_type=command.movement_type,
            reason=command.reason,
            created_by=command.created_by,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(movement.id)
