"""Stock adjustment after a physical count — command and handler."""

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import load_record
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class AdjustStock:
    """Set on-hand to a counted quantity."""

    inventory_record_id = Identifier(required=True)
    new_quantity = Integer(required=True)
    reason = String(required=True, max_length=255)
    counted_by = String(max_length=255)
    as_of = DateTime()


@inventory.command_handler(part_of=InventoryRecord)
class AdjustStockHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        record = load_record(command.inventory_record_id)
        movement = record.adjust_stock(
            new_quantity=command.new_quantity,
            reason=command.reason,
            counted_by=command.counted_by,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(movement.id)
