"""Stock receiving and customer returns — commands and handler."""

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import load_record
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class AddStock:
    """Receive stock into the warehouse."""

    inventory_record_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(max_length=255, default="restock")
    reference = String(max_length=255)  # Receiving document or PO number
    supplier_id = Identifier()
    created_by = String(max_length=255)
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class ReturnStock:
    """Put customer-returned units back on hand."""

    inventory_record_id = Identifier(required=True)
    quantity = Integer(required=True)
    order_id = Identifier()
    reason = String(max_length=255, default="customer return")
    created_by = String(max_length=255)
    as_of = DateTime()


@inventory.command_handler(part_of=InventoryRecord)
class ReceivingHandler:
    @handle(AddStock)
    def add_stock(self, command):
        record = load_record(command.inventory_record_id)
        movement = record.add_stock(
            quantity=command.quantity,
            reason=command.reason or "restock",
            reference=command.reference,
            supplier_id=command.supplier_id,
            created_by=command.created_by,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(movement.id)

    @handle(ReturnStock)
    def return_stock(self, command):
        record = load_record(command.inventory_record_id)
        movement = record.return_stock(
            quantity=command.quantity,
            order_id=command.order_id,
            reason=command.reason or "customer return",
            created_by=command.created_by,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(movement.id)
