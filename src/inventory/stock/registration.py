"""Inventory record registration — command and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import sku_is_registered
from inventory.stock.record import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    DEFAULT_MAX_STOCK_LEVEL,
    DEFAULT_REORDER_POINT,
    InventoryRecord,
)


@inventory.command(part_of="InventoryRecord")
class CreateInventoryRecord:
    """Open a stock ledger entry for a SKU."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True, max_length=100)
    initial_quantity = Integer(default=0)
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD)
    reorder_point = Integer(default=DEFAULT_REORDER_POINT)
    max_stock_level = Integer(default=DEFAULT_MAX_STOCK_LEVEL)
    unit_cost = Float()
    created_by = String(max_length=255)
    as_of = DateTime()


@inventory.command_handler(part_of=InventoryRecord)
class CreateInventoryRecordHandler:
    @handle(CreateInventoryRecord)
    def create_inventory_record(self, command):
        if sku_is_registered(command.sku):
            raise ValidationError({"sku": [f"SKU {command.sku} already has an inventory record"]})

        record = InventoryRecord.create(
            product_id=command.product_id,
            variant_id=command.variant_id,
            sku=command.sku,
            initial_quantity=command.initial_quantity or 0,
            low_stock_threshold=(
                command.low_stock_threshold
                if command.low_stock_threshold is not None
                else DEFAULT_LOW_STOCK_THRESHOLD
            ),
            reorder_point=command.reorder_point if command.reorder_point is not None else DEFAULT_REORDER_POINT,
            max_stock_level=(
                command.max_stock_level if command.max_stock_level is not None else DEFAULT_MAX_STOCK_LEVEL
            ),
            unit_cost=command.unit_cost,
            created_by=command.created_by,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(record.id)
