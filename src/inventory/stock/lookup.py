"""Record lookups shared by command handlers and the control component."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from inventory.stock.errors import NotFound
from inventory.stock.record import InventoryRecord


def load_record(inventory_record_id) -> InventoryRecord:
    try:
        return current_domain.repository_for(InventoryRecord).get(inventory_record_id)
    except ObjectNotFoundError as exc:
        raise NotFound({"_entity": f"Inventory record {inventory_record_id} not found"}) from exc


def find_record_by_sku(sku) -> InventoryRecord:
    matches = current_domain.repository_for(InventoryRecord)._dao.query.filter(sku=sku).all().items
    if not matches:
        raise NotFound({"_entity": f"No inventory record for SKU {sku}"})
    return matches[0]


def sku_is_registered(sku) -> bool:
    return bool(current_domain.repository_for(InventoryRecord)._dao.query.filter(sku=sku).all().items)
