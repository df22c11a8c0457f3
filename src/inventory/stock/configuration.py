"""Record configuration — thresholds, lifecycle, cost and descriptive metadata.

UpdateLocation, UpdateSupplier and SetAttribute carry JSON payloads. For the
two updates only the keys present in ``changes`` are applied, so a key sent
as null clears the field while an absent key leaves it untouched.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.stock.lookup import load_record
from inventory.stock.record import InventoryRecord

_LOCATION_KEYS = {"warehouse_id", "location", "bin_code"}
_SUPPLIER_KEYS = {"supplier_id", "supplier_sku", "lead_time_days"}


@inventory.command(part_of="InventoryRecord")
class SetThresholds:
    inventory_record_id = Identifier(required=True)
    low_stock_threshold = Integer(required=True)
    reorder_point = Integer(required=True)
    max_stock_level = Integer(required=True)
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class SetLifecycleStatus:
    inventory_record_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class SetUnitCost:
    inventory_record_id = Identifier(required=True)
    unit_cost = Float(required=True)
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class UpdateLocation:
    inventory_record_id = Identifier(required=True)
    changes = Text(required=True)  # JSON object with any of warehouse_id, location, bin_code
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class UpdateSupplier:
    inventory_record_id = Identifier(required=True)
    changes = Text(required=True)  # JSON object with any of supplier_id, supplier_sku, lead_time_days
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class SetNotes:
    inventory_record_id = Identifier(required=True)
    notes = Text()
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class SetAttribute:
    inventory_record_id = Identifier(required=True)
    key = String(required=True, max_length=100)
    value = Text(required=True)  # JSON scalar
    as_of = DateTime()


@inventory.command(part_of="InventoryRecord")
class RemoveAttribute:
    inventory_record_id = Identifier(required=True)
    key = String(required=True, max_length=100)
    as_of = DateTime()


def _parse_changes(payload, allowed):
    changes = json.loads(payload) if payload else {}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError({"changes": [f"Unknown fields: {', '.join(sorted(unknown))}"]})
    return changes


@inventory.command_handler(part_of=InventoryRecord)
class ConfigurationHandler:
    @handle(SetThresholds)
    def set_thresholds(self, command):
        record = load_record(command.inventory_record_id)
        record.set_thresholds(
            low_stock_threshold=command.low_stock_threshold,
            reorder_point=command.reorder_point,
            max_stock_level=command.max_stock_level,
            now=command.as_of,
        )
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(SetLifecycleStatus)
    def set_lifecycle_status(self, command):
        record = load_record(command.inventory_record_id)
        record.set_lifecycle_status(command.status, now=command.as_of)
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(SetUnitCost)
    def set_unit_cost(self, command):
        record = load_record(command.inventory_record_id)
        record.set_unit_cost(command.unit_cost, now=command.as_of)
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(UpdateLocation)
    def update_location(self, command):
        record = load_record(command.inventory_record_id)
        record.update_location(now=command.as_of, **_parse_changes(command.changes, _LOCATION_KEYS))
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(UpdateSupplier)
    def update_supplier(self, command):
        record = load_record(command.inventory_record_id)
        record.update_supplier(now=command.as_of, **_parse_changes(command.changes, _SUPPLIER_KEYS))
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(SetNotes)
    def set_notes(self, command):
        record = load_record(command.inventory_record_id)
        record.set_notes(command.notes, now=command.as_of)
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(SetAttribute)
    def set_attribute(self, command):
        record = load_record(command.inventory_record_id)
        record.set_attribute(command.key, json.loads(command.value), now=command.as_of)
        current_domain.repository_for(InventoryRecord).add(record)

    @handle(RemoveAttribute)
    def remove_attribute(self, command):
        record = load_record(command.inventory_record_id)
        record.remove_attribute(command.key, now=command.as_of)
        current_domain.repository_for(InventoryRecord).add(record)
