"""Application tests for inventory record commands."""

import json

import pytest
from inventory.stock.adjustment import AdjustStock
from inventory.stock.configuration import (
    RemoveAttribute,
    SetAttribute,
    SetLifecycleStatus,
    SetNotes,
    SetThresholds,
    SetUnitCost,
    UpdateLocation,
    UpdateSupplier,
)
from inventory.stock.errors import InsufficientStock, InvalidQuantity, NotFound
from inventory.stock.receiving import AddStock, ReturnStock
from inventory.stock.record import InventoryRecord, MovementType
from inventory.stock.registration import CreateInventoryRecord
from inventory.stock.removal import RemoveStock, WriteOffStock
from protean import current_domain
from protean.exceptions import ValidationError


def _create_record(**overrides):
    defaults = {
        "product_id": "prod-001",
        "sku": "TSHIRT-BLK-M",
        "initial_quantity": 100,
    }
    defaults.update(overrides)
    return current_domain.process(CreateInventoryRecord(**defaults), asynchronous=False)


def _load(record_id):
    return current_domain.repository_for(InventoryRecord).get(record_id)


class TestCreateInventoryRecordCommand:
    def test_create_persists(self, clock):
        record_id = _create_record(variant_id="var-001", unit_cost=2.0)
        record = _load(record_id)

        assert record.sku == "TSHIRT-BLK-M"
        assert str(record.variant_id) == "var-001"
        assert record.quantity == 100
        assert record.total_value == 200.0
        assert len(record.movements) == 1
        assert record.created_at == clock.now()

    def test_create_applies_thresholds(self):
        record = _load(_create_record(low_stock_threshold=25, reorder_point=12, max_stock_level=400))
        assert (record.low_stock_threshold, record.reorder_point, record.max_stock_level) == (25, 12, 400)

    def test_duplicate_sku_is_rejected(self):
        _create_record()
        with pytest.raises(ValidationError):
            _create_record()


class TestMovementCommands:
    def test_add_stock(self):
        record_id = _create_record(initial_quantity=10)
        movement_id = current_domain.process(
            AddStock(inventory_record_id=record_id, quantity=40, reference="PO-9", supplier_id="sup-1"),
            asynchronous=False,
        )

        record = _load(record_id)
        assert record.quantity == 50
        movement = next(m for m in record.movements if str(m.id) == movement_id)
        assert movement.reference == "PO-9"
        assert movement.reason == "restock"

    def test_remove_stock(self):
        record_id = _create_record(initial_quantity=10)
        current_domain.process(
            RemoveStock(inventory_record_id=record_id, quantity=4, order_id="ord-7"),
            asynchronous=False,
        )
        assert _load(record_id).quantity == 6

    def test_remove_more_than_available(self):
        record_id = _create_record(initial_quantity=10)
        with pytest.raises(InsufficientStock):
            current_domain.process(
                RemoveStock(inventory_record_id=record_id, quantity=11),
                asynchronous=False,
            )
        record = _load(record_id)
        assert record.quantity == 10
        assert len(record.movements) == 1

    def test_return_stock(self):
        record_id = _create_record(initial_quantity=10)
        current_domain.process(
            ReturnStock(inventory_record_id=record_id, quantity=2, order_id="ord-7"),
            asynchronous=False,
        )
        record = _load(record_id)
        assert record.quantity == 12
        assert len(record.movements_of_type(MovementType.RETURN)) == 1

    def test_write_off(self):
        record_id = _create_record(initial_quantity=10)
        current_domain.process(
            WriteOffStock(inventory_record_id=record_id, quantity=3, movement_type="Damage", reason="forklift"),
            asynchronous=False,
        )
        record = _load(record_id)
        assert record.quantity == 7
        assert record.movements_of_type("Damage")[0].reason == "forklift"

    def test_adjust_stock(self):
        record_id = _create_record(initial_quantity=10)
        current_domain.process(
            AdjustStock(inventory_record_id=record_id, new_quantity=8, reason="cycle count", counted_by="clerk-1"),
            asynchronous=False,
        )
        record = _load(record_id)
        assert record.quantity == 8
        assert record.last_counted_at is not None

    def test_adjust_below_zero(self):
        record_id = _create_record(initial_quantity=10)
        with pytest.raises(InvalidQuantity):
            current_domain.process(
                AdjustStock(inventory_record_id=record_id, new_quantity=-2, reason="cycle count"),
                asynchronous=False,
            )

    def test_unknown_record(self):
        with pytest.raises(NotFound):
            current_domain.process(AddStock(inventory_record_id="missing", quantity=1), asynchronous=False)


class TestConfigurationCommands:
    def test_set_thresholds(self):
        record_id = _create_record(initial_quantity=15)
        current_domain.process(
            SetThresholds(inventory_record_id=record_id, low_stock_threshold=20, reorder_point=10, max_stock_level=200),
            asynchronous=False,
        )
        record = _load(record_id)
        assert record.low_stock_threshold == 20
        assert record.is_low_stock()

    def test_set_lifecycle_status(self):
        record_id = _create_record()
        current_domain.process(
            SetLifecycleStatus(inventory_record_id=record_id, status="Discontinued"),
            asynchronous=False,
        )
        record = _load(record_id)
        assert record.lifecycle_status == "Discontinued"
        assert record.is_out_of_stock()

    def test_set_unit_cost(self):
        record_id = _create_record(initial_quantity=4)
        current_domain.process(SetUnitCost(inventory_record_id=record_id, unit_cost=2.5), asynchronous=False)
        assert _load(record_id).total_value == 10.0

    def test_update_location_applies_only_given_keys(self):
        record_id = _create_record()
        current_domain.process(
            UpdateLocation(
                inventory_record_id=record_id,
                changes=json.dumps({"warehouse_id": "wh-1", "location": "A-1", "bin_code": "07"}),
            ),
            asynchronous=False,
        )
        current_domain.process(
            UpdateLocation(inventory_record_id=record_id, changes=json.dumps({"location": None})),
            asynchronous=False,
        )

        location = _load(record_id).location
        assert str(location.warehouse_id) == "wh-1"
        assert location.location is None
        assert location.bin_code == "07"

    def test_update_location_rejects_unknown_keys(self):
        record_id = _create_record()
        with pytest.raises(ValidationError):
            current_domain.process(
                UpdateLocation(inventory_record_id=record_id, changes=json.dumps({"aisle": "3"})),
                asynchronous=False,
            )

    def test_update_supplier(self):
        record_id = _create_record()
        current_domain.process(
            UpdateSupplier(
                inventory_record_id=record_id,
                changes=json.dumps({"supplier_id": "sup-1", "lead_time_days": 14}),
            ),
            asynchronous=False,
        )
        supplier = _load(record_id).supplier
        assert str(supplier.supplier_id) == "sup-1"
        assert supplier.lead_time_days == 14
        assert supplier.supplier_sku is None

    def test_set_notes(self):
        record_id = _create_record()
        current_domain.process(SetNotes(inventory_record_id=record_id, notes="Keep dry"), asynchronous=False)
        assert _load(record_id).notes == "Keep dry"

    def test_set_and_remove_attribute(self):
        record_id = _create_record()
        current_domain.process(
            SetAttribute(inventory_record_id=record_id, key="fragile", value=json.dumps(True)),
            asynchronous=False,
        )
        current_domain.process(
            SetAttribute(inventory_record_id=record_id, key="weight_kg", value=json.dumps(0.4)),
            asynchronous=False,
        )
        assert _load(record_id).attribute_map() == {"fragile": True, "weight_kg": 0.4}

        current_domain.process(RemoveAttribute(inventory_record_id=record_id, key="fragile"), asynchronous=False)
        assert _load(record_id).attribute_map() == {"weight_kg": 0.4}

    def test_structured_attribute_value_is_rejected(self):
        record_id = _create_record()
        with pytest.raises(ValidationError):
            current_domain.process(
                SetAttribute(inventory_record_id=record_id, key="dims", value=json.dumps({"w": 2})),
                asynchronous=False,
            )
