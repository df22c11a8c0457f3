"""Tests for the Movement entity."""

from datetime import UTC, datetime

import pytest
from inventory.stock.record import InventoryRecord, Movement, MovementType
from protean import current_domain
from protean.exceptions import InvalidOperationError, ValidationError

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def _movement(**overrides):
    defaults = {
        "movement_type": MovementType.INBOUND.value,
        "quantity": 10,
        "previous_quantity": 5,
        "new_quantity": 15,
        "created_at": NOW,
    }
    defaults.update(overrides)
    return Movement(**defaults)


class TestMovementConstruction:
    def test_construction(self):
        movement = _movement(reason="restock", reference="PO-77")
        assert movement.movement_type == "Inbound"
        assert movement.quantity == 10
        assert movement.reason == "restock"
        assert movement.reference == "PO-77"
        assert movement.created_at == NOW

    def test_requires_movement_type(self):
        with pytest.raises(ValidationError):
            Movement(quantity=1, previous_quantity=0, new_quantity=1, created_at=NOW)

    def test_rejects_unknown_movement_type(self):
        with pytest.raises(ValidationError):
            _movement(movement_type="Teleport")

    def test_requires_timestamp(self):
        with pytest.raises(ValidationError):
            Movement(movement_type="Inbound", quantity=1, previous_quantity=0, new_quantity=1)


class TestQuantityChange:
    @pytest.mark.parametrize(
        ("movement_type", "previous", "new", "expected"),
        [
            ("Inbound", 5, 15, 10),
            ("Return", 5, 15, 10),
            ("Outbound", 15, 5, -10),
            ("Damage", 15, 5, -10),
            ("Expiry", 15, 5, -10),
            ("Promotion", 15, 5, -10),
            ("Transfer", 15, 5, -10),
        ],
    )
    def test_signed_change_follows_type(self, movement_type, previous, new, expected):
        movement = _movement(movement_type=movement_type, previous_quantity=previous, new_quantity=new)
        assert movement.quantity_change == expected
        assert movement.previous_quantity + movement.quantity_change == movement.new_quantity

    def test_adjustment_change_is_signed_difference(self):
        movement = _movement(movement_type="Adjustment", quantity=3, previous_quantity=10, new_quantity=7)
        assert movement.quantity_change == -3

    def test_zero_adjustment(self):
        movement = _movement(movement_type="Adjustment", quantity=0, previous_quantity=7, new_quantity=7)
        assert movement.quantity_change == 0


class TestDirectionPredicates:
    def test_inbound(self):
        movement = _movement()
        assert movement.is_inbound()
        assert not movement.is_outbound()
        assert not movement.is_adjustment()

    def test_outbound(self):
        movement = _movement(movement_type="Outbound", previous_quantity=15, new_quantity=5)
        assert movement.is_outbound()
        assert not movement.is_inbound()

    def test_adjustment(self):
        movement = _movement(movement_type="Adjustment", quantity=1, previous_quantity=4, new_quantity=5)
        assert movement.is_adjustment()
        assert not movement.is_inbound()
        assert not movement.is_outbound()


class TestImmutability:
    def test_recorded_fields_cannot_change(self):
        movement = _movement(reason="restock")
        with pytest.raises(InvalidOperationError):
            movement.quantity = 99
        with pytest.raises(InvalidOperationError):
            movement.reason = "rewritten"
        assert (movement.quantity, movement.reason) == (10, "restock")

    def test_persisted_log_lines_cannot_be_rewritten(self):
        repo = current_domain.repository_for(InventoryRecord)
        record = InventoryRecord.create(product_id="prod-001", sku="LAMP-1", initial_quantity=5)
        repo.add(record)

        loaded = repo.get(record.id)
        line = loaded.movements[0]
        with pytest.raises(InvalidOperationError):
            line.new_quantity = 500
        assert repo.get(record.id).movements[0].new_quantity == 5
