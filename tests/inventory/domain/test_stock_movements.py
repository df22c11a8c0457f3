"""Tests for on-hand movements: receive, remove, return, write-off and adjust."""

import pytest
from inventory.stock.errors import InsufficientStock, InvalidQuantity
from inventory.stock.record import InventoryRecord, MovementType, StockStatus
from protean.exceptions import ValidationError


def _make_record(**overrides):
    defaults = {
        "product_id": "prod-001",
        "sku": "MUG-WHT-350",
        "initial_quantity": 100,
    }
    defaults.update(overrides)
    return InventoryRecord.create(**defaults)


def _ledger_is_chained(record):
    """Each movement starts where the previous one ended and the last ends at on-hand."""
    movements = sorted(record.movements, key=lambda m: m.created_at)
    running = 0
    for movement in movements:
        if movement.previous_quantity != running:
            return False
        running = movement.previous_quantity + movement.quantity_change
        if running != movement.new_quantity:
            return False
    return running == record.quantity


class TestReceiveAndSell:
    def test_receive_then_sell(self):
        record = _make_record(initial_quantity=0)
        record.add_stock(50)
        record.remove_stock(20)

        assert record.quantity == 30
        assert record.reserved == 0
        assert record.available == 30
        assert record.stock_status == StockStatus.IN_STOCK.value

        inbound, outbound = sorted(record.movements, key=lambda m: m.new_quantity, reverse=True)
        assert inbound.movement_type == MovementType.INBOUND.value
        assert (inbound.previous_quantity, inbound.new_quantity) == (0, 50)
        assert outbound.movement_type == MovementType.OUTBOUND.value
        assert (outbound.previous_quantity, outbound.new_quantity) == (50, 30)
        assert _ledger_is_chained(record)


class TestAddStock:
    def test_add_increases_quantity_and_available(self):
        record = _make_record(initial_quantity=10)
        record.add_stock(15)
        assert record.quantity == 25
        assert record.available == 25

    def test_add_records_supplier_and_reference(self):
        record = _make_record(initial_quantity=0)
        movement = record.add_stock(20, reference="PO-1001", supplier_id="sup-001", created_by="receiver-7")

        assert movement.reference == "PO-1001"
        assert str(movement.supplier_id) == "sup-001"
        assert movement.created_by == "receiver-7"
        assert movement.reason == "restock"

    def test_add_stamps_restock_time(self, clock):
        record = _make_record(initial_quantity=0)
        clock.advance(hours=2)
        record.add_stock(5)
        assert record.last_restocked_at == clock.now()

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_is_rejected(self, quantity):
        record = _make_record(initial_quantity=10)
        with pytest.raises(InvalidQuantity) as exc_info:
            record.add_stock(quantity)
        assert "quantity" in exc_info.value.messages
        assert record.quantity == 10
        assert len(record.movements) == 1

    def test_movement_carries_cost(self):
        record = _make_record(initial_quantity=0, unit_cost=4.0)
        movement = record.add_stock(5)
        assert movement.unit_cost == 4.0
        assert movement.total_cost == 20.0


class TestRemoveStock:
    def test_remove_decreases_quantity(self):
        record = _make_record(initial_quantity=100)
        movement = record.remove_stock(30, order_id="ord-001")

        assert record.quantity == 70
        assert record.available == 70
        assert str(movement.order_id) == "ord-001"
        assert movement.reason == "sale"

    def test_remove_all_available(self):
        record = _make_record(initial_quantity=10)
        record.remove_stock(10)
        assert record.quantity == 0
        assert record.stock_status == StockStatus.OUT_OF_STOCK.value

    def test_remove_more_than_available(self):
        record = _make_record(initial_quantity=10)
        with pytest.raises(InsufficientStock) as exc_info:
            record.remove_stock(11)
        assert "quantity" in exc_info.value.messages
        assert record.quantity == 10
        assert len(record.movements) == 1

    def test_reserved_units_cannot_be_removed(self):
        record = _make_record(initial_quantity=10)
        record.reserve(8, "ord-001")
        with pytest.raises(InsufficientStock):
            record.remove_stock(3)
        assert record.quantity == 10
        assert record.reserved == 8

    def test_remove_is_allowed_on_inactive_record(self):
        record = _make_record(initial_quantity=10)
        record.set_lifecycle_status("Discontinued")
        record.remove_stock(4)
        assert record.quantity == 6

    def test_remove_stamps_sale_time(self, clock):
        record = _make_record()
        clock.advance(minutes=10)
        record.remove_stock(1)
        assert record.last_sold_at == clock.now()


class TestReturnStock:
    def test_return_increases_quantity(self):
        record = _make_record(initial_quantity=10)
        movement = record.return_stock(3, order_id="ord-009")

        assert record.quantity == 13
        assert movement.movement_type == MovementType.RETURN.value
        assert movement.reason == "customer return"
        assert movement.reference == "ord-009"
        assert movement.quantity_change == 3

    def test_return_is_accepted_on_discontinued_record(self):
        record = _make_record(initial_quantity=0)
        record.set_lifecycle_status("Discontinued")
        record.return_stock(2)
        assert record.quantity == 2
        assert record.stock_status == StockStatus.OUT_OF_STOCK.value

    def test_non_positive_return_is_rejected(self):
        record = _make_record()
        with pytest.raises(InvalidQuantity):
            record.return_stock(0)


class TestWriteOff:
    @pytest.mark.parametrize("movement_type", ["Damage", "Expiry", "Promotion"])
    def test_write_off_types(self, movement_type):
        record = _make_record(initial_quantity=20)
        movement = record.write_off(5, movement_type, reason="shelf check")

        assert record.quantity == 15
        assert movement.movement_type == movement_type
        assert movement.quantity_change == -5
        assert movement.is_outbound()

    def test_write_off_accepts_enum_member(self):
        record = _make_record(initial_quantity=20)
        movement = record.write_off(1, MovementType.DAMAGE, reason="crushed")
        assert movement.movement_type == "Damage"

    @pytest.mark.parametrize("movement_type", ["Outbound", "Inbound", "Adjustment", "Lost"])
    def test_other_movement_types_are_rejected(self, movement_type):
        record = _make_record(initial_quantity=20)
        with pytest.raises(ValidationError) as exc_info:
            record.write_off(1, movement_type, reason="x")
        assert "movement_type" in exc_info.value.messages

    def test_reason_is_required(self):
        record = _make_record(initial_quantity=20)
        with pytest.raises(ValidationError) as exc_info:
            record.write_off(1, "Damage", reason="")
        assert "reason" in exc_info.value.messages

    def test_cannot_write_off_reserved_units(self):
        record = _make_record(initial_quantity=10)
        record.reserve(6, "ord-001")
        with pytest.raises(InsufficientStock):
            record.write_off(5, "Damage", reason="water damage")
        assert record.quantity == 10


class TestAdjustStock:
    def test_adjust_down(self):
        record = _make_record(initial_quantity=100)
        movement = record.adjust_stock(93, reason="cycle count", counted_by="clerk-1")

        assert record.quantity == 93
        assert record.available == 93
        assert movement.movement_type == MovementType.ADJUSTMENT.value
        assert movement.quantity == 7
        assert movement.quantity_change == -7
        assert movement.created_by == "clerk-1"

    def test_adjust_up(self):
        record = _make_record(initial_quantity=10)
        movement = record.adjust_stock(12, reason="found in back room")
        assert movement.quantity == 2
        assert movement.quantity_change == 2

    def test_adjust_to_same_quantity_records_zero_movement(self):
        record = _make_record(initial_quantity=10)
        movement = record.adjust_stock(10, reason="count confirmed")

        assert movement.quantity == 0
        assert movement.previous_quantity == movement.new_quantity == 10
        assert len(record.movements) == 2

    def test_adjust_keeps_reservations(self):
        record = _make_record(initial_quantity=50)
        record.reserve(20, "ord-001")
        record.adjust_stock(30, reason="cycle count")

        assert record.quantity == 30
        assert record.reserved == 20
        assert record.available == 10

    def test_adjust_below_reserved(self):
        record = _make_record(initial_quantity=50)
        record.reserve(20, "ord-001")
        with pytest.raises(InvalidQuantity):
            record.adjust_stock(19, reason="cycle count")
        assert record.quantity == 50

    def test_negative_quantity(self):
        record = _make_record()
        with pytest.raises(InvalidQuantity):
            record.adjust_stock(-1, reason="cycle count")

    def test_reason_is_required(self):
        record = _make_record()
        with pytest.raises(ValidationError) as exc_info:
            record.adjust_stock(5, reason="")
        assert "reason" in exc_info.value.messages

    def test_adjust_stamps_count_time(self, clock):
        record = _make_record()
        clock.advance(days=1)
        record.adjust_stock(99, reason="cycle count")
        assert record.last_counted_at == clock.now()


class TestMovementLog:
    def test_every_change_is_chained(self, clock):
        record = _make_record(initial_quantity=40)
        for step in (
            lambda: record.add_stock(10),
            lambda: record.remove_stock(5),
            lambda: record.return_stock(2),
            lambda: record.write_off(3, "Damage", reason="torn"),
            lambda: record.adjust_stock(41, reason="cycle count"),
        ):
            clock.advance(seconds=1)
            step()

        assert len(record.movements) == 6
        assert _ledger_is_chained(record)
        assert record.quantity == 41

    def test_reservations_do_not_write_movements(self):
        record = _make_record(initial_quantity=40)
        reservation = record.reserve(10, "ord-001")
        record.release(reservation.id)
        assert len(record.movements) == 1

    def test_movement_ids_are_unique(self):
        record = _make_record(initial_quantity=10)
        record.add_stock(1)
        record.add_stock(1)
        assert len({m.id for m in record.movements}) == 3
