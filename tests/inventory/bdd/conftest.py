"""Shared BDD fixtures and step definitions for the Inventory domain."""

from datetime import timedelta

import pytest
from inventory.stock import errors
from inventory.stock.events import (
    InventoryRecordCreated,
    LifecycleStatusChanged,
    ReorderPointReached,
    ReservationCancelled,
    ReservationExpired,
    ReservationFulfilled,
    ReservationReleased,
    StockAdded,
    StockAdjusted,
    StockRemoved,
    StockReserved,
    StockReturned,
    StockWrittenOff,
)
from inventory.stock.record import InventoryRecord
from pytest_bdd import given, parsers, then

# Map event name strings to classes for dynamic lookup in Then steps
_INVENTORY_EVENT_CLASSES = {
    "InventoryRecordCreated": InventoryRecordCreated,
    "StockAdded": StockAdded,
    "StockRemoved": StockRemoved,
    "StockReturned": StockReturned,
    "StockWrittenOff": StockWrittenOff,
    "StockAdjusted": StockAdjusted,
    "StockReserved": StockReserved,
    "ReservationReleased": ReservationReleased,
    "ReservationFulfilled": ReservationFulfilled,
    "ReservationExpired": ReservationExpired,
    "ReservationCancelled": ReservationCancelled,
    "LifecycleStatusChanged": LifecycleStatusChanged,
    "ReorderPointReached": ReorderPointReached,
}


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def held():
    """The reservation the scenario is working with."""
    return {"reservation": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("an inventory record with {quantity:d} units on hand"), target_fixture="record")
def inventory_record(quantity):
    record = InventoryRecord.create(
        product_id="prod-bdd-001",
        sku="TSHIRT-BLK-M",
        initial_quantity=quantity,
        low_stock_threshold=10,
        reorder_point=5,
    )
    record._events.clear()
    return record


@given(parsers.cfparse('{quantity:d} units are reserved for order "{order_id}"'))
def reserved_for_order(record, held, quantity, order_id):
    held["reservation"] = record.reserve(quantity, order_id)
    record._events.clear()


@given(parsers.cfparse('{quantity:d} units are reserved for order "{order_id}" for {minutes:d} minutes'))
def reserved_with_expiry(record, held, clock, quantity, order_id, minutes):
    held["reservation"] = record.reserve(quantity, order_id, expires_at=clock.now() + timedelta(minutes=minutes))
    record._events.clear()


@given(parsers.cfparse("{minutes:d} minutes pass"))
def time_passes(clock, minutes):
    clock.advance(minutes=minutes)


@given("the expiry sweep has run")
def sweep_has_run(record, clock):
    for reservation in record.due_reservations(clock.now()):
        record.expire(reservation.id)
    record._events.clear()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the record has {quantity:d} units on hand"))
def units_on_hand(record, quantity):
    assert record.quantity == quantity


@then(parsers.cfparse("the record has {quantity:d} units reserved"))
def units_reserved(record, quantity):
    assert record.reserved == quantity


@then(parsers.cfparse("the record has {quantity:d} units available"))
def units_available(record, quantity):
    assert record.available == quantity


@then(parsers.cfparse("the record has {count:d} movements"))
def movement_count(record, count):
    assert len(record.movements) == count


@then(parsers.cfparse('the stock status is "{status}"'))
def stock_status_is(record, status):
    assert record.stock_status == status


@then(parsers.cfparse('the reservation is "{status}"'))
def reservation_status_is(held, status):
    assert held["reservation"].status == status


@then(parsers.cfparse('the last movement is "{movement_type}" from {previous:d} to {new:d}'))
def last_movement(record, movement_type, previous, new):
    movement = record.movements[-1]
    assert movement.movement_type == movement_type
    assert movement.previous_quantity == previous
    assert movement.new_quantity == new


@then(parsers.cfparse('the action fails with "{error_name}"'))
def action_fails(error, error_name):
    assert error["exc"] is not None, "Expected an error but none was raised"
    assert isinstance(error["exc"], getattr(errors, error_name))


@then(parsers.cfparse("a {event_type} event is raised"))
def inventory_event_raised(record, event_type):
    event_cls = _INVENTORY_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in record._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in record._events]}"


@then(parsers.cfparse("no {event_type} event is raised"))
def inventory_event_not_raised(record, event_type):
    event_cls = _INVENTORY_EVENT_CLASSES[event_type]
    assert not any(isinstance(e, event_cls) for e in record._events)
