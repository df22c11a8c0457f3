"""Domain events for the InventoryRecord aggregate.

One event is raised per state transition. Every event that changes the
counters carries them before and after the change, so read models and
downstream consumers never have to reload the record:

- previous_quantity / new_quantity  (on-hand)
- previous_reserved / new_reserved
- new_available and the derived stock_status

Events that book a movement also carry the movement's identity and numbers.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from inventory.domain import inventory


@inventory.event(part_of="InventoryRecord")
class InventoryRecordCreated:
    """A ledger entry was opened for a SKU."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    low_stock_threshold = Integer(required=True)
    reorder_point = Integer(required=True)
    max_stock_level = Integer(required=True)
    unit_cost = Float()
    lifecycle_status = String(required=True)
    stock_status = String(required=True)
    created_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Quantity movements
# ---------------------------------------------------------------------------
@inventory.event(part_of="InventoryRecord")
class StockAdded:
    """Stock was received, increasing on-hand quantity."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    movement_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)
    reason = String()
    reference = String()
    supplier_id = Identifier()
    created_by = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    total_value = Float()
    added_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class StockRemoved:
    """Unreserved stock left the warehouse outside of a reservation."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    movement_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)
    reason = String()
    reference = String()
    order_id = Identifier()
    created_by = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    total_value = Float()
    removed_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class StockReturned:
    """Customer-returned units went back on the shelf."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    movement_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)
    reason = String()
    order_id = Identifier()
    created_by = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    total_value = Float()
    returned_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class StockWrittenOff:
    """Units were written off as damaged, expired or given away in a promotion."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    movement_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)
    reason = String()
    created_by = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    total_value = Float()
    written_off_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class StockAdjusted:
    """On-hand quantity was set to a counted value."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    movement_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)  # |new - previous|
    quantity_change = Integer(required=True)  # signed
    reason = String()
    counted_by = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    total_value = Float()
    adjusted_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Reservation lifecycle
# ---------------------------------------------------------------------------
@inventory.event(part_of="InventoryRecord")
class StockReserved:
    """Stock was held for an order, decreasing available quantity."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    reserved_at = DateTime(required=True)
    expires_at = DateTime()


@inventory.event(part_of="InventoryRecord")
class ReservationReleased:
    """A hold was given back before fulfillment."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    released_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class ReservationFulfilled:
    """Reserved units shipped: the hold closed and on-hand dropped in one step."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    movement_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)
    reason = String()
    created_by = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    total_value = Float()
    fulfilled_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class ReservationExpired:
    """A hold passed its expiry time and was closed by the sweep."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    expires_at = DateTime()
    expired_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class ReservationCancelled:
    """A hold was cancelled, usually because its order was."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    cancelled_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class ReservationExtended:
    """An active hold was given a later expiry time."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_expires_at = DateTime()
    expires_at = DateTime(required=True)
    extended_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
@inventory.event(part_of="InventoryRecord")
class ThresholdsChanged:
    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    previous_low_stock_threshold = Integer(required=True)
    previous_reorder_point = Integer(required=True)
    previous_max_stock_level = Integer(required=True)
    low_stock_threshold = Integer(required=True)
    reorder_point = Integer(required=True)
    max_stock_level = Integer(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    changed_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class LifecycleStatusChanged:
    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    new_available = Integer(required=True)
    stock_status = String(required=True)
    changed_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class UnitCostChanged:
    __version__ = 1

    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    previous_unit_cost = Float()
    unit_cost = Float(required=True)
    total_value = Float(required=True)
    changed_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class ReorderPointReached:
    """Available stock fell to or below the reorder point.

    Raised on the transition only, not on every change while the record
    stays below the point.
    """

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    current_available = Integer(required=True)
    reorder_point = Integer(required=True)
    detected_at = DateTime(required=True)
