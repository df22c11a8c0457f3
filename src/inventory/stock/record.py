"""InventoryRecord aggregate (CQRS) — the stock ledger entry for one SKU.

The record reconciles concurrent demand against a finite on-hand quantity.
It owns two child collections: the append-only movement log that explains
every change to on-hand, and the reservations that hold stock for orders.

Counter Model:
    quantity:  Physical units on hand
    reserved:  Units held by active reservations
    available: quantity - reserved (what can still be promised)

Reservation State Machine:
    ACTIVE → FULFILLED | RELEASED | EXPIRED | CANCELLED   (all terminal)

Every mutation validates first and then changes counters, children and
derived fields together inside ``atomic_change``, so the invariants below
are only ever checked against a finished state.
"""

import json
from datetime import datetime
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from inventory.clock import as_utc, get_clock
from inventory.domain import inventory
from inventory.stock.errors import (
    InsufficientStock,
    InvalidQuantity,
    InvalidState,
    InvalidThresholds,
    NotFound,
)
from inventory.stock.events import (
    InventoryRecordCreated,
    LifecycleStatusChanged,
    ReorderPointReached,
    ReservationCancelled,
    ReservationExpired,
    ReservationExtended,
    ReservationFulfilled,
    ReservationReleased,
    StockAdded,
    StockAdjusted,
    StockRemoved,
    StockReserved,
    StockReturned,
    StockWrittenOff,
    ThresholdsChanged,
    UnitCostChanged,
)

DEFAULT_LOW_STOCK_THRESHOLD = 10
DEFAULT_REORDER_POINT = 5
DEFAULT_MAX_STOCK_LEVEL = 1000

_UNSET = object()


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class LifecycleStatus(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISCONTINUED = "Discontinued"
    BACKORDER = "Backorder"


class StockStatus(Enum):
    IN_STOCK = "In_Stock"
    LOW_STOCK = "Low_Stock"
    OUT_OF_STOCK = "Out_Of_Stock"
    BACKORDER = "Backorder"


class ReservationStatus(Enum):
    ACTIVE = "Active"
    FULFILLED = "Fulfilled"
    RELEASED = "Released"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"


class MovementType(Enum):
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"
    ADJUSTMENT = "Adjustment"
    TRANSFER = "Transfer"
    RETURN = "Return"
    DAMAGE = "Damage"
    EXPIRY = "Expiry"
    PROMOTION = "Promotion"


_INBOUND_TYPES = {MovementType.INBOUND, MovementType.RETURN}
_OUTBOUND_TYPES = {
    MovementType.OUTBOUND,
    MovementType.DAMAGE,
    MovementType.EXPIRY,
    MovementType.PROMOTION,
    MovementType.TRANSFER,
}
WRITE_OFF_TYPES = {MovementType.DAMAGE, MovementType.EXPIRY, MovementType.PROMOTION}

_ATTRIBUTE_VALUE_TYPES = (str, bool, int, float)


def derive_stock_status(lifecycle_status, available, low_stock_threshold) -> StockStatus:
    """Stock status as a pure function of lifecycle, available and the low threshold."""
    if LifecycleStatus(lifecycle_status) != LifecycleStatus.ACTIVE or available <= 0:
        return StockStatus.OUT_OF_STOCK
    if available <= low_stock_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def validate_thresholds(low_stock_threshold, reorder_point, max_stock_level):
    if min(low_stock_threshold, reorder_point, max_stock_level) < 0:
        raise InvalidThresholds({"thresholds": ["Thresholds cannot be negative"]})
    if reorder_point > low_stock_threshold:
        raise InvalidThresholds({"reorder_point": ["Reorder point cannot exceed the low stock threshold"]})
    if max_stock_level < low_stock_threshold:
        raise InvalidThresholds({"max_stock_level": ["Max stock level cannot be below the low stock threshold"]})


def _require_positive(quantity):
    if quantity is None or quantity <= 0:
        raise InvalidQuantity({"quantity": ["Quantity must be positive"]})


def _resolve_now(now):
    return as_utc(now) if now is not None else get_clock().now()


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@inventory.value_object(part_of="InventoryRecord")
class StockThresholds:
    """Reorder and alerting levels, ordered reorder <= low <= max."""

    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)
    reorder_point = Integer(default=DEFAULT_REORDER_POINT, min_value=0)
    max_stock_level = Integer(default=DEFAULT_MAX_STOCK_LEVEL, min_value=0)

    @invariant.post
    def thresholds_must_be_ordered(self):
        if not (self.reorder_point <= self.low_stock_threshold <= self.max_stock_level):
            raise ValidationError({"thresholds": ["Thresholds must satisfy reorder <= low <= max"]})


@inventory.value_object(part_of="InventoryRecord")
class StockLocation:
    warehouse_id = Identifier()
    location = String(max_length=100)
    bin_code = String(max_length=50)


@inventory.value_object(part_of="InventoryRecord")
class SupplierInfo:
    supplier_id = Identifier()
    supplier_sku = String(max_length=100)
    lead_time_days = Integer(min_value=0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
_RECORDED_MOVEMENT_FIELDS = frozenset(
    {
        "movement_type",
        "quantity",
        "previous_quantity",
        "new_quantity",
        "reason",
        "reference",
        "order_id",
        "supplier_id",
        "from_location",
        "to_location",
        "unit_cost",
        "total_cost",
        "created_by",
        "notes",
        "created_at",
    }
)


@inventory.entity(part_of="InventoryRecord")
class Movement:
    """One immutable line of the movement log.

    ``quantity`` is the magnitude of the change; the direction follows from
    the movement type. Adjustments record ``|new - previous|`` and may be zero
    when a count confirms the books.
    """

    movement_type = String(required=True, choices=MovementType)
    quantity = Integer(required=True, min_value=0)
    previous_quantity = Integer(required=True, min_value=0)
    new_quantity = Integer(required=True, min_value=0)
    reason = String(max_length=255)
    reference = String(max_length=255)
    order_id = Identifier()
    supplier_id = Identifier()
    from_location = String(max_length=100)
    to_location = String(max_length=100)
    unit_cost = Float()
    total_cost = Float()
    created_by = String(max_length=255)
    notes = Text()
    created_at = DateTime(required=True)

    def __setattr__(self, name, value):
        if name in _RECORDED_MOVEMENT_FIELDS and getattr(self, "_initialized", False):
            raise InvalidOperationError(f"Movement {name} cannot change once recorded")
        super().__setattr__(name, value)

    @invariant.post
    def quantities_must_reconcile(self):
        kind = MovementType(self.movement_type)
        if kind == MovementType.ADJUSTMENT:
            if self.quantity != abs(self.new_quantity - self.previous_quantity):
                raise ValidationError({"quantity": ["Adjustment must record the size of the change"]})
            return
        if self.quantity <= 0:
            raise ValidationError({"quantity": ["Movement quantity must be positive"]})
        expected = self.previous_quantity + self.quantity_change
        if self.new_quantity != expected:
            raise ValidationError({"new_quantity": [f"Expected {expected} after {kind.value.lower()} movement"]})

    @property
    def quantity_change(self):
        """Signed effect of this movement on on-hand quantity."""
        kind = MovementType(self.movement_type)
        if kind == MovementType.ADJUSTMENT:
            return self.new_quantity - self.previous_quantity
        return self.quantity if kind in _INBOUND_TYPES else -self.quantity

    def is_inbound(self):
        return MovementType(self.movement_type) in _INBOUND_TYPES

    def is_outbound(self):
        return MovementType(self.movement_type) in _OUTBOUND_TYPES

    def is_adjustment(self):
        return MovementType(self.movement_type) == MovementType.ADJUSTMENT


@inventory.entity(part_of="InventoryRecord")
class Reservation:
    """A hold on available stock for one order.

    Only ACTIVE reservations count towards the record's reserved total.
    The closing timestamp for each terminal state is stamped exactly once.
    """

    order_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    status = String(
        choices=ReservationStatus,
        default=ReservationStatus.ACTIVE.value,
    )
    reserved_at = DateTime(required=True)
    expires_at = DateTime()
    fulfilled_at = DateTime()
    released_at = DateTime()
    expired_at = DateTime()
    cancelled_at = DateTime()
    reason = String(max_length=255)
    notes = Text()

    def is_active(self):
        return ReservationStatus(self.status) == ReservationStatus.ACTIVE

    def is_terminal(self):
        return not self.is_active()

    def is_expired(self, now):
        """True once ``now`` is past the expiry time. Never changes state."""
        return self.expires_at is not None and as_utc(now) > as_utc(self.expires_at)

    def time_until_expiry(self, now):
        if self.expires_at is None:
            return None
        return as_utc(self.expires_at) - as_utc(now)

    def duration_held(self, now):
        closed_at = self.fulfilled_at or self.released_at or self.expired_at or self.cancelled_at
        return as_utc(closed_at or now) - as_utc(self.reserved_at)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@inventory.aggregate
class InventoryRecord:
    """Stock ledger entry for one SKU."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True, max_length=100, unique=True)
    quantity = Integer(default=0, min_value=0)
    reserved = Integer(default=0, min_value=0)
    available = Integer(default=0)
    thresholds = ValueObject(StockThresholds)
    lifecycle_status = String(
        choices=LifecycleStatus,
        default=LifecycleStatus.ACTIVE.value,
    )
    stock_status = String(
        choices=StockStatus,
        default=StockStatus.OUT_OF_STOCK.value,
    )
    unit_cost = Float(min_value=0.0)
    total_value = Float(default=0.0)
    location = ValueObject(StockLocation)
    supplier = ValueObject(SupplierInfo)
    notes = Text()
    attributes = Text(default="{}")  # JSON object; values are str, int, float or bool
    movements = HasMany(Movement)
    reservations = HasMany(Reservation)
    created_at = DateTime()
    updated_at = DateTime()
    last_restocked_at = DateTime()
    last_sold_at = DateTime()
    last_counted_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def reserved_cannot_exceed_quantity(self):
        if self.reserved > self.quantity:
            raise ValidationError({"reserved": ["Reserved quantity cannot exceed on-hand quantity"]})

    @invariant.post
    def available_must_equal_quantity_less_reserved(self):
        if self.available != self.quantity - self.reserved:
            raise ValidationError({"available": ["Available must equal quantity minus reserved"]})

    @invariant.post
    def reserved_must_match_active_reservations(self):
        held = sum(r.quantity for r in (self.reservations or []) if r.is_active())
        if held != self.reserved:
            raise ValidationError({"reserved": [f"Reserved {self.reserved} does not match active reservations {held}"]})

    @invariant.post
    def stock_status_must_follow_levels(self):
        expected = derive_stock_status(self.lifecycle_status, self.available, self.low_stock_threshold)
        if self.stock_status != expected.value:
            raise ValidationError({"stock_status": [f"Stock status must be {expected.value}"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        product_id,
        sku,
        variant_id=None,
        initial_quantity=0,
        low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
        reorder_point=DEFAULT_REORDER_POINT,
        max_stock_level=DEFAULT_MAX_STOCK_LEVEL,
        unit_cost=None,
        created_by=None,
        now=None,
    ):
        """Open a ledger entry for a SKU.

        A positive initial quantity is booked as an inbound movement so the
        movement log reconciles with on-hand from the very first line.
        """
        if not sku:
            raise ValidationError({"sku": ["SKU is required"]})
        if initial_quantity is None or initial_quantity < 0:
            raise InvalidQuantity({"initial_quantity": ["Initial quantity cannot be negative"]})
        validate_thresholds(low_stock_threshold, reorder_point, max_stock_level)
        if unit_cost is not None and unit_cost < 0:
            raise ValidationError({"unit_cost": ["Unit cost cannot be negative"]})

        now = _resolve_now(now)
        record = cls(
            product_id=product_id,
            variant_id=variant_id,
            sku=sku,
            quantity=0,
            reserved=0,
            available=0,
            thresholds=StockThresholds(
                low_stock_threshold=low_stock_threshold,
                reorder_point=reorder_point,
                max_stock_level=max_stock_level,
            ),
            lifecycle_status=LifecycleStatus.ACTIVE.value,
            stock_status=StockStatus.OUT_OF_STOCK.value,
            unit_cost=unit_cost,
            total_value=0.0,
            created_at=now,
            updated_at=now,
        )
        record.raise_(
            InventoryRecordCreated(
                inventory_record_id=str(record.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                sku=sku,
                low_stock_threshold=low_stock_threshold,
                reorder_point=reorder_point,
                max_stock_level=max_stock_level,
                unit_cost=unit_cost,
                lifecycle_status=record.lifecycle_status,
                stock_status=record.stock_status,
                created_at=now,
            )
        )
        if initial_quantity > 0:
            record.add_stock(initial_quantity, reason="initial stock", created_by=created_by, now=now)
        if record.needs_reorder():
            record._raise_reorder_point_reached(now)
        return record

    # -------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------
    @property
    def low_stock_threshold(self):
        return self.thresholds.low_stock_threshold if self.thresholds else DEFAULT_LOW_STOCK_THRESHOLD

    @property
    def reorder_point(self):
        return self.thresholds.reorder_point if self.thresholds else DEFAULT_REORDER_POINT

    @property
    def max_stock_level(self):
        return self.thresholds.max_stock_level if self.thresholds else DEFAULT_MAX_STOCK_LEVEL

    def _refresh_derived(self):
        self.available = self.quantity - self.reserved
        self.stock_status = derive_stock_status(
            self.lifecycle_status, self.available, self.low_stock_threshold
        ).value
        self.total_value = round(self.quantity * self.unit_cost, 2) if self.unit_cost is not None else 0.0

    def _counters(self, previous_quantity, previous_reserved):
        return {
            "previous_quantity": previous_quantity,
            "new_quantity": self.quantity,
            "previous_reserved": previous_reserved,
            "new_reserved": self.reserved,
            "new_available": self.available,
            "stock_status": self.stock_status,
        }

    def _append_movement(self, movement_type, quantity, previous_quantity, reason, now, **details):
        movement = Movement(
            id=str(uuid4()),
            movement_type=movement_type.value,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=self.quantity,
            reason=reason,
            unit_cost=self.unit_cost,
            total_cost=round(quantity * self.unit_cost, 2) if self.unit_cost is not None else None,
            created_at=now,
            **details,
        )
        self.add_movements(movement)
        return movement

    def _raise_reorder_point_reached(self, now):
        self.raise_(
            ReorderPointReached(
                inventory_record_id=str(self.id),
                product_id=str(self.product_id),
                variant_id=str(self.variant_id) if self.variant_id else None,
                sku=self.sku,
                current_available=self.available,
                reorder_point=self.reorder_point,
                detected_at=now,
            )
        )

    def _check_reorder(self, was_below, now):
        """Raise ReorderPointReached when available has just dropped to the reorder point."""
        if not was_below and self.needs_reorder():
            self._raise_reorder_point_reached(now)

    def _require_active_lifecycle(self, action):
        if LifecycleStatus(self.lifecycle_status) != LifecycleStatus.ACTIVE:
            raise InvalidState({"lifecycle_status": [f"Cannot {action} {self.lifecycle_status.lower()} inventory"]})

    # -------------------------------------------------------------------
    # Quantity movements
    # -------------------------------------------------------------------
    def add_stock(self, quantity, reason="restock", reference=None, supplier_id=None, created_by=None, now=None):
        """Receive stock into the warehouse."""
        _require_positive(quantity)
        self._require_active_lifecycle("add stock to")

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved

        with atomic_change(self):
            self.quantity = prev_quantity + quantity
            self._refresh_derived()
            self.last_restocked_at = now
            self.updated_at = now
            movement = self._append_movement(
                MovementType.INBOUND,
                quantity,
                prev_quantity,
                reason,
                now,
                reference=reference,
                supplier_id=supplier_id,
                created_by=created_by,
            )

        self.raise_(
            StockAdded(
                inventory_record_id=str(self.id),
                sku=self.sku,
                movement_id=str(movement.id),
                movement_type=movement.movement_type,
                quantity=quantity,
                reason=reason,
                reference=reference,
                supplier_id=supplier_id,
                total_value=self.total_value,
                created_by=created_by,
                added_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        return movement

    def remove_stock(self, quantity, reason="sale", reference=None, order_id=None, created_by=None, now=None):
        """Take unreserved stock out of the warehouse."""
        _require_positive(quantity)
        if quantity > self.available:
            raise InsufficientStock(
                {"quantity": [f"Insufficient stock: {self.available} available, {quantity} requested"]}
            )

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved
        was_below = self.needs_reorder()

        with atomic_change(self):
            self.quantity = prev_quantity - quantity
            self._refresh_derived()
            self.last_sold_at = now
            self.updated_at = now
            movement = self._append_movement(
                MovementType.OUTBOUND,
                quantity,
                prev_quantity,
                reason,
                now,
                reference=reference,
                order_id=order_id,
                created_by=created_by,
            )

        self.raise_(
            StockRemoved(
                inventory_record_id=str(self.id),
                sku=self.sku,
                movement_id=str(movement.id),
                movement_type=movement.movement_type,
                quantity=quantity,
                reason=reason,
                reference=reference,
                order_id=order_id,
                total_value=self.total_value,
                created_by=created_by,
                removed_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        self._check_reorder(was_below, now)
        return movement

    def return_stock(self, quantity, order_id=None, reason="customer return", created_by=None, now=None):
        """Put customer-returned units back on hand.

        Returns are accepted whatever the lifecycle status: the units are
        physically back in the warehouse either way.
        """
        _require_positive(quantity)

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved

        with atomic_change(self):
            self.quantity = prev_quantity + quantity
            self._refresh_derived()
            self.updated_at = now
            movement = self._append_movement(
                MovementType.RETURN,
                quantity,
                prev_quantity,
                reason,
                now,
                reference=str(order_id) if order_id else None,
                order_id=order_id,
                created_by=created_by,
            )

        self.raise_(
            StockReturned(
                inventory_record_id=str(self.id),
                sku=self.sku,
                movement_id=str(movement.id),
                movement_type=movement.movement_type,
                quantity=quantity,
                reason=reason,
                order_id=order_id,
                total_value=self.total_value,
                created_by=created_by,
                returned_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        return movement

    def write_off(self, quantity, movement_type, reason, created_by=None, now=None):
        """Remove unreserved units as damaged, expired or given away."""
        _require_positive(quantity)
        try:
            kind = MovementType(movement_type.value if isinstance(movement_type, MovementType) else movement_type)
        except ValueError:
            kind = None
        if kind not in WRITE_OFF_TYPES:
            allowed = ", ".join(sorted(t.value for t in WRITE_OFF_TYPES))
            raise ValidationError({"movement_type": [f"Write-offs must be one of: {allowed}"]})
        if not reason:
            raise ValidationError({"reason": ["Reason is required for write-offs"]})
        if quantity > self.available:
            raise InsufficientStock(
                {"quantity": [f"Cannot write off more than available stock: {self.available} available"]}
            )

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved
        was_below = self.needs_reorder()

        with atomic_change(self):
            self.quantity = prev_quantity - quantity
            self._refresh_derived()
            self.updated_at = now
            movement = self._append_movement(kind, quantity, prev_quantity, reason, now, created_by=created_by)

        self.raise_(
            StockWrittenOff(
                inventory_record_id=str(self.id),
                sku=self.sku,
                movement_id=str(movement.id),
                movement_type=movement.movement_type,
                quantity=quantity,
                reason=reason,
                created_by=created_by,
                total_value=self.total_value,
                written_off_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        self._check_reorder(was_below, now)
        return movement

    def adjust_stock(self, new_quantity, reason, counted_by=None, now=None):
        """Set on-hand to a counted quantity."""
        if new_quantity is None or new_quantity < 0:
            raise InvalidQuantity({"quantity": ["Quantity cannot be negative"]})
        if new_quantity < self.reserved:
            raise InvalidQuantity(
                {"quantity": [f"New quantity {new_quantity} cannot be less than reserved quantity {self.reserved}"]}
            )
        if not reason:
            raise ValidationError({"reason": ["Reason is required for stock adjustments"]})

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved
        was_below = self.needs_reorder()
        quantity_change = new_quantity - prev_quantity

        with atomic_change(self):
            self.quantity = new_quantity
            self._refresh_derived()
            self.last_counted_at = now
            self.updated_at = now
            movement = self._append_movement(
                MovementType.ADJUSTMENT,
                abs(quantity_change),
                prev_quantity,
                reason,
                now,
                created_by=counted_by,
            )

        self.raise_(
            StockAdjusted(
                inventory_record_id=str(self.id),
                sku=self.sku,
                movement_id=str(movement.id),
                movement_type=movement.movement_type,
                quantity=abs(quantity_change),
                quantity_change=quantity_change,
                reason=reason,
                counted_by=counted_by,
                total_value=self.total_value,
                adjusted_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        self._check_reorder(was_below, now)
        return movement

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity, order_id, expires_at=None, now=None):
        """Hold available stock for an order.

        ``expires_at`` of None means the hold never lapses on its own.
        """
        _require_positive(quantity)
        if quantity > self.available:
            raise InsufficientStock(
                {"quantity": [f"Insufficient stock: {self.available} available, {quantity} requested"]}
            )

        now = _resolve_now(now)
        expires_at = as_utc(expires_at)
        prev_quantity, prev_reserved = self.quantity, self.reserved
        was_below = self.needs_reorder()

        reservation = Reservation(
            id=str(uuid4()),
            order_id=order_id,
            quantity=quantity,
            status=ReservationStatus.ACTIVE.value,
            reserved_at=now,
            expires_at=expires_at,
        )
        with atomic_change(self):
            self.add_reservations(reservation)
            self.reserved = prev_reserved + quantity
            self._refresh_derived()
            self.updated_at = now

        self.raise_(
            StockReserved(
                inventory_record_id=str(self.id),
                sku=self.sku,
                reservation_id=str(reservation.id),
                order_id=str(order_id),
                quantity=quantity,
                reserved_at=now,
                expires_at=expires_at,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        self._check_reorder(was_below, now)
        return reservation

    def get_reservation(self, reservation_id):
        reservation = next(
            (r for r in (self.reservations or []) if str(r.id) == str(reservation_id)),
            None,
        )
        if reservation is None:
            raise NotFound({"_entity": f"Reservation {reservation_id} not found"})
        return reservation

    @staticmethod
    def _require_active_reservation(reservation, action):
        if not reservation.is_active():
            raise InvalidState(
                {"reservation_id": [f"Cannot {action} reservation in {reservation.status} state"]}
            )

    def release(self, reservation_id, reason="released", now=None):
        """Give a hold back to available stock."""
        reservation = self.get_reservation(reservation_id)
        self._require_active_reservation(reservation, "release")

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved

        with atomic_change(self):
            reservation.status = ReservationStatus.RELEASED.value
            reservation.released_at = now
            reservation.reason = reason
            self.reserved = prev_reserved - reservation.quantity
            self._refresh_derived()
            self.updated_at = now

        self.raise_(
            ReservationReleased(
                inventory_record_id=str(self.id),
                sku=self.sku,
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                quantity=reservation.quantity,
                reason=reason,
                released_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        return reservation

    def fulfill(self, reservation_id, created_by=None, now=None):
        """Ship a reservation: close the hold and remove the units from on-hand.

        Counters, the reservation and the outbound movement change together;
        observers never see a partially fulfilled record.
        """
        reservation = self.get_reservation(reservation_id)
        self._require_active_reservation(reservation, "fulfill")
        if reservation.quantity > self.quantity or reservation.quantity > self.reserved:
            raise InsufficientStock(
                {"quantity": [f"Cannot fulfill {reservation.quantity} units with {self.quantity} on hand"]}
            )

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved

        with atomic_change(self):
            self.quantity = prev_quantity - reservation.quantity
            self.reserved = prev_reserved - reservation.quantity
            self._refresh_derived()
            self.last_sold_at = now
            self.updated_at = now
            reservation.status = ReservationStatus.FULFILLED.value
            reservation.fulfilled_at = now
            movement = self._append_movement(
                MovementType.OUTBOUND,
                reservation.quantity,
                prev_quantity,
                "fulfillment",
                now,
                reference=str(reservation.order_id),
                order_id=reservation.order_id,
                created_by=created_by,
            )

        self.raise_(
            ReservationFulfilled(
                inventory_record_id=str(self.id),
                sku=self.sku,
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                movement_id=str(movement.id),
                movement_type=movement.movement_type,
                quantity=reservation.quantity,
                reason="fulfillment",
                total_value=self.total_value,
                created_by=created_by,
                fulfilled_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        return movement

    def expire(self, reservation_id, now=None):
        """Close a hold whose expiry time has passed."""
        reservation = self.get_reservation(reservation_id)
        self._require_active_reservation(reservation, "expire")

        now = _resolve_now(now)
        if reservation.expires_at is None:
            raise InvalidState({"reservation_id": ["Reservation has no expiry time"]})
        if now < as_utc(reservation.expires_at):
            raise InvalidState({"reservation_id": ["Reservation has not expired yet"]})

        prev_quantity, prev_reserved = self.quantity, self.reserved

        with atomic_change(self):
            reservation.status = ReservationStatus.EXPIRED.value
            reservation.expired_at = now
            self.reserved = prev_reserved - reservation.quantity
            self._refresh_derived()
            self.updated_at = now

        self.raise_(
            ReservationExpired(
                inventory_record_id=str(self.id),
                sku=self.sku,
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                quantity=reservation.quantity,
                expires_at=reservation.expires_at,
                expired_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        return reservation

    def cancel(self, reservation_id, reason="cancelled", now=None):
        """Cancel a hold. Cancelling an already cancelled hold changes nothing.

        Returns the cancelled reservation, or None when there was nothing to do.
        """
        reservation = self.get_reservation(reservation_id)
        status = ReservationStatus(reservation.status)
        if status == ReservationStatus.CANCELLED:
            return None
        if status == ReservationStatus.FULFILLED:
            raise InvalidState({"reservation_id": ["Cannot cancel a fulfilled reservation"]})
        self._require_active_reservation(reservation, "cancel")

        now = _resolve_now(now)
        prev_quantity, prev_reserved = self.quantity, self.reserved

        with atomic_change(self):
            reservation.status = ReservationStatus.CANCELLED.value
            reservation.cancelled_at = now
            reservation.reason = reason
            self.reserved = prev_reserved - reservation.quantity
            self._refresh_derived()
            self.updated_at = now

        self.raise_(
            ReservationCancelled(
                inventory_record_id=str(self.id),
                sku=self.sku,
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                quantity=reservation.quantity,
                reason=reason,
                cancelled_at=now,
                **self._counters(prev_quantity, prev_reserved),
            )
        )
        return reservation

    def extend_reservation(self, reservation_id, expires_at, now=None):
        reservation = self.get_reservation(reservation_id)
        self._require_active_reservation(reservation, "extend")

        now = _resolve_now(now)
        expires_at = as_utc(expires_at)
        if expires_at is None or expires_at <= now:
            raise ValidationError({"expires_at": ["New expiry must be in the future"]})

        previous_expires_at = reservation.expires_at
        with atomic_change(self):
            reservation.expires_at = expires_at
            self.updated_at = now

        self.raise_(
            ReservationExtended(
                inventory_record_id=str(self.id),
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                previous_expires_at=previous_expires_at,
                expires_at=expires_at,
                extended_at=now,
            )
        )
        return reservation

    # -------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------
    def set_thresholds(self, low_stock_threshold, reorder_point, max_stock_level, now=None):
        validate_thresholds(low_stock_threshold, reorder_point, max_stock_level)

        now = _resolve_now(now)
        previous = self.thresholds or StockThresholds()
        was_below = self.needs_reorder()

        with atomic_change(self):
            self.thresholds = StockThresholds(
                low_stock_threshold=low_stock_threshold,
                reorder_point=reorder_point,
                max_stock_level=max_stock_level,
            )
            self._refresh_derived()
            self.updated_at = now

        self.raise_(
            ThresholdsChanged(
                inventory_record_id=str(self.id),
                sku=self.sku,
                previous_low_stock_threshold=previous.low_stock_threshold,
                previous_reorder_point=previous.reorder_point,
                previous_max_stock_level=previous.max_stock_level,
                low_stock_threshold=low_stock_threshold,
                reorder_point=reorder_point,
                max_stock_level=max_stock_level,
                new_available=self.available,
                stock_status=self.stock_status,
                changed_at=now,
            )
        )
        self._check_reorder(was_below, now)

    def set_lifecycle_status(self, status, now=None):
        """Move the record to any lifecycle status. Non-active forces out of stock."""
        try:
            new_status = LifecycleStatus(status.value if isinstance(status, LifecycleStatus) else status)
        except ValueError as exc:
            raise ValidationError({"lifecycle_status": [f"Unknown lifecycle status: {status}"]}) from exc

        now = _resolve_now(now)
        previous_status = self.lifecycle_status

        with atomic_change(self):
            self.lifecycle_status = new_status.value
            self._refresh_derived()
            self.updated_at = now

        self.raise_(
            LifecycleStatusChanged(
                inventory_record_id=str(self.id),
                sku=self.sku,
                previous_status=previous_status,
                new_status=new_status.value,
                new_available=self.available,
                stock_status=self.stock_status,
                changed_at=now,
            )
        )

    def set_unit_cost(self, unit_cost, now=None):
        if unit_cost is None or unit_cost < 0:
            raise ValidationError({"unit_cost": ["Unit cost cannot be negative"]})

        now = _resolve_now(now)
        previous_unit_cost = self.unit_cost

        with atomic_change(self):
            self.unit_cost = unit_cost
            self._refresh_derived()
            self.updated_at = now

        self.raise_(
            UnitCostChanged(
                inventory_record_id=str(self.id),
                sku=self.sku,
                previous_unit_cost=previous_unit_cost,
                unit_cost=unit_cost,
                total_value=self.total_value,
                changed_at=now,
            )
        )

    def update_location(self, warehouse_id=_UNSET, location=_UNSET, bin_code=_UNSET, now=None):
        """Change where the stock sits. Omitted fields keep their value, None clears one."""
        current = self.location
        new_location = StockLocation(
            warehouse_id=warehouse_id if warehouse_id is not _UNSET else (current.warehouse_id if current else None),
            location=location if location is not _UNSET else (current.location if current else None),
            bin_code=bin_code if bin_code is not _UNSET else (current.bin_code if current else None),
        )
        with atomic_change(self):
            self.location = new_location
            self.updated_at = _resolve_now(now)

    def update_supplier(self, supplier_id=_UNSET, supplier_sku=_UNSET, lead_time_days=_UNSET, now=None):
        """Change supplier details. Omitted fields keep their value, None clears one."""
        current = self.supplier
        if lead_time_days is not _UNSET and lead_time_days is not None and lead_time_days < 0:
            raise ValidationError({"lead_time_days": ["Lead time cannot be negative"]})
        new_supplier = SupplierInfo(
            supplier_id=supplier_id if supplier_id is not _UNSET else (current.supplier_id if current else None),
            supplier_sku=supplier_sku if supplier_sku is not _UNSET else (current.supplier_sku if current else None),
            lead_time_days=(
                lead_time_days if lead_time_days is not _UNSET else (current.lead_time_days if current else None)
            ),
        )
        with atomic_change(self):
            self.supplier = new_supplier
            self.updated_at = _resolve_now(now)

    def set_notes(self, notes, now=None):
        with atomic_change(self):
            self.notes = notes
            self.updated_at = _resolve_now(now)

    def set_attribute(self, key, value, now=None):
        if not isinstance(key, str) or not key.strip():
            raise ValidationError({"attributes": ["Attribute keys must be non-empty strings"]})
        if not isinstance(value, _ATTRIBUTE_VALUE_TYPES):
            raise ValidationError({"attributes": [f"Unsupported value for attribute '{key}'"]})

        attributes = self.attribute_map()
        attributes[key] = value
        with atomic_change(self):
            self.attributes = json.dumps(attributes, sort_keys=True)
            self.updated_at = _resolve_now(now)

    def remove_attribute(self, key, now=None):
        attributes = self.attribute_map()
        if key not in attributes:
            raise NotFound({"_entity": f"Attribute {key} not found"})
        del attributes[key]
        with atomic_change(self):
            self.attributes = json.dumps(attributes, sort_keys=True)
            self.updated_at = _resolve_now(now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def attribute_map(self):
        return json.loads(self.attributes) if self.attributes else {}

    def needs_reorder(self):
        return self.available <= self.reorder_point

    def is_overstocked(self):
        return self.quantity > self.max_stock_level

    def can_fulfill(self, quantity):
        return (
            LifecycleStatus(self.lifecycle_status) == LifecycleStatus.ACTIVE
            and self.available >= quantity
        )

    def is_in_stock(self):
        return self.stock_status == StockStatus.IN_STOCK.value

    def is_low_stock(self):
        return self.stock_status == StockStatus.LOW_STOCK.value

    def is_out_of_stock(self):
        return self.stock_status == StockStatus.OUT_OF_STOCK.value

    def active_reservations(self):
        return [r for r in (self.reservations or []) if r.is_active()]

    def due_reservations(self, now):
        """Active reservations whose expiry time has passed."""
        return [r for r in self.active_reservations() if r.is_expired(now)]

    def movements_of_type(self, movement_type):
        kind = movement_type.value if isinstance(movement_type, MovementType) else movement_type
        return [m for m in self._ordered_movements() if m.movement_type == kind]

    def movements_between(self, start, end):
        """Movements created in ``[start, end)``."""
        start, end = as_utc(start), as_utc(end)
        return [m for m in self._ordered_movements() if start <= as_utc(m.created_at) < end]

    def _ordered_movements(self):
        return sorted(self.movements or [], key=lambda m: as_utc(m.created_at))

    def _days_since(self, instant, now):
        """Whole days since ``instant``; records never sold or restocked count from creation."""
        since = instant if instant is not None else self.created_at
        return (_resolve_now(now) - as_utc(since)).days

    def days_without_sale(self, now=None):
        return self._days_since(self.last_sold_at, now)

    def days_since_restock(self, now=None):
        return self._days_since(self.last_restocked_at, now)

    def turnover_rate(self, now=None):
        """Annualised on-hand per day of the record's life; 0 when empty or opened today."""
        if self.quantity == 0:
            return 0.0
        days_open = self._days_since(None, now)
        if days_open == 0:
            return 0.0
        return self.quantity / days_open * 365
