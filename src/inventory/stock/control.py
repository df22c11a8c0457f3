"""Inventory control — the single entry point that mutates stock records.

Order, checkout and back-office callers talk to ``InventoryControl``; it
resolves SKUs and reservation ids to records, stamps commands with the
configured clock, and dispatches them while holding the record's lock. The
lock spans load, decision, save and commit of the unit of work, so two
reservations against the same record can never both see the same available
quantity.
"""

import json
import os
from datetime import timedelta

import structlog
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from inventory.clock import as_utc, get_clock
from inventory.projections.reservation_view import ReservationView, due_reservations
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
from inventory.stock.errors import NotFound
from inventory.stock.expiry import ExpireReservation
from inventory.stock.fulfillment import FulfillReservation
from inventory.stock.locking import get_record_locks
from inventory.stock.lookup import find_record_by_sku, load_record
from inventory.stock.receiving import AddStock, ReturnStock
from inventory.stock.registration import CreateInventoryRecord
from inventory.stock.removal import RemoveStock, WriteOffStock
from inventory.stock.reservation import (
    CancelReservation,
    ExtendReservation,
    ReleaseReservation,
    ReserveStock,
)
from inventory.utils.logging import record_context

logger = structlog.get_logger(__name__)

DEFAULT_RESERVATION_TTL_MINUTES = 15

_DEFAULT_TTL = object()


def configured_reservation_ttl() -> timedelta:
    minutes = float(os.environ.get("RESERVATION_TTL_MINUTES", DEFAULT_RESERVATION_TTL_MINUTES))
    return timedelta(minutes=minutes)


class InventoryControl:
    """Serializes every stock ledger mutation per record."""

    def __init__(self, locks=None, clock=None):
        self.locks = locks if locks is not None else get_record_locks()
        self.clock = clock or get_clock()

    def _dispatch(self, inventory_record_id, command):
        with record_context(inventory_record_id=str(inventory_record_id), command=command.__class__.__name__):
            with self.locks.hold(inventory_record_id):
                return current_domain.process(command, asynchronous=False)

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def record_id_for_sku(self, sku) -> str:
        return str(find_record_by_sku(sku).id)

    def record_id_for_reservation(self, reservation_id) -> str:
        try:
            view = current_domain.repository_for(ReservationView).get(reservation_id)
        except ObjectNotFoundError as exc:
            raise NotFound({"_entity": f"Reservation {reservation_id} not found"}) from exc
        return str(view.inventory_record_id)

    def get_record(self, inventory_record_id):
        return load_record(inventory_record_id)

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------
    def create_record(self, product_id, sku, **options) -> str:
        # New records have no id yet; the SKU is the contended resource
        with record_context(sku=sku, command=CreateInventoryRecord.__name__):
            with self.locks.hold(f"sku:{sku}"):
                return current_domain.process(
                    CreateInventoryRecord(product_id=product_id, sku=sku, as_of=self.clock.now(), **options),
                    asynchronous=False,
                )

    # -------------------------------------------------------------------
    # Order-facing operations
    # -------------------------------------------------------------------
    def reserve(self, sku, quantity, order_id, ttl=_DEFAULT_TTL) -> str:
        """Hold ``quantity`` units of ``sku`` for an order and return the reservation id.

        ``ttl`` defaults to RESERVATION_TTL_MINUTES; pass None for a hold
        that never expires.
        """
        record_id = self.record_id_for_sku(sku)
        now = self.clock.now()
        if ttl is _DEFAULT_TTL:
            ttl = configured_reservation_ttl()
        expires_at = now + ttl if ttl is not None else None
        reservation_id = self._dispatch(
            record_id,
            ReserveStock(
                inventory_record_id=record_id,
                order_id=order_id,
                quantity=quantity,
                expires_at=expires_at,
                as_of=now,
            ),
        )
        logger.info(
            "Stock reserved",
            sku=sku,
            order_id=str(order_id),
            quantity=quantity,
            reservation_id=reservation_id,
        )
        return reservation_id

    def fulfill(self, reservation_id, created_by=None) -> str:
        record_id = self.record_id_for_reservation(reservation_id)
        return self._dispatch(
            record_id,
            FulfillReservation(
                inventory_record_id=record_id,
                reservation_id=reservation_id,
                created_by=created_by,
                as_of=self.clock.now(),
            ),
        )

    def release(self, reservation_id, reason="released"):
        record_id = self.record_id_for_reservation(reservation_id)
        self._dispatch(
            record_id,
            ReleaseReservation(
                inventory_record_id=record_id,
                reservation_id=reservation_id,
                reason=reason,
                as_of=self.clock.now(),
            ),
        )

    def cancel(self, reservation_id, reason="cancelled") -> bool:
        """Cancel a reservation. Returns False when it was already cancelled."""
        record_id = self.record_id_for_reservation(reservation_id)
        return self._dispatch(
            record_id,
            CancelReservation(
                inventory_record_id=record_id,
                reservation_id=reservation_id,
                reason=reason,
                as_of=self.clock.now(),
            ),
        )

    def extend(self, reservation_id, ttl: timedelta):
        record_id = self.record_id_for_reservation(reservation_id)
        now = self.clock.now()
        self._dispatch(
            record_id,
            ExtendReservation(
                inventory_record_id=record_id,
                reservation_id=reservation_id,
                expires_at=now + ttl,
                as_of=now,
            ),
        )

    # -------------------------------------------------------------------
    # Restock and back-office operations
    # -------------------------------------------------------------------
    def add_stock(self, inventory_record_id, quantity, reason="restock", **details) -> str:
        return self._dispatch(
            inventory_record_id,
            AddStock(
                inventory_record_id=inventory_record_id,
                quantity=quantity,
                reason=reason,
                as_of=self.clock.now(),
                **details,
            ),
        )

    def remove_stock(self, inventory_record_id, quantity, reason="sale", **details) -> str:
        return self._dispatch(
            inventory_record_id,
            RemoveStock(
                inventory_record_id=inventory_record_id,
                quantity=quantity,
                reason=reason,
                as_of=self.clock.now(),
                **details,
            ),
        )

    def return_stock(
        self, inventory_record_id, quantity, order_id=None, reason="customer return", created_by=None
    ) -> str:
        return self._dispatch(
            inventory_record_id,
            ReturnStock(
                inventory_record_id=inventory_record_id,
                quantity=quantity,
                order_id=order_id,
                reason=reason,
                created_by=created_by,
                as_of=self.clock.now(),
            ),
        )

    def write_off(self, inventory_record_id, quantity, movement_type, reason, created_by=None) -> str:
        return self._dispatch(
            inventory_record_id,
            WriteOffStock(
                inventory_record_id=inventory_record_id,
                quantity=quantity,
                movement_type=movement_type,
                reason=reason,
                created_by=created_by,
                as_of=self.clock.now(),
            ),
        )

    def adjust_stock(self, inventory_record_id, new_quantity, reason, counted_by=None) -> str:
        return self._dispatch(
            inventory_record_id,
            AdjustStock(
                inventory_record_id=inventory_record_id,
                new_quantity=new_quantity,
                reason=reason,
                counted_by=counted_by,
                as_of=self.clock.now(),
            ),
        )

    def set_thresholds(self, inventory_record_id, low_stock_threshold, reorder_point, max_stock_level):
        self._dispatch(
            inventory_record_id,
            SetThresholds(
                inventory_record_id=inventory_record_id,
                low_stock_threshold=low_stock_threshold,
                reorder_point=reorder_point,
                max_stock_level=max_stock_level,
                as_of=self.clock.now(),
            ),
        )

    def set_lifecycle_status(self, inventory_record_id, status):
        self._dispatch(
            inventory_record_id,
            SetLifecycleStatus(inventory_record_id=inventory_record_id, status=status, as_of=self.clock.now()),
        )

    def set_unit_cost(self, inventory_record_id, unit_cost):
        self._dispatch(
            inventory_record_id,
            SetUnitCost(inventory_record_id=inventory_record_id, unit_cost=unit_cost, as_of=self.clock.now()),
        )

    def update_location(self, inventory_record_id, **changes):
        """Apply only the given location fields; a None value clears that field."""
        self._dispatch(
            inventory_record_id,
            UpdateLocation(
                inventory_record_id=inventory_record_id,
                changes=json.dumps(changes),
                as_of=self.clock.now(),
            ),
        )

    def update_supplier(self, inventory_record_id, **changes):
        self._dispatch(
            inventory_record_id,
            UpdateSupplier(
                inventory_record_id=inventory_record_id,
                changes=json.dumps(changes),
                as_of=self.clock.now(),
            ),
        )

    def set_notes(self, inventory_record_id, notes):
        self._dispatch(
            inventory_record_id,
            SetNotes(inventory_record_id=inventory_record_id, notes=notes, as_of=self.clock.now()),
        )

    def set_attribute(self, inventory_record_id, key, value):
        self._dispatch(
            inventory_record_id,
            SetAttribute(
                inventory_record_id=inventory_record_id,
                key=key,
                value=json.dumps(value),
                as_of=self.clock.now(),
            ),
        )

    def remove_attribute(self, inventory_record_id, key):
        self._dispatch(
            inventory_record_id,
            RemoveAttribute(inventory_record_id=inventory_record_id, key=key, as_of=self.clock.now()),
        )

    # -------------------------------------------------------------------
    # Expiry sweep
    # -------------------------------------------------------------------
    def expire_due(self, as_of=None) -> int:
        """Expire every active reservation whose expiry time is before ``as_of``.

        Best effort: a reservation that a concurrent call already closed, or
        whose record is busy, is logged and left for the next sweep.
        """
        as_of = as_utc(as_of) if as_of is not None else self.clock.now()
        due = due_reservations(as_of)

        if not due:
            logger.info("No reservations due for expiry", as_of=as_of.isoformat())
            return 0

        expired_count = 0
        for view in due:
            try:
                self._dispatch(
                    str(view.inventory_record_id),
                    ExpireReservation(
                        inventory_record_id=str(view.inventory_record_id),
                        reservation_id=str(view.reservation_id),
                        as_of=as_of,
                    ),
                )
                expired_count += 1
                logger.info(
                    "Expired reservation",
                    reservation_id=str(view.reservation_id),
                    order_id=str(view.order_id),
                    expires_at=str(view.expires_at),
                )
            except (ValidationError, InvalidOperationError, ObjectNotFoundError) as exc:
                logger.warning(
                    "Skipped reservation during expiry sweep",
                    reservation_id=str(view.reservation_id),
                    error=str(exc),
                )

        logger.info("Reservation expiry sweep complete", due_count=len(due), expired_count=expired_count)
        return expired_count
