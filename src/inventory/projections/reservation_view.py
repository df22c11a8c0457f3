"""Reservation view — reservation status by id.

Routes reservation commands to the record that owns the reservation and
feeds the expiry sweep with the holds that are due.
"""

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from inventory.clock import as_utc
from inventory.domain import inventory
from inventory.stock.events import (
    ReservationCancelled,
    ReservationExpired,
    ReservationExtended,
    ReservationFulfilled,
    ReservationReleased,
    StockReserved,
)
from inventory.stock.record import InventoryRecord, ReservationStatus


@inventory.projection
class ReservationView:
    reservation_id = Identifier(identifier=True, required=True)
    inventory_record_id = Identifier(required=True)
    sku = String(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    status = String(required=True)
    reserved_at = DateTime()
    expires_at = DateTime()
    closed_at = DateTime()
    updated_at = DateTime()


def due_reservations(as_of):
    """Active reservations whose expiry time is before ``as_of``, oldest first."""
    as_of = as_utc(as_of)
    active = (
        current_domain.repository_for(ReservationView)
        ._dao.query.filter(status=ReservationStatus.ACTIVE.value)
        .all()
        .items
    )
    due = [view for view in active if view.expires_at is not None and as_utc(view.expires_at) < as_of]
    return sorted(due, key=lambda view: as_utc(view.expires_at))


def reservations_for_order(order_id):
    return current_domain.repository_for(ReservationView)._dao.query.filter(order_id=str(order_id)).all().items


def _close(event, status, closed_at):
    repo = current_domain.repository_for(ReservationView)
    view = repo.get(event.reservation_id)
    view.status = status.value
    view.closed_at = closed_at
    view.updated_at = closed_at
    repo.add(view)


@inventory.projector(projector_for=ReservationView, aggregates=[InventoryRecord])
class ReservationViewProjector:
    @on(StockReserved)
    def on_stock_reserved(self, event):
        current_domain.repository_for(ReservationView).add(
            ReservationView(
                reservation_id=event.reservation_id,
                inventory_record_id=event.inventory_record_id,
                sku=event.sku,
                order_id=event.order_id,
                quantity=event.quantity,
                status=ReservationStatus.ACTIVE.value,
                reserved_at=event.reserved_at,
                expires_at=event.expires_at,
                updated_at=event.reserved_at,
            )
        )

    @on(ReservationFulfilled)
    def on_reservation_fulfilled(self, event):
        _close(event, ReservationStatus.FULFILLED, event.fulfilled_at)

    @on(ReservationReleased)
    def on_reservation_released(self, event):
        _close(event, ReservationStatus.RELEASED, event.released_at)

    @on(ReservationExpired)
    def on_reservation_expired(self, event):
        _close(event, ReservationStatus.EXPIRED, event.expired_at)

    @on(ReservationCancelled)
    def on_reservation_cancelled(self, event):
        _close(event, ReservationStatus.CANCELLED, event.cancelled_at)

    @on(ReservationExtended)
    def on_reservation_extended(self, event):
        repo = current_domain.repository_for(ReservationView)
        view = repo.get(event.reservation_id)
        view.expires_at = event.expires_at
        view.updated_at = event.extended_at
        repo.add(view)
