"""FastAPI routes for the Inventory domain — records, reservations and maintenance.

Every mutating route goes through ``InventoryControl`` so HTTP callers are
serialized per record exactly like in-process callers.
"""

from datetime import datetime, timedelta

from fastapi import APIRouter, Query
from protean.exceptions import ValidationError

from inventory.api.schemas import (
    AddStockRequest,
    AdjustStockRequest,
    AttributeRequest,
    AvailabilityResponse,
    CancelReservationRequest,
    CreateInventoryRecordRequest,
    ExpireReservationsRequest,
    ExpiryResponse,
    ExtendReservationRequest,
    FulfillReservationRequest,
    InventoryRecordIdResponse,
    LifecycleStatusRequest,
    LocationRequest,
    LowStockEntryResponse,
    MovementIdResponse,
    MovementResponse,
    NotesRequest,
    ReleaseReservationRequest,
    RemoveStockRequest,
    ReservationIdResponse,
    ReserveStockRequest,
    ReturnStockRequest,
    StatusResponse,
    StockLevelResponse,
    StockSummaryResponse,
    SupplierRequest,
    ThresholdsRequest,
    UnitCostRequest,
    WriteOffRequest,
)
from inventory.projections.low_stock_report import low_stock_entries
from inventory.projections.stock_level import out_of_stock_levels
from inventory.projections.stock_movement_log import (
    movements_between,
    movements_for_record,
    movements_of_type,
)
from inventory.stock.control import InventoryControl
from inventory.stock.lookup import find_record_by_sku


def _stock_level(record) -> StockLevelResponse:
    return StockLevelResponse(
        inventory_record_id=str(record.id),
        product_id=str(record.product_id),
        variant_id=str(record.variant_id) if record.variant_id else None,
        sku=record.sku,
        quantity=record.quantity,
        reserved=record.reserved,
        available=record.available,
        stock_status=record.stock_status,
        lifecycle_status=record.lifecycle_status,
        low_stock_threshold=record.low_stock_threshold,
        reorder_point=record.reorder_point,
        max_stock_level=record.max_stock_level,
        unit_cost=record.unit_cost,
        total_value=record.total_value or 0.0,
        needs_reorder=record.needs_reorder(),
        is_overstocked=record.is_overstocked(),
        attributes=record.attribute_map(),
        active_reservations=len(record.active_reservations()),
        days_without_sale=record.days_without_sale(),
        days_since_restock=record.days_since_restock(),
        turnover_rate=record.turnover_rate(),
    )


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("", status_code=201, response_model=InventoryRecordIdResponse)
async def create_inventory_record(body: CreateInventoryRecordRequest) -> InventoryRecordIdResponse:
    result = InventoryControl().create_record(
        product_id=body.product_id,
        sku=body.sku,
        variant_id=body.variant_id,
        initial_quantity=body.initial_quantity,
        low_stock_threshold=body.low_stock_threshold,
        reorder_point=body.reorder_point,
        max_stock_level=body.max_stock_level,
        unit_cost=body.unit_cost,
        created_by=body.created_by,
    )
    return InventoryRecordIdResponse(inventory_record_id=result)


@inventory_router.get("/sku/{sku}", response_model=StockLevelResponse)
async def get_inventory_record_by_sku(sku: str) -> StockLevelResponse:
    return _stock_level(find_record_by_sku(sku))


@inventory_router.get("/check-availability", response_model=AvailabilityResponse)
async def check_availability(sku: str, quantity: int = Query(ge=1)) -> AvailabilityResponse:
    record = find_record_by_sku(sku)
    return AvailabilityResponse(
        sku=record.sku,
        inventory_record_id=str(record.id),
        requested=quantity,
        available=record.available,
        can_fulfill=record.can_fulfill(quantity),
    )


@inventory_router.get("/low-stock", response_model=list[LowStockEntryResponse])
async def list_low_stock() -> list[LowStockEntryResponse]:
    return [
        LowStockEntryResponse(
            inventory_record_id=str(entry.inventory_record_id),
            product_id=str(entry.product_id),
            variant_id=str(entry.variant_id) if entry.variant_id else None,
            sku=entry.sku,
            current_available=entry.current_available,
            reorder_point=entry.reorder_point,
            is_critical=entry.is_critical,
            detected_at=entry.detected_at,
        )
        for entry in low_stock_entries()
    ]


@inventory_router.get("/out-of-stock", response_model=list[StockSummaryResponse])
async def list_out_of_stock() -> list[StockSummaryResponse]:
    return [
        StockSummaryResponse(
            inventory_record_id=str(level.inventory_record_id),
            product_id=str(level.product_id),
            variant_id=str(level.variant_id) if level.variant_id else None,
            sku=level.sku,
            quantity=level.quantity,
            reserved=level.reserved,
            available=level.available,
            stock_status=level.stock_status,
            lifecycle_status=level.lifecycle_status,
            updated_at=level.updated_at,
        )
        for level in out_of_stock_levels()
    ]


@inventory_router.get("/{inventory_record_id}", response_model=StockLevelResponse)
async def get_inventory_record(inventory_record_id: str) -> StockLevelResponse:
    return _stock_level(InventoryControl().get_record(inventory_record_id))


@inventory_router.get("/{inventory_record_id}/movements", response_model=list[MovementResponse])
async def list_movements(
    inventory_record_id: str,
    movement_type: str | None = Query(default=None),
    since: datetime | None = Query(default=None),
    until: datetime | None = Query(default=None),
) -> list[MovementResponse]:
    # Raises NotFound for unknown records instead of returning an empty journal
    InventoryControl().get_record(inventory_record_id)

    if since is None and until is None:
        if movement_type is None:
            entries = movements_for_record(inventory_record_id)
        else:
            entries = movements_of_type(movement_type, inventory_record_id=inventory_record_id)
    else:
        entries = movements_between(
            since or datetime.min,
            until or datetime.max,
            inventory_record_id=inventory_record_id,
        )
        if movement_type is not None:
            entries = [entry for entry in entries if entry.movement_type == movement_type]

    return [
        MovementResponse(
            movement_id=str(entry.movement_id),
            movement_type=entry.movement_type,
            quantity=entry.quantity,
            quantity_change=entry.quantity_change,
            previous_quantity=entry.previous_quantity,
            new_quantity=entry.new_quantity,
            reason=entry.reason,
            reference=entry.reference,
            order_id=str(entry.order_id) if entry.order_id else None,
            actor=entry.actor,
            occurred_at=entry.occurred_at,
        )
        for entry in entries
    ]


@inventory_router.put("/{inventory_record_id}/add", response_model=MovementIdResponse)
async def add_stock(inventory_record_id: str, body: AddStockRequest) -> MovementIdResponse:
    movement_id = InventoryControl().add_stock(
        inventory_record_id,
        body.quantity,
        reason=body.reason,
        reference=body.reference,
        supplier_id=body.supplier_id,
        created_by=body.created_by,
    )
    return MovementIdResponse(movement_id=movement_id)


@inventory_router.put("/{inventory_record_id}/remove", response_model=MovementIdResponse)
async def remove_stock(inventory_record_id: str, body: RemoveStockRequest) -> MovementIdResponse:
    movement_id = InventoryControl().remove_stock(
        inventory_record_id,
        body.quantity,
        reason=body.reason,
        reference=body.reference,
        order_id=body.order_id,
        created_by=body.created_by,
    )
    return MovementIdResponse(movement_id=movement_id)


@inventory_router.put("/{inventory_record_id}/return", response_model=MovementIdResponse)
async def return_stock(inventory_record_id: str, body: ReturnStockRequest) -> MovementIdResponse:
    movement_id = InventoryControl().return_stock(
        inventory_record_id,
        body.quantity,
        order_id=body.order_id,
        reason=body.reason,
        created_by=body.created_by,
    )
    return MovementIdResponse(movement_id=movement_id)


@inventory_router.put("/{inventory_record_id}/write-off", response_model=MovementIdResponse)
async def write_off_stock(inventory_record_id: str, body: WriteOffRequest) -> MovementIdResponse:
    movement_id = InventoryControl().write_off(
        inventory_record_id,
        body.quantity,
        movement_type=body.movement_type,
        reason=body.reason,
        created_by=body.created_by,
    )
    return MovementIdResponse(movement_id=movement_id)


@inventory_router.put("/{inventory_record_id}/adjust", response_model=MovementIdResponse)
async def adjust_stock(inventory_record_id: str, body: AdjustStockRequest) -> MovementIdResponse:
    movement_id = InventoryControl().adjust_stock(
        inventory_record_id,
        body.new_quantity,
        reason=body.reason,
        counted_by=body.counted_by,
    )
    return MovementIdResponse(movement_id=movement_id)


@inventory_router.put("/{inventory_record_id}/thresholds", response_model=StatusResponse)
async def set_thresholds(inventory_record_id: str, body: ThresholdsRequest) -> StatusResponse:
    InventoryControl().set_thresholds(
        inventory_record_id,
        low_stock_threshold=body.low_stock_threshold,
        reorder_point=body.reorder_point,
        max_stock_level=body.max_stock_level,
    )
    return StatusResponse()


@inventory_router.put("/{inventory_record_id}/status", response_model=StatusResponse)
async def set_lifecycle_status(inventory_record_id: str, body: LifecycleStatusRequest) -> StatusResponse:
    InventoryControl().set_lifecycle_status(inventory_record_id, body.status)
    return StatusResponse()


@inventory_router.put("/{inventory_record_id}/unit-cost", response_model=StatusResponse)
async def set_unit_cost(inventory_record_id: str, body: UnitCostRequest) -> StatusResponse:
    InventoryControl().set_unit_cost(inventory_record_id, body.unit_cost)
    return StatusResponse()


@inventory_router.put("/{inventory_record_id}/location", response_model=StatusResponse)
async def update_location(inventory_record_id: str, body: LocationRequest) -> StatusResponse:
    InventoryControl().update_location(inventory_record_id, **body.model_dump(include=body.model_fields_set))
    return StatusResponse()


@inventory_router.put("/{inventory_record_id}/supplier", response_model=StatusResponse)
async def update_supplier(inventory_record_id: str, body: SupplierRequest) -> StatusResponse:
    InventoryControl().update_supplier(inventory_record_id, **body.model_dump(include=body.model_fields_set))
    return StatusResponse()


@inventory_router.put("/{inventory_record_id}/notes", response_model=StatusResponse)
async def set_notes(inventory_record_id: str, body: NotesRequest) -> StatusResponse:
    InventoryControl().set_notes(inventory_record_id, body.notes)
    return StatusResponse()


@inventory_router.put("/{inventory_record_id}/attributes", response_model=StatusResponse)
async def set_attribute(inventory_record_id: str, body: AttributeRequest) -> StatusResponse:
    InventoryControl().set_attribute(inventory_record_id, body.key, body.value)
    return StatusResponse()


@inventory_router.delete("/{inventory_record_id}/attributes/{key}", response_model=StatusResponse)
async def remove_attribute(inventory_record_id: str, key: str) -> StatusResponse:
    InventoryControl().remove_attribute(inventory_record_id, key)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Reservation Router
# ---------------------------------------------------------------------------
reservation_router = APIRouter(prefix="/reservations", tags=["reservations"])


@reservation_router.post("", status_code=201, response_model=ReservationIdResponse)
async def reserve_stock(body: ReserveStockRequest) -> ReservationIdResponse:
    control = InventoryControl()
    if body.no_expiry and body.expires_in_minutes is not None:
        raise ValidationError({"no_expiry": ["Cannot combine no_expiry with expires_in_minutes"]})
    if body.no_expiry:
        reservation_id = control.reserve(body.sku, body.quantity, body.order_id, ttl=None)
    elif body.expires_in_minutes is not None:
        ttl = timedelta(minutes=body.expires_in_minutes)
        reservation_id = control.reserve(body.sku, body.quantity, body.order_id, ttl=ttl)
    else:
        reservation_id = control.reserve(body.sku, body.quantity, body.order_id)
    return ReservationIdResponse(reservation_id=reservation_id)


@reservation_router.put("/{reservation_id}/fulfill", response_model=MovementIdResponse)
async def fulfill_reservation(
    reservation_id: str, body: FulfillReservationRequest | None = None
) -> MovementIdResponse:
    movement_id = InventoryControl().fulfill(reservation_id, created_by=body.created_by if body else None)
    return MovementIdResponse(movement_id=movement_id)


@reservation_router.put("/{reservation_id}/release", response_model=StatusResponse)
async def release_reservation(reservation_id: str, body: ReleaseReservationRequest) -> StatusResponse:
    InventoryControl().release(reservation_id, reason=body.reason)
    return StatusResponse()


@reservation_router.put("/{reservation_id}/cancel", response_model=StatusResponse)
async def cancel_reservation(reservation_id: str, body: CancelReservationRequest) -> StatusResponse:
    cancelled = InventoryControl().cancel(reservation_id, reason=body.reason)
    return StatusResponse(status="ok" if cancelled else "unchanged")


@reservation_router.put("/{reservation_id}/extend", response_model=StatusResponse)
async def extend_reservation(reservation_id: str, body: ExtendReservationRequest) -> StatusResponse:
    InventoryControl().extend(reservation_id, timedelta(minutes=body.expires_in_minutes))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance/inventory", tags=["maintenance"])


@maintenance_router.post("/expire-reservations", response_model=ExpiryResponse)
async def expire_reservations(body: ExpireReservationsRequest | None = None) -> ExpiryResponse:
    """Expire lapsed reservations. Meant to be called by an external scheduler."""
    expired = InventoryControl().expire_due(as_of=body.as_of if body else None)
    return ExpiryResponse(expired=expired)
