"""Pydantic request/response schemas for the Inventory API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Record Request Schemas
# ---------------------------------------------------------------------------
class CreateInventoryRecordRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    sku: str = Field(min_length=1, max_length=100)
    initial_quantity: int = Field(ge=0, default=0)
    low_stock_threshold: int = Field(ge=0, default=10)
    reorder_point: int = Field(ge=0, default=5)
    max_stock_level: int = Field(ge=0, default=1000)
    unit_cost: float | None = Field(default=None, ge=0)
    created_by: str | None = None


class AddStockRequest(BaseModel):
    quantity: int = Field(ge=1)
    reason: str = "restock"
    reference: str | None = None
    supplier_id: str | None = None
    created_by: str | None = None


class RemoveStockRequest(BaseModel):
    quantity: int = Field(ge=1)
    reason: str = "sale"
    reference: str | None = None
    order_id: str | None = None
    created_by: str | None = None


class ReturnStockRequest(BaseModel):
    quantity: int = Field(ge=1)
    order_id: str | None = None
    reason: str = "customer return"
    created_by: str | None = None


class WriteOffRequest(BaseModel):
    quantity: int = Field(ge=1)
    movement_type: str
    reason: str
    created_by: str | None = None


class AdjustStockRequest(BaseModel):
    new_quantity: int
    reason: str
    counted_by: str | None = None


class ThresholdsRequest(BaseModel):
    low_stock_threshold: int
    reorder_point: int
    max_stock_level: int


class LifecycleStatusRequest(BaseModel):
    status: str


class UnitCostRequest(BaseModel):
    unit_cost: float


class LocationRequest(BaseModel):
    """Only the fields present in the body are applied; an explicit null clears a field."""

    warehouse_id: str | None = None
    location: str | None = None
    bin_code: str | None = None


class SupplierRequest(BaseModel):
    supplier_id: str | None = None
    supplier_sku: str | None = None
    lead_time_days: int | None = None


class NotesRequest(BaseModel):
    notes: str | None = None


class AttributeRequest(BaseModel):
    key: str = Field(min_length=1, max_length=100)
    value: str | bool | int | float


# ---------------------------------------------------------------------------
# Reservation Request Schemas
# ---------------------------------------------------------------------------
class ReserveStockRequest(BaseModel):
    sku: str
    order_id: str
    quantity: int = Field(ge=1)
    # Omitted: RESERVATION_TTL_MINUTES applies
    expires_in_minutes: int | None = Field(default=None, ge=1)
    no_expiry: bool = False


class ReleaseReservationRequest(BaseModel):
    reason: str = "released"


class CancelReservationRequest(BaseModel):
    reason: str = "cancelled"


class ExtendReservationRequest(BaseModel):
    expires_in_minutes: int = Field(ge=1)


class FulfillReservationRequest(BaseModel):
    created_by: str | None = None


class ExpireReservationsRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class InventoryRecordIdResponse(BaseModel):
    inventory_record_id: str


class ReservationIdResponse(BaseModel):
    reservation_id: str


class MovementIdResponse(BaseModel):
    movement_id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class ExpiryResponse(BaseModel):
    expired: int


class StockLevelResponse(BaseModel):
    inventory_record_id: str
    product_id: str
    variant_id: str | None = None
    sku: str
    quantity: int
    reserved: int
    available: int
    stock_status: str
    lifecycle_status: str
    low_stock_threshold: int
    reorder_point: int
    max_stock_level: int
    unit_cost: float | None = None
    total_value: float
    needs_reorder: bool
    is_overstocked: bool
    attributes: dict[str, str | bool | int | float] = {}
    active_reservations: int
    days_without_sale: int
    days_since_restock: int
    turnover_rate: float


class AvailabilityResponse(BaseModel):
    sku: str
    inventory_record_id: str
    requested: int
    available: int
    can_fulfill: bool


class LowStockEntryResponse(BaseModel):
    inventory_record_id: str
    product_id: str
    variant_id: str | None = None
    sku: str
    current_available: int
    reorder_point: int
    is_critical: bool
    detected_at: datetime | None = None


class StockSummaryResponse(BaseModel):
    inventory_record_id: str
    product_id: str
    variant_id: str | None = None
    sku: str
    quantity: int
    reserved: int
    available: int
    stock_status: str
    lifecycle_status: str
    updated_at: datetime | None = None


class MovementResponse(BaseModel):
    movement_id: str
    movement_type: str
    quantity: int
    quantity_change: int
    previous_quantity: int
    new_quantity: int
    reason: str | None = None
    reference: str | None = None
    order_id: str | None = None
    actor: str | None = None
    occurred_at: datetime
