"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands. Money is always integer minor units.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartLineSchema(BaseModel):
    product_id: str
    store_id: str
    title: str | None = None
    quantity: int
    unit_price: int


class DeliveryInfoSchema(BaseModel):
    full_name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str = "US"
    instructions: str | None = None


class OrderItemSchema(BaseModel):
    product_id: str
    store_id: str
    title: str | None = None
    quantity: int
    unit_price: int


class TrackingEntrySchema(BaseModel):
    driver_id: str | None = None
    status: str
    location: str | None = None
    note: str | None = None
    recorded_at: datetime


# ---------------------------------------------------------------------------
# Cart Schemas
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    product_id: str
    quantity: int


class MergeCartRequest(BaseModel):
    session_id: str


class CartResponse(BaseModel):
    cart_id: str
    actor_kind: str
    actor_ref: str
    items: list[CartLineSchema]
    item_count: int
    total: int
    lines_merged: int | None = None


# ---------------------------------------------------------------------------
# Checkout Schemas
# ---------------------------------------------------------------------------
class ProcessCheckoutRequest(BaseModel):
    delivery_info: DeliveryInfoSchema


class ProcessCheckoutResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    order_id: str
    total: int
    platform_fee: int
    expires_at: datetime | None = None


class ConfirmCheckoutRequest(BaseModel):
    payment_intent_id: str


class ConfirmCheckoutResponse(BaseModel):
    status: str
    order_id: str | None = None


# ---------------------------------------------------------------------------
# Order Schemas
# ---------------------------------------------------------------------------
class AssignDriverRequest(BaseModel):
    driver_id: str


class AdvanceDeliveryRequest(BaseModel):
    status: str
    location: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str
    driver_id: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    buyer_kind: str
    buyer_ref: str
    total: int
    platform_fee: int
    primary_store_id: str | None = None
    payment_intent_id: str | None = None
    driver_id: str | None = None
    assigned_at: datetime | None = None
    estimated_delivery: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    items: list[OrderItemSchema]
    tracking: list[TrackingEntrySchema]
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Driver Schemas
# ---------------------------------------------------------------------------
class RegisterDriverRequest(BaseModel):
    full_name: str
    email: str
    phone: str
    license_number: str | None = None
    vehicle_type: str | None = None
    vehicle_plate: str | None = None


class DriverIdResponse(BaseModel):
    driver_id: str


class DriverStatusRequest(BaseModel):
    status: str


class DriverLocationRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class StatusResponse(BaseModel):
    status: str = "ok"
