"""Pydantic API schemas for the delivery service.

These are the external API contracts, kept separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------
class CoordinatesSchema(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class AddressSchema(BaseModel):
    full_address: str | None = None
    street: str | None = None
    barangay: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    country: str = "Philippines"
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class CreateDeliveryRequest(BaseModel):
    order_id: str
    buyer_id: str
    seller_id: str
    subtotal: float = Field(default=0.0, ge=0)
    pickup_address: AddressSchema
    delivery_address: AddressSchema


class AssignDriverRequest(BaseModel):
    driver_id: str | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    driver_email: str | None = None
    vehicle_type: str | None = None
    plate_number: str | None = None
    vehicle_description: str | None = None
    estimated_delivery_time: datetime | None = None
    seller_notes: str | None = None


class UpdateStatusRequest(BaseModel):
    status: str
    notes: str | None = None


class CancelDeliveryRequest(BaseModel):
    reason: str | None = None


class QuotationRequest(BaseModel):
    pickup_address: str
    delivery_address: str
    pickup_coordinates: CoordinatesSchema | None = None
    delivery_coordinates: CoordinatesSchema | None = None
    service_type: str = "MOTORCYCLE"
    special_requests: list[str] = Field(default_factory=list)
    item: dict | None = None


class PlaceOrderRequest(BaseModel):
    order_id: str
    quotation_id: str
    sender_name: str | None = None
    sender_phone: str | None = None
    recipient_name: str | None = None
    recipient_phone: str | None = None
    is_pod_enabled: bool = False


class EditOrderRequest(BaseModel):
    delivery_address: AddressSchema | None = None
    recipient_name: str | None = None
    recipient_phone: str | None = None
    remarks: str | None = None


class RegisterWebhookRequest(BaseModel):
    url: str


class ShippingCalculateRequest(BaseModel):
    seller_location: str
    buyer_location: str
    subtotal: float = Field(ge=0)
    seller_coordinates: CoordinatesSchema | None = None
    buyer_coordinates: CoordinatesSchema | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class DeliveryIdResponse(BaseModel):
    delivery_id: str
    tracking_number: str


class StatusResponse(BaseModel):
    status: str


class DriverResponse(BaseModel):
    name: str
    phone: str
    email: str | None = None
    vehicle_type: str | None = None
    plate_number: str | None = None
    vehicle_description: str | None = None
    courier_driver_id: str | None = None


class CourierLinkResponse(BaseModel):
    provider: str | None = None
    order_id: str | None = None
    quotation_id: str | None = None
    status: str | None = None
    tracking_url: str | None = None
    fare: float | None = None
    currency: str | None = None


class TimelineEntryResponse(BaseModel):
    status: str
    source: str
    notes: str | None = None
    occurred_at: datetime


class DeliveryResponse(BaseModel):
    delivery_id: str
    order_id: str
    tracking_number: str
    buyer_id: str
    seller_id: str
    status: str
    order_status: str
    pickup_address: AddressSchema | None = None
    delivery_address: AddressSchema | None = None
    driver: DriverResponse | None = None
    courier: CourierLinkResponse | None = None
    estimated_delivery_time: datetime | None = None
    seller_notes: str | None = None
    cancellation_reason: str | None = None
    upstream_cancel_error: str | None = None
    assigned_at: datetime | None = None
    picked_up_at: datetime | None = None
    in_transit_at: datetime | None = None
    actual_delivery_time: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    timeline: list[TimelineEntryResponse] = Field(default_factory=list)


class CancelDeliveryResponse(BaseModel):
    delivery_id: str
    cancelled: bool
    status: str
    upstream_cancelled: bool | None = None
    upstream_error: str | None = None


class PlaceOrderResponse(BaseModel):
    delivery_id: str
    order_id: str
    status: str
    courier_order_id: str
    courier_status: str | None = None
    quotation_id: str
    tracking_url: str | None = None
    driver_id: str | None = None


class EditOrderResponse(BaseModel):
    delivery_id: str
    courier_order_id: str
    tracking_url: str | None = None
    status: str


class TrackingResponse(BaseModel):
    tracking_number: str
    status: str
    driver_name: str | None = None
    driver_phone: str | None = None
    vehicle_type: str | None = None
    plate_number: str | None = None
    pickup_city: str | None = None
    delivery_city: str | None = None
    courier_tracking_url: str | None = None
    estimated_delivery_time: datetime | None = None
    created_at: datetime | None = None
    assigned_at: datetime | None = None
    picked_up_at: datetime | None = None
    in_transit_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    timeline: list[dict] = Field(default_factory=list)


class WebhookAckResponse(BaseModel):
    received: bool = True
    scheduled: bool


class RetrySummaryResponse(BaseModel):
    attempted: int
    resolved: int
    failed: int
    abandoned: int
