"""FastAPI routes for the delivery service.

Routes that reach the courier, the geocoder or a delivery lock are plain
functions, so FastAPI runs them in its threadpool. Only the webhook receiver
is async; it acknowledges without any outbound call.
"""

import json

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from delivery.api.auth import Caller, current_caller
from delivery.api.schemas import (
    AddressSchema,
    AssignDriverRequest,
    CancelDeliveryRequest,
    CancelDeliveryResponse,
    CourierLinkResponse,
    CreateDeliveryRequest,
    DeliveryIdResponse,
    DeliveryResponse,
    DriverResponse,
    EditOrderRequest,
    EditOrderResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    QuotationRequest,
    RegisterWebhookRequest,
    RetrySummaryResponse,
    ShippingCalculateRequest,
    StatusResponse,
    TimelineEntryResponse,
    TrackingResponse,
    UpdateStatusRequest,
    WebhookAckResponse,
)
from delivery.config import get_settings
from delivery.courier import get_courier
from delivery.courier.port import CourierError
from delivery.delivery.assignment import AssignDriver
from delivery.delivery.cancellation import CancelDelivery
from delivery.delivery.creation import CreateDelivery
from delivery.delivery.delivery import Delivery
from delivery.delivery.editing import EditCourierOrder
from delivery.delivery.placement import PlaceCourierOrder
from delivery.delivery.progress import UpdateDeliveryProgress
from delivery.delivery.quotation import request_quotation
from delivery.domain import delivery
from delivery.drivers.directory import driver_directory
from delivery.errors import AddressNotResolvable, DeliveryNotFound, ForbiddenError, UpstreamError
from delivery.geocoding import get_geocoder
from delivery.geocoding.port import AddressNotFound, Coordinates, GeocodingError
from delivery.locks import process_serialized
from delivery.projections.delivery_tracking import DeliveryTrackingView
from delivery.reconciliation.service import (
    reconcile_or_defer,
    refresh_courier_status,
    retry_pending_reconciliations,
)
from delivery.shipping.calculator import ShippingCalculator

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _load(delivery_id: str) -> Delivery:
    try:
        return current_domain.repository_for(Delivery).get(delivery_id)
    except ObjectNotFoundError:
        raise DeliveryNotFound(f"Delivery {delivery_id} not found")


def _load_for_order(order_id: str) -> Delivery:
    dlv = current_domain.repository_for(Delivery).find_by_order_id(order_id)
    if dlv is None:
        raise DeliveryNotFound(f"No delivery for order {order_id}")
    return dlv


def _require_admin(caller: Caller) -> None:
    if caller.role != ADMIN_ROLE:
        raise ForbiddenError("Administrator access required")


def _coordinates(schema) -> Coordinates | None:
    return Coordinates(schema.latitude, schema.longitude) if schema is not None else None


def delivery_response(dlv: Delivery) -> DeliveryResponse:
    """Foreign keys only; parties are resolved by the caller's read side."""
    driver = None
    if dlv.driver:
        driver = DriverResponse(
            name=dlv.driver.name,
            phone=dlv.driver.phone,
            email=dlv.driver.email,
            vehicle_type=dlv.driver.vehicle_type,
            plate_number=dlv.driver.plate_number,
            vehicle_description=dlv.driver.vehicle_description,
            courier_driver_id=dlv.driver.courier_driver_id,
        )

    courier = None
    if dlv.has_courier_order:
        courier = CourierLinkResponse(
            provider=dlv.courier_provider,
            order_id=dlv.courier_order_id,
            quotation_id=dlv.courier_quotation_id,
            status=dlv.courier_status,
            tracking_url=dlv.courier_tracking_url,
            fare=dlv.courier_fare,
            currency=dlv.courier_currency,
        )

    timeline = sorted(dlv.timeline or [], key=lambda e: e.occurred_at)
    return DeliveryResponse(
        delivery_id=str(dlv.id),
        order_id=str(dlv.order_id),
        tracking_number=dlv.tracking_number,
        buyer_id=str(dlv.buyer_id),
        seller_id=str(dlv.seller_id),
        status=dlv.status,
        order_status=dlv.order_status,
        pickup_address=AddressSchema(**dlv.pickup_address.to_dict()) if dlv.pickup_address else None,
        delivery_address=AddressSchema(**dlv.delivery_address.to_dict()) if dlv.delivery_address else None,
        driver=driver,
        courier=courier,
        estimated_delivery_time=dlv.estimated_delivery_time,
        seller_notes=dlv.seller_notes,
        cancellation_reason=dlv.cancellation_reason,
        upstream_cancel_error=dlv.upstream_cancel_error,
        assigned_at=dlv.assigned_at,
        picked_up_at=dlv.picked_up_at,
        in_transit_at=dlv.in_transit_at,
        actual_delivery_time=dlv.actual_delivery_time,
        cancelled_at=dlv.cancelled_at,
        created_at=dlv.created_at,
        updated_at=dlv.updated_at,
        timeline=[
            TimelineEntryResponse(
                status=e.status,
                source=e.source,
                notes=e.notes,
                occurred_at=e.occurred_at,
            )
            for e in timeline
        ],
    )


# ---------------------------------------------------------------------------
# Delivery Router
# ---------------------------------------------------------------------------
delivery_router = APIRouter(prefix="/deliveries", tags=["deliveries"])


@delivery_router.post("", status_code=201, response_model=DeliveryIdResponse)
def create_delivery(body: CreateDeliveryRequest, caller: Caller = Depends(current_caller)) -> DeliveryIdResponse:
    """Create the delivery for a paid order. Repeating the call is harmless."""
    command = CreateDelivery(
        order_id=body.order_id,
        buyer_id=body.buyer_id,
        seller_id=body.seller_id,
        subtotal=body.subtotal,
        pickup_address=body.pickup_address.model_dump_json(),
        delivery_address=body.delivery_address.model_dump_json(),
    )
    delivery_id = process_serialized(f"order:{body.order_id}", command)
    dlv = _load(delivery_id)
    return DeliveryIdResponse(delivery_id=delivery_id, tracking_number=dlv.tracking_number)


@delivery_router.get("/by-order/{order_id}", response_model=DeliveryResponse)
def get_delivery_for_order(order_id: str, caller: Caller = Depends(current_caller)) -> DeliveryResponse:
    dlv = _load_for_order(order_id)
    dlv.ensure_party(caller.user_id)
    return delivery_response(dlv)


@delivery_router.get("/{delivery_id}", response_model=DeliveryResponse)
def get_delivery(delivery_id: str, caller: Caller = Depends(current_caller)) -> DeliveryResponse:
    dlv = _load(delivery_id)
    dlv.ensure_party(caller.user_id)
    return delivery_response(dlv)


@delivery_router.post("/{delivery_id}/assign-driver", response_model=DeliveryResponse)
def assign_driver(
    delivery_id: str,
    body: AssignDriverRequest,
    caller: Caller = Depends(current_caller),
) -> DeliveryResponse:
    """Assign an internal driver, bypassing the courier."""
    _load(delivery_id)
    command = AssignDriver(
        delivery_id=delivery_id,
        requested_by=caller.user_id,
        driver_id=body.driver_id,
        driver_name=body.driver_name,
        driver_phone=body.driver_phone,
        driver_email=body.driver_email,
        vehicle_type=body.vehicle_type,
        plate_number=body.plate_number,
        vehicle_description=body.vehicle_description,
        estimated_delivery_time=body.estimated_delivery_time,
        seller_notes=body.seller_notes,
    )
    process_serialized(delivery_id, command)
    return delivery_response(_load(delivery_id))


@delivery_router.post("/{delivery_id}/status", response_model=StatusResponse)
def update_status(
    delivery_id: str,
    body: UpdateStatusRequest,
    caller: Caller = Depends(current_caller),
) -> StatusResponse:
    """Seller-reported progress for deliveries without a courier order."""
    _load(delivery_id)
    command = UpdateDeliveryProgress(
        delivery_id=delivery_id,
        requested_by=caller.user_id,
        status=body.status,
        notes=body.notes,
    )
    status = process_serialized(delivery_id, command)
    return StatusResponse(status=status)


@delivery_router.post("/{delivery_id}/cancel", response_model=CancelDeliveryResponse)
def cancel_delivery(
    delivery_id: str,
    body: CancelDeliveryRequest,
    caller: Caller = Depends(current_caller),
) -> CancelDeliveryResponse:
    _load(delivery_id)
    command = CancelDelivery(delivery_id=delivery_id, requested_by=caller.user_id, reason=body.reason)
    return CancelDeliveryResponse(**process_serialized(delivery_id, command))


# ---------------------------------------------------------------------------
# Courier (Lalamove) Router
# ---------------------------------------------------------------------------
lalamove_router = APIRouter(prefix="/lalamove", tags=["lalamove"])


@lalamove_router.post("/quotation")
def get_quotation(body: QuotationRequest, caller: Caller = Depends(current_caller)) -> dict:
    """Price a route with the courier. Nothing is persisted."""
    quotation, pickup, drop_off = request_quotation(
        pickup_address=body.pickup_address,
        delivery_address=body.delivery_address,
        pickup_coordinates=_coordinates(body.pickup_coordinates),
        delivery_coordinates=_coordinates(body.delivery_coordinates),
        service_type=body.service_type,
        special_requests=body.special_requests,
        item=body.item,
    )
    return {
        "quotation": quotation.as_dict(),
        "pickup_coordinates": pickup.as_dict(),
        "delivery_coordinates": drop_off.as_dict(),
    }


@lalamove_router.post("/place-order", response_model=PlaceOrderResponse)
def place_order(body: PlaceOrderRequest, caller: Caller = Depends(current_caller)) -> PlaceOrderResponse:
    dlv = _load_for_order(body.order_id)
    command = PlaceCourierOrder(
        delivery_id=str(dlv.id),
        requested_by=caller.user_id,
        quotation_id=body.quotation_id,
        sender_name=body.sender_name,
        sender_phone=body.sender_phone,
        recipient_name=body.recipient_name,
        recipient_phone=body.recipient_phone,
        is_pod_enabled=body.is_pod_enabled,
    )
    return PlaceOrderResponse(**process_serialized(str(dlv.id), command))


@lalamove_router.patch("/order/{order_id}", response_model=EditOrderResponse)
def edit_order(
    order_id: str,
    body: EditOrderRequest,
    caller: Caller = Depends(current_caller),
) -> EditOrderResponse:
    """Edit drop-off details; rejected once the parcel is picked up."""
    dlv = _load_for_order(order_id)
    command = EditCourierOrder(
        delivery_id=str(dlv.id),
        requested_by=caller.user_id,
        delivery_address=body.delivery_address.model_dump_json() if body.delivery_address else None,
        recipient_name=body.recipient_name,
        recipient_phone=body.recipient_phone,
        remarks=body.remarks,
    )
    return EditOrderResponse(**process_serialized(str(dlv.id), command))


@lalamove_router.post("/order/{order_id}/cancel", response_model=CancelDeliveryResponse)
def cancel_order(
    order_id: str,
    body: CancelDeliveryRequest,
    caller: Caller = Depends(current_caller),
) -> CancelDeliveryResponse:
    """Cancel locally and upstream; an upstream refusal is reported, not raised."""
    dlv = _load_for_order(order_id)
    command = CancelDelivery(delivery_id=str(dlv.id), requested_by=caller.user_id, reason=body.reason)
    return CancelDeliveryResponse(**process_serialized(str(dlv.id), command))


@lalamove_router.get("/order/{order_id}")
def get_order(order_id: str, caller: Caller = Depends(current_caller)) -> dict:
    """Refresh from the courier, then return the delivery and courier view."""
    dlv = _load_for_order(order_id)
    dlv.ensure_party(caller.user_id)
    if not dlv.has_courier_order:
        return {"lalamove_enabled": False, "delivery": delivery_response(dlv).model_dump(mode="json")}

    courier_view, refresh_error = None, None
    try:
        result = refresh_courier_status(str(dlv.id))
        courier_view = result["courier"] if result else None
    except UpstreamError as exc:
        refresh_error = exc.message

    dlv = _load(str(dlv.id))
    return {
        "lalamove_enabled": True,
        "delivery": delivery_response(dlv).model_dump(mode="json"),
        "courier": courier_view,
        "refresh_error": refresh_error,
    }


@lalamove_router.get("/city-info")
def get_city_info(city: str = "PH_PH", caller: Caller = Depends(current_caller)) -> dict:
    try:
        info = get_courier().get_city_info(city)
    except CourierError as exc:
        raise UpstreamError(exc.message, retryable=exc.retryable, upstream=exc.error_id) from exc
    return {"city": {"locode": info.locode, "name": info.name, "services": info.services}}


def webhook_update(body: dict) -> dict | None:
    """Translate a courier webhook payload into reconciliation fields."""
    courier_order_id = body.get("orderId")
    message_type = body.get("messageType")
    if not courier_order_id or not message_type:
        return None

    data = body.get("data") or {}
    amount = data.get("amount")
    try:
        amount = float(amount) if amount is not None else None
    except (TypeError, ValueError):
        amount = None
    return {
        "courier_order_id": str(courier_order_id),
        "message_type": str(message_type),
        "courier_status": data.get("status"),
        "driver_id": data.get("driverId"),
        "share_link": data.get("shareLink"),
        "amount": amount,
        "currency": data.get("currency"),
        "source": "webhook",
    }


def _reconcile_in_background(update: dict) -> None:
    with delivery.domain_context():
        reconcile_or_defer(update)


@lalamove_router.post("/webhook", response_model=WebhookAckResponse)
async def courier_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_lalamove_signature: str = Header(default=""),
    x_lalamove_timestamp: str = Header(default=""),
) -> WebhookAckResponse:
    """Acknowledge at once; reconciliation runs after the response."""
    raw = (await request.body()).decode("utf-8")
    if not get_courier().verify_webhook_signature(raw, x_lalamove_timestamp, x_lalamove_signature):
        logger.warning("Courier webhook signature rejected")
        return WebhookAckResponse(scheduled=False)

    try:
        body = json.loads(raw)
    except ValueError:
        logger.warning("Courier webhook body is not JSON")
        return WebhookAckResponse(scheduled=False)

    update = webhook_update(body) if isinstance(body, dict) else None
    if update is None:
        logger.warning("Courier webhook missing order or message type")
        return WebhookAckResponse(scheduled=False)

    logger.info(
        "Courier webhook received",
        courier_order_id=update["courier_order_id"],
        message_type=update["message_type"],
        courier_status=update["courier_status"],
    )
    background_tasks.add_task(_reconcile_in_background, update)
    return WebhookAckResponse(scheduled=True)


@lalamove_router.post("/webhook/register", response_model=StatusResponse)
def register_webhook(body: RegisterWebhookRequest, caller: Caller = Depends(current_caller)) -> StatusResponse:
    _require_admin(caller)
    try:
        get_courier().set_webhook_url(body.url)
    except CourierError as exc:
        raise UpstreamError(exc.message, retryable=exc.retryable, upstream=exc.error_id) from exc
    logger.info("Courier webhook registered", url=body.url)
    return StatusResponse(status="webhook_registered")


@lalamove_router.post("/reconciliations/retry", response_model=RetrySummaryResponse)
def retry_reconciliations(caller: Caller = Depends(current_caller)) -> RetrySummaryResponse:
    _require_admin(caller)
    return RetrySummaryResponse(**retry_pending_reconciliations())


# ---------------------------------------------------------------------------
# Public Tracking Router
# ---------------------------------------------------------------------------
tracking_router = APIRouter(prefix="/delivery", tags=["tracking"])


@tracking_router.get("/track/{tracking_number}", response_model=TrackingResponse)
def track_delivery(tracking_number: str) -> TrackingResponse:
    """Public, unauthenticated and redacted."""
    try:
        view = current_domain.repository_for(DeliveryTrackingView).get(tracking_number)
    except ObjectNotFoundError:
        raise DeliveryNotFound(f"Tracking number {tracking_number} not found")

    return TrackingResponse(
        tracking_number=view.tracking_number,
        status=view.status,
        driver_name=view.driver_name,
        driver_phone=view.driver_phone,
        vehicle_type=view.vehicle_type,
        plate_number=view.plate_number,
        pickup_city=view.pickup_city,
        delivery_city=view.delivery_city,
        courier_tracking_url=view.courier_tracking_url,
        estimated_delivery_time=view.estimated_delivery_time,
        created_at=view.created_at,
        assigned_at=view.assigned_at,
        picked_up_at=view.picked_up_at,
        in_transit_at=view.in_transit_at,
        delivered_at=view.delivered_at,
        cancelled_at=view.cancelled_at,
        timeline=json.loads(view.timeline_json) if view.timeline_json else [],
    )


# ---------------------------------------------------------------------------
# Driver Directory Router
# ---------------------------------------------------------------------------
driver_router = APIRouter(prefix="/drivers", tags=["drivers"])


@driver_router.get("")
def list_drivers(vehicle_type: str | None = None) -> dict:
    drivers = driver_directory.available(vehicle_type)
    return {"drivers": [d.as_dict() for d in drivers]}


# ---------------------------------------------------------------------------
# Shipping Router
# ---------------------------------------------------------------------------
shipping_router = APIRouter(prefix="/shipping", tags=["shipping"])


def _calculator() -> ShippingCalculator:
    return ShippingCalculator(
        free_shipping_threshold=get_settings().free_shipping_threshold,
        geocoder=get_geocoder(),
    )


@shipping_router.get("/rates")
def list_rates() -> dict:
    return {
        "rates": [rate.as_dict() for rate in _calculator().all_rates()],
        "free_shipping_threshold": get_settings().free_shipping_threshold,
    }


@shipping_router.post("/calculate")
def calculate_shipping(body: ShippingCalculateRequest) -> dict:
    quote = _calculator().calculate(
        seller_location=body.seller_location,
        buyer_location=body.buyer_location,
        subtotal=body.subtotal,
        seller_coordinates=_coordinates(body.seller_coordinates),
        buyer_coordinates=_coordinates(body.buyer_coordinates),
    )
    return quote.as_dict()


# ---------------------------------------------------------------------------
# Geocoding Router
# ---------------------------------------------------------------------------
geocoding_router = APIRouter(prefix="/geocoding", tags=["geocoding"])


@geocoding_router.get("/search")
def geocode_search(address: str = Query(min_length=1)) -> dict:
    try:
        result = get_geocoder().geocode(address)
    except AddressNotFound as exc:
        raise AddressNotResolvable(str(exc) or "Address not found", address=address) from exc
    except GeocodingError as exc:
        raise UpstreamError(str(exc), retryable=True) from exc
    return result.as_dict()


@geocoding_router.get("/reverse")
def geocode_reverse(
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
) -> dict:
    try:
        result = get_geocoder().reverse_geocode(lat, lon)
    except AddressNotFound as exc:
        raise AddressNotResolvable(str(exc) or "No address at these coordinates") from exc
    except GeocodingError as exc:
        raise UpstreamError(str(exc), retryable=True) from exc
    return result.as_dict()
