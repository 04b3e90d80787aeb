"""Courier quotations.

A quotation is a stateless pricing query: nothing is persisted. Missing
stop coordinates are resolved through the geocoder first.
"""

import structlog

from delivery.courier import get_courier
from delivery.courier.port import CourierError, Quotation, Stop
from delivery.errors import AddressNotResolvable, UpstreamError
from delivery.geocoding import get_geocoder
from delivery.geocoding.port import AddressNotFound, Coordinates, GeocodingError

logger = structlog.get_logger(__name__)

DEFAULT_SERVICE_TYPE = "MOTORCYCLE"
DEFAULT_ITEM = {"quantity": "1", "weight": "1"}


def resolve_coordinates(address: str, coordinates: Coordinates | None, label: str) -> Coordinates:
    """Return ``coordinates`` or geocode ``address``."""
    if coordinates is not None:
        return coordinates
    try:
        return get_geocoder().geocode(address).coordinates
    except AddressNotFound as exc:
        raise AddressNotResolvable(f"Could not geocode {label} address", address=address) from exc
    except GeocodingError as exc:
        raise UpstreamError(f"Geocoding the {label} address failed: {exc}", retryable=True) from exc


def request_quotation(
    pickup_address: str,
    delivery_address: str,
    pickup_coordinates: Coordinates | None = None,
    delivery_coordinates: Coordinates | None = None,
    service_type: str = DEFAULT_SERVICE_TYPE,
    special_requests: list[str] | None = None,
    item: dict | None = None,
) -> tuple[Quotation, Coordinates, Coordinates]:
    """Price a pickup → drop-off route with the courier.

    Returns the quotation and the coordinates actually used for both stops.
    """
    if not pickup_address or not delivery_address:
        raise AddressNotResolvable("Pickup and delivery addresses are required")

    pickup = resolve_coordinates(pickup_address, pickup_coordinates, "pickup")
    drop_off = resolve_coordinates(delivery_address, delivery_coordinates, "delivery")

    stops = [
        Stop(address=pickup_address, latitude=pickup.latitude, longitude=pickup.longitude),
        Stop(address=delivery_address, latitude=drop_off.latitude, longitude=drop_off.longitude),
    ]
    try:
        quotation = get_courier().get_quotation(
            service_type=service_type or DEFAULT_SERVICE_TYPE,
            stops=stops,
            item=item or DEFAULT_ITEM,
            special_requests=special_requests or [],
        )
    except CourierError as exc:
        logger.warning("Courier quotation failed", error=exc.message, retryable=exc.retryable)
        raise UpstreamError(exc.message, retryable=exc.retryable, upstream=exc.error_id) from exc

    logger.info(
        "Courier quotation issued",
        quotation_id=quotation.quotation_id,
        price_total=quotation.price_total,
        currency=quotation.currency,
    )
    return quotation, pickup, drop_off
