"""Shipping fee calculator.

Zone match first (same city, same province, then the buyer's region),
distance band second, highest-tier default last. Orders at or above the
free-shipping threshold pay nothing regardless of zone.
"""

from dataclasses import asdict, dataclass

import structlog

from delivery.geocoding.geocoder import Geocoder, distance_km
from delivery.geocoding.port import Coordinates, GeocodingError
from delivery.shipping.rates import (
    CENTRAL_LUZON_PROVINCES,
    DEFAULT_RATE_TABLE,
    METRO_MANILA_AREAS,
    MINDANAO_PROVINCES,
    VISAYAS_PROVINCES,
    RateTable,
    ShippingRate,
)

logger = structlog.get_logger(__name__)

DEFAULT_FREE_SHIPPING_THRESHOLD = 1500.0


@dataclass(frozen=True)
class ShippingQuote:
    fee: float
    base_fee: float
    basis: str  # zone | distance | default
    free_shipping_applied: bool
    zone: str
    zone_name: str
    estimated_days: str
    is_direct_delivery: bool
    delivery_type: str
    distance_km: float | None = None

    def as_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Location parsing
# ---------------------------------------------------------------------------
def _parts(location: str) -> list[str]:
    return [p.strip() for p in location.lower().strip().split(",") if p.strip()]


def extract_city(location: str) -> str:
    """City is the first part, or the second when the first is a barangay."""
    parts = _parts(location)
    if not parts:
        return ""
    if len(parts) >= 2 and ("brgy" in parts[0] or "barangay" in parts[0]):
        return parts[1]
    return parts[0]


def extract_province(location: str) -> str:
    """Province is the last part, or the one before a trailing country."""
    parts = _parts(location)
    if not parts:
        return ""
    if len(parts) >= 2 and parts[-1] in ("philippines", "ph"):
        return parts[-2]
    return parts[-1]


def _matches_any(location: str, names: tuple[str, ...]) -> bool:
    lower = location.lower()
    return any(name in lower for name in names)


def determine_zone(seller_location: str, buyer_location: str) -> str | None:
    """Return the matching zone key, or None when no zone applies."""
    if not seller_location or not buyer_location:
        return None

    seller_city = extract_city(seller_location)
    buyer_city = extract_city(buyer_location)
    if seller_city and seller_city == buyer_city:
        return "direct"

    seller_province = extract_province(seller_location)
    buyer_province = extract_province(buyer_location)
    if seller_province and seller_province == buyer_province:
        return "same_province"

    if _matches_any(buyer_location, METRO_MANILA_AREAS):
        return "metro_manila"

    if _matches_any(seller_location, CENTRAL_LUZON_PROVINCES) and _matches_any(
        buyer_location, CENTRAL_LUZON_PROVINCES
    ):
        return "central_luzon"

    if _matches_any(buyer_location, VISAYAS_PROVINCES):
        return "visayas"

    if _matches_any(buyer_location, MINDANAO_PROVINCES):
        return "mindanao"

    return None


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------
class ShippingCalculator:
    """Deterministic fee calculation over a rate table."""

    def __init__(
        self,
        rate_table: RateTable = DEFAULT_RATE_TABLE,
        free_shipping_threshold: float | None = DEFAULT_FREE_SHIPPING_THRESHOLD,
        geocoder: Geocoder | None = None,
    ) -> None:
        self.rate_table = rate_table
        self.free_shipping_threshold = free_shipping_threshold
        self.geocoder = geocoder

    def calculate(
        self,
        seller_location: str,
        buyer_location: str,
        subtotal: float,
        seller_coordinates: Coordinates | None = None,
        buyer_coordinates: Coordinates | None = None,
    ) -> ShippingQuote:
        if subtotal < 0:
            raise ValueError("subtotal must not be negative")

        km = None
        zone = determine_zone(seller_location, buyer_location)
        if zone is not None:
            rate, basis = self.rate_table.rate(zone), "zone"
        else:
            km = self._distance(seller_location, buyer_location, seller_coordinates, buyer_coordinates)
            if km is None:
                rate, basis = self.rate_table.default_rate, "default"
            else:
                rate, basis = self.rate_table.rate_for_distance(km), "distance"

        free = self.free_shipping_threshold is not None and subtotal >= self.free_shipping_threshold
        return self._quote(rate, basis, free, km)

    def all_rates(self) -> list[ShippingRate]:
        return list(self.rate_table.rates.values())

    def _distance(
        self,
        seller_location: str,
        buyer_location: str,
        seller_coordinates: Coordinates | None,
        buyer_coordinates: Coordinates | None,
    ) -> float | None:
        try:
            origin = seller_coordinates or self._resolve(seller_location)
            destination = buyer_coordinates or self._resolve(buyer_location)
        except GeocodingError as exc:
            logger.warning(
                "Distance lookup failed, using default rate",
                seller_location=seller_location,
                buyer_location=buyer_location,
                error=str(exc),
            )
            return None
        if origin is None or destination is None:
            return None
        return round(distance_km(origin, destination), 2)

    def _resolve(self, location: str) -> Coordinates | None:
        if self.geocoder is None or not location:
            return None
        return self.geocoder.geocode(location).coordinates

    @staticmethod
    def _quote(rate: ShippingRate, basis: str, free: bool, km: float | None) -> ShippingQuote:
        return ShippingQuote(
            fee=0.0 if free else rate.fee,
            base_fee=rate.fee,
            basis=basis,
            free_shipping_applied=free,
            zone=rate.zone,
            zone_name=rate.zone_name,
            estimated_days=rate.estimated_days,
            is_direct_delivery=rate.is_direct_delivery,
            delivery_type=rate.delivery_type.value,
            distance_km=km,
        )
