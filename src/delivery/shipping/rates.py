"""Philippine shipping rate table.

Zones are matched on the seller and buyer location strings. Distance bands
apply only when no zone matches; the highest tier is the fallback when the
distance cannot be computed.
"""

from dataclasses import dataclass
from enum import Enum


class DeliveryType(Enum):
    DIRECT = "direct"
    SINGLE_HUB = "single_hub"
    HUB_TO_HUB = "hub_to_hub"


@dataclass(frozen=True)
class ShippingRate:
    zone: str
    zone_name: str
    fee: float
    estimated_days: str
    is_direct_delivery: bool = False

    @property
    def delivery_type(self) -> DeliveryType:
        if self.is_direct_delivery:
            return DeliveryType.DIRECT
        if self.zone == "same_province":
            return DeliveryType.SINGLE_HUB
        return DeliveryType.HUB_TO_HUB

    def as_dict(self) -> dict:
        return {
            "zone": self.zone,
            "zone_name": self.zone_name,
            "fee": self.fee,
            "estimated_days": self.estimated_days,
            "is_direct_delivery": self.is_direct_delivery,
            "delivery_type": self.delivery_type.value,
        }


@dataclass(frozen=True)
class DistanceBand:
    max_km: float
    zone: str


@dataclass(frozen=True)
class RateTable:
    rates: dict[str, ShippingRate]
    distance_bands: tuple[DistanceBand, ...]
    default_zone: str

    def rate(self, zone: str) -> ShippingRate:
        return self.rates[zone]

    @property
    def default_rate(self) -> ShippingRate:
        return self.rates[self.default_zone]

    def rate_for_distance(self, km: float) -> ShippingRate:
        for band in self.distance_bands:
            if km <= band.max_km:
                return self.rates[band.zone]
        return self.default_rate


SHIPPING_RATES = {
    "direct": ShippingRate("direct", "Direct Delivery (Same City)", 15.0, "Same day - 1 day", True),
    "same_city": ShippingRate("same_city", "Same City", 20.0, "1 day", True),
    "same_province": ShippingRate("same_province", "Same Province", 29.0, "1-2 days"),
    "central_luzon": ShippingRate("central_luzon", "Central Luzon", 39.0, "2-3 days"),
    "metro_manila": ShippingRate("metro_manila", "Metro Manila", 39.0, "2-3 days"),
    "other_luzon": ShippingRate("other_luzon", "Other Luzon", 49.0, "3-4 days"),
    "visayas": ShippingRate("visayas", "Visayas", 79.0, "4-6 days"),
    "mindanao": ShippingRate("mindanao", "Mindanao", 99.0, "5-7 days"),
}

DISTANCE_BANDS = (
    DistanceBand(max_km=15, zone="same_city"),
    DistanceBand(max_km=60, zone="same_province"),
    DistanceBand(max_km=250, zone="other_luzon"),
    DistanceBand(max_km=600, zone="visayas"),
)

DEFAULT_RATE_TABLE = RateTable(
    rates=SHIPPING_RATES,
    distance_bands=DISTANCE_BANDS,
    default_zone="mindanao",
)


CENTRAL_LUZON_PROVINCES = (
    "aurora",
    "bataan",
    "bulacan",
    "nueva ecija",
    "pampanga",
    "tarlac",
    "zambales",
)

METRO_MANILA_AREAS = (
    "manila",
    "quezon city",
    "makati",
    "pasig",
    "taguig",
    "mandaluyong",
    "san juan",
    "pasay",
    "parañaque",
    "paranaque",
    "las piñas",
    "las pinas",
    "muntinlupa",
    "marikina",
    "caloocan",
    "malabon",
    "navotas",
    "valenzuela",
    "pateros",
    "ncr",
    "metro manila",
)

VISAYAS_PROVINCES = (
    "cebu",
    "bohol",
    "iloilo",
    "negros",
    "leyte",
    "samar",
    "panay",
    "aklan",
    "antique",
    "capiz",
    "guimaras",
    "siquijor",
    "biliran",
)

MINDANAO_PROVINCES = (
    "davao",
    "zamboanga",
    "cagayan de oro",
    "general santos",
    "cotabato",
    "bukidnon",
    "misamis",
    "lanao",
    "surigao",
    "agusan",
    "basilan",
    "sulu",
    "tawi-tawi",
    "sarangani",
    "sultan kudarat",
    "maguindanao",
    "compostela valley",
)
