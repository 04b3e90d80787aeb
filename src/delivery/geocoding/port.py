"""Geocoding port — abstract interface for address lookup providers.

Providers perform exactly one upstream request per call. Caching, rate
limiting and request coalescing are the Geocoder's job, not the provider's.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class GeocodingError(Exception):
    """Base class for geocoding failures."""


class AddressNotFound(GeocodingError):
    """The upstream returned zero results for the query."""


class GeocoderUpstreamError(GeocodingError):
    """Transport failure, timeout or non-2xx response from the upstream."""


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def as_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class AddressComponents:
    street: str | None = None
    barangay: str | None = None
    city: str | None = None
    province: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country: str = "Philippines"

    def as_dict(self) -> dict:
        return {
            "street": self.street,
            "barangay": self.barangay,
            "city": self.city,
            "province": self.province,
            "region": self.region,
            "postal_code": self.postal_code,
            "country": self.country,
        }


@dataclass(frozen=True)
class GeocodeResult:
    coordinates: Coordinates
    formatted_address: str
    components: AddressComponents = field(default_factory=AddressComponents)

    def as_dict(self) -> dict:
        return {
            "coordinates": self.coordinates.as_dict(),
            "formatted_address": self.formatted_address,
            "components": self.components.as_dict(),
        }


class GeocodingProvider(ABC):
    """Abstract interface for geocoding providers."""

    @abstractmethod
    def search(self, query: str) -> GeocodeResult:
        """Resolve a free-text address to coordinates.

        Raises:
            AddressNotFound: the upstream returned zero results.
            GeocoderUpstreamError: transport or non-2xx failure.
        """
        ...

    @abstractmethod
    def reverse(self, latitude: float, longitude: float) -> GeocodeResult:
        """Resolve coordinates to an address with structured components.

        Raises:
            AddressNotFound: the upstream returned no address for the point.
            GeocoderUpstreamError: transport or non-2xx failure.
        """
        ...
