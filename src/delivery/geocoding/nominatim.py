"""Nominatim (OpenStreetMap) geocoding provider.

Nominatim's usage policy requires an identifying User-Agent and at most one
request per second; the Geocoder's rate limiter enforces the latter.
"""

import requests
import structlog
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from delivery.geocoding.port import (
    AddressComponents,
    AddressNotFound,
    Coordinates,
    GeocodeResult,
    GeocoderUpstreamError,
    GeocodingProvider,
)

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://nominatim.openstreetmap.org"


def _first(mapping: dict, *keys: str) -> str | None:
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return None


def parse_address_components(address: dict) -> AddressComponents:
    """Map Nominatim's ``address`` block onto our structured components."""
    street = _first(address, "road", "street", "pedestrian")
    if street and address.get("house_number"):
        street = f"{address['house_number']} {street}"

    return AddressComponents(
        street=street,
        barangay=_first(address, "suburb", "quarter", "neighbourhood", "hamlet"),
        city=_first(address, "city", "town", "village", "municipality"),
        province=_first(address, "province", "state", "county"),
        region=_first(address, "region", "state"),
        postal_code=address.get("postcode"),
        country=address.get("country") or "Philippines",
    )


class NominatimProvider(GeocodingProvider):
    """Nominatim search/reverse over a pooled requests session."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = "deliverystream/0.1",
        timeout: float = 10.0,
        max_retries: int = 2,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        retry = Retry(
            total=max_retries,
            backoff_factor=0.5,
            backoff_max=8,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        self.session.mount("https://", HTTPAdapter(max_retries=retry))
        self.session.mount("http://", HTTPAdapter(max_retries=retry))

    def _get(self, path: str, params: dict) -> object:
        try:
            resp = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            logger.warning("Nominatim request failed", path=path, error=str(exc))
            raise GeocoderUpstreamError(f"Geocoding service request failed: {exc}") from exc
        except ValueError as exc:
            raise GeocoderUpstreamError("Geocoding service returned a malformed response") from exc

    def search(self, query: str) -> GeocodeResult:
        results = self._get(
            "/search",
            {"q": query, "format": "json", "limit": 1, "addressdetails": 1},
        )
        if not results:
            raise AddressNotFound(f"No results for address: {query}")

        hit = results[0]
        return GeocodeResult(
            coordinates=Coordinates(latitude=float(hit["lat"]), longitude=float(hit["lon"])),
            formatted_address=hit.get("display_name", query),
            components=parse_address_components(hit.get("address") or {}),
        )

    def reverse(self, latitude: float, longitude: float) -> GeocodeResult:
        data = self._get(
            "/reverse",
            {"lat": latitude, "lon": longitude, "format": "json", "addressdetails": 1},
        )
        if not data or "error" in data:
            raise AddressNotFound(f"No address found at {latitude},{longitude}")

        return GeocodeResult(
            coordinates=Coordinates(
                latitude=float(data.get("lat", latitude)),
                longitude=float(data.get("lon", longitude)),
            ),
            formatted_address=data.get("display_name", ""),
            components=parse_address_components(data.get("address") or {}),
        )
