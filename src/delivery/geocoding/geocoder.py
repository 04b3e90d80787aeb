"""Geocoder — cached, rate-limited, coalescing front for a geocoding provider.

Lookup order for both directions:
    cache hit  → return immediately (rate limiter untouched)
    in flight  → wait for the leader's result
    otherwise  → take a rate limiter slot, call the provider, cache the result

Failures are never cached; a later call retries upstream.
"""

import threading
from math import atan2, cos, radians, sin, sqrt

import structlog

from delivery.geocoding.cache import GeocodeCache
from delivery.geocoding.port import Coordinates, GeocodeResult, GeocodingProvider
from delivery.geocoding.rate_limiter import IntervalRateLimiter

logger = structlog.get_logger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_COUNTRY = "Philippines"
DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Return the great-circle (haversine) distance in km between two points."""
    lat1, lon1, lat2, lon2 = map(radians, [a.latitude, a.longitude, b.latitude, b.longitude])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))


def format_address_for_geocoding(
    street: str | None = None,
    barangay: str | None = None,
    city: str | None = None,
    province: str | None = None,
    country: str = DEFAULT_COUNTRY,
) -> str:
    """Join address parts into a query string, skipping blanks."""
    parts = [street, f"Barangay {barangay}" if barangay else None, city, province, country]
    return ", ".join(p.strip() for p in parts if p and p.strip())


def normalize_address(address: str) -> str:
    return " ".join(address.lower().split())


class _InFlight:
    """A single upstream lookup that followers can wait on."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: GeocodeResult | None = None
        self.error: BaseException | None = None


class Geocoder:
    """Address <-> coordinate resolution with TTL cache and single-slot rate limiting."""

    def __init__(
        self,
        provider: GeocodingProvider,
        cache: GeocodeCache | None = None,
        rate_limiter: IntervalRateLimiter | None = None,
        country: str = DEFAULT_COUNTRY,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else GeocodeCache(ttl_seconds=DEFAULT_TTL_SECONDS)
        self.rate_limiter = rate_limiter if rate_limiter is not None else IntervalRateLimiter(min_interval=1.0)
        self.country = country
        self._inflight: dict[str, _InFlight] = {}
        self._inflight_lock = threading.Lock()

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    def geocode(self, address: str) -> GeocodeResult:
        """Resolve a free-text address to coordinates.

        Raises ``AddressNotFound`` or ``GeocoderUpstreamError``.
        """
        key = f"geocode:{normalize_address(address)}"
        query = address.strip()
        if self.country and self.country.lower() not in query.lower():
            query = f"{query}, {self.country}"
        return self._lookup(key, lambda: self.provider.search(query))

    def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        """Resolve coordinates to an address and structured components."""
        key = f"reverse:{latitude:.6f},{longitude:.6f}"
        return self._lookup(key, lambda: self.provider.reverse(latitude, longitude))

    @staticmethod
    def distance(a: Coordinates, b: Coordinates) -> float:
        return distance_km(a, b)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _lookup(self, key: str, fetch) -> GeocodeResult:
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Geocode cache hit", key=key)
            return cached

        with self._inflight_lock:
            call = self._inflight.get(key)
            leader = call is None
            if leader:
                call = _InFlight()
                self._inflight[key] = call

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            # Another leader may have filled the cache between our miss and now
            cached = self.cache.get(key)
            if cached is not None:
                call.result = cached
                return cached

            logger.debug("Geocode cache miss", key=key)
            self.rate_limiter.acquire()
            result = fetch()
            self.cache.set(key, result)
            call.result = result
            return result
        except Exception as exc:
            call.error = exc
            raise
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)
            call.done.set()
