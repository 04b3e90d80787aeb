"""Fake geocoding provider — deterministic lookups for tests and development.

Addresses are registered up front with ``add_address``; unknown addresses
resolve to ``AddressNotFound``. Every call is recorded along with the clock
reading at dispatch so tests can assert on rate limiting.
"""

import time
from collections.abc import Callable

from delivery.geocoding.port import (
    AddressComponents,
    AddressNotFound,
    Coordinates,
    GeocodeResult,
    GeocoderUpstreamError,
    GeocodingProvider,
)


class FakeGeocodingProvider(GeocodingProvider):
    """In-memory geocoder keyed by lowercased query."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.should_succeed = True
        self.failure_reason = "Geocoding service unavailable"
        self.delay: float = 0.0
        self.calls: list[dict] = []
        self._clock = clock
        self._addresses: dict[str, GeocodeResult] = {}
        self._points: dict[tuple[float, float], GeocodeResult] = {}

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Geocoding service unavailable",
        delay: float = 0.0,
    ) -> None:
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.delay = delay

    def add_address(
        self,
        query: str,
        latitude: float,
        longitude: float,
        formatted_address: str | None = None,
        **components,
    ) -> GeocodeResult:
        """Register an address so ``search`` (and ``reverse`` at the same point) resolve it."""
        result = GeocodeResult(
            coordinates=Coordinates(latitude=latitude, longitude=longitude),
            formatted_address=formatted_address or query,
            components=AddressComponents(**components),
        )
        self._addresses[query.lower().strip()] = result
        self._points[(round(latitude, 6), round(longitude, 6))] = result
        return result

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append({"method": method, "dispatched_at": self._clock(), **kwargs})
        if self.delay:
            time.sleep(self.delay)
        if not self.should_succeed:
            raise GeocoderUpstreamError(self.failure_reason)

    def search(self, query: str) -> GeocodeResult:
        self._record("search", query=query)
        key = query.lower().strip()
        if key in self._addresses:
            return self._addresses[key]
        # Queries arrive with the country suffix appended
        for known, result in self._addresses.items():
            if key.startswith(known):
                return result
        raise AddressNotFound(f"No results for address: {query}")

    def reverse(self, latitude: float, longitude: float) -> GeocodeResult:
        self._record("reverse", latitude=latitude, longitude=longitude)
        result = self._points.get((round(latitude, 6), round(longitude, 6)))
        if result is None:
            raise AddressNotFound(f"No address found at {latitude},{longitude}")
        return result
