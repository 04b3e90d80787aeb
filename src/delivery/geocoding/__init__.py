"""Geocoder factory.

Provides get_geocoder() / set_geocoder() / reset_geocoder():
- FakeGeocodingProvider for development and testing (default)
- NominatimProvider when GEOCODER_ADAPTER=nominatim

The cache and rate limiter are built once per Geocoder instance and shared
by every caller of get_geocoder().
"""

from delivery.config import get_settings
from delivery.geocoding.cache import GeocodeCache
from delivery.geocoding.geocoder import Geocoder
from delivery.geocoding.rate_limiter import IntervalRateLimiter

_current_geocoder: Geocoder | None = None


def build_geocoder() -> Geocoder:
    """Build a Geocoder from environment settings."""
    settings = get_settings()
    if settings.geocoder_adapter == "fake":
        from delivery.geocoding.fake_adapter import FakeGeocodingProvider

        provider = FakeGeocodingProvider()
    elif settings.geocoder_adapter == "nominatim":
        from delivery.geocoding.nominatim import NominatimProvider

        provider = NominatimProvider(
            base_url=settings.nominatim_base_url,
            user_agent=settings.nominatim_user_agent,
            timeout=settings.geocoder_timeout_seconds,
        )
    else:
        raise ValueError(f"Unknown geocoder adapter: {settings.geocoder_adapter}")

    return Geocoder(
        provider=provider,
        cache=GeocodeCache(ttl_seconds=settings.geocode_cache_ttl_seconds),
        rate_limiter=IntervalRateLimiter(min_interval=settings.geocoder_min_interval_seconds),
    )


def get_geocoder() -> Geocoder:
    """Return the current geocoder, building it on first use."""
    global _current_geocoder
    if _current_geocoder is None:
        _current_geocoder = build_geocoder()
    return _current_geocoder


def set_geocoder(geocoder: Geocoder) -> None:
    """Override the active geocoder (useful for tests)."""
    global _current_geocoder
    _current_geocoder = geocoder


def reset_geocoder() -> None:
    """Reset to default geocoder."""
    global _current_geocoder
    _current_geocoder = None
