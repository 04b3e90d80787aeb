"""Courier adapter abstraction — pluggable on-demand courier integration."""

from delivery.config import get_settings
from delivery.courier.port import CourierPort

_courier_instance: CourierPort | None = None


def get_courier() -> CourierPort:
    """Return the configured courier adapter (singleton).

    Uses FakeCourier by default. In production, configure via the
    COURIER_ADAPTER environment variable.
    """
    global _courier_instance
    if _courier_instance is None:
        settings = get_settings()
        if settings.courier_adapter == "fake":
            from delivery.courier.fake_adapter import FakeCourier

            _courier_instance = FakeCourier()
        elif settings.courier_adapter == "lalamove":
            from delivery.courier.lalamove import LalamoveCourier

            _courier_instance = LalamoveCourier(
                api_key=settings.lalamove_api_key,
                api_secret=settings.lalamove_api_secret,
                base_url=settings.lalamove_base_url,
                market=settings.lalamove_market,
                timeout=settings.courier_timeout_seconds,
                max_retries=settings.courier_max_retries,
            )
        else:
            raise ValueError(f"Unknown courier adapter: {settings.courier_adapter}")
    return _courier_instance


def set_courier(courier: CourierPort) -> None:
    """Override the active courier adapter (useful for tests)."""
    global _courier_instance
    _courier_instance = courier


def reset_courier() -> None:
    """Reset the courier singleton (useful for testing)."""
    global _courier_instance
    _courier_instance = None
