"""Service settings read from the environment.

Domain infrastructure (database, broker, event store, processing mode) lives
in ``domain.toml``; this module covers the outbound integrations and the
knobs of the delivery workflow.
"""

import os
from dataclasses import dataclass

_THIRTY_DAYS = 30 * 24 * 60 * 60


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class DeliverySettings:
    courier_adapter: str = "fake"
    lalamove_api_key: str = ""
    lalamove_api_secret: str = ""
    lalamove_base_url: str = "https://rest.sandbox.lalamove.com/v3"
    lalamove_market: str = "PH_PH"
    courier_timeout_seconds: float = 10.0
    courier_max_retries: int = 3

    geocoder_adapter: str = "fake"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "deliverystream/0.1"
    geocoder_timeout_seconds: float = 10.0
    geocoder_min_interval_seconds: float = 1.0
    geocode_cache_ttl_seconds: float = _THIRTY_DAYS

    notifier_adapter: str = "fake"

    free_shipping_threshold: float = 1500.0
    reconciliation_max_attempts: int = 5
    worker_poll_interval_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "DeliverySettings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            courier_adapter=os.environ.get("COURIER_ADAPTER", defaults.courier_adapter),
            lalamove_api_key=os.environ.get("LALAMOVE_API_KEY", defaults.lalamove_api_key),
            lalamove_api_secret=os.environ.get("LALAMOVE_API_SECRET", defaults.lalamove_api_secret),
            lalamove_base_url=os.environ.get("LALAMOVE_BASE_URL", defaults.lalamove_base_url),
            lalamove_market=os.environ.get("LALAMOVE_MARKET", defaults.lalamove_market),
            courier_timeout_seconds=_float("COURIER_TIMEOUT_SECONDS", defaults.courier_timeout_seconds),
            courier_max_retries=_int("COURIER_MAX_RETRIES", defaults.courier_max_retries),
            geocoder_adapter=os.environ.get("GEOCODER_ADAPTER", defaults.geocoder_adapter),
            nominatim_base_url=os.environ.get("NOMINATIM_BASE_URL", defaults.nominatim_base_url),
            nominatim_user_agent=os.environ.get("NOMINATIM_USER_AGENT", defaults.nominatim_user_agent),
            geocoder_timeout_seconds=_float("GEOCODER_TIMEOUT_SECONDS", defaults.geocoder_timeout_seconds),
            geocoder_min_interval_seconds=_float(
                "GEOCODER_MIN_INTERVAL_SECONDS", defaults.geocoder_min_interval_seconds
            ),
            geocode_cache_ttl_seconds=_float("GEOCODE_CACHE_TTL_SECONDS", defaults.geocode_cache_ttl_seconds),
            notifier_adapter=os.environ.get("NOTIFIER_ADAPTER", defaults.notifier_adapter),
            free_shipping_threshold=_float("FREE_SHIPPING_THRESHOLD", defaults.free_shipping_threshold),
            reconciliation_max_attempts=_int("RECONCILIATION_MAX_ATTEMPTS", defaults.reconciliation_max_attempts),
            worker_poll_interval_seconds=_float(
                "WORKER_POLL_INTERVAL_SECONDS", defaults.worker_poll_interval_seconds
            ),
        )


def get_settings() -> DeliverySettings:
    """Return settings for the current process environment."""
    return DeliverySettings.from_env()
