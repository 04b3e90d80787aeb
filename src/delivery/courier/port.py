"""Courier port — abstract interface for on-demand courier integrations.

The orchestrator programs against this port; adapters are swapped via
configuration. Adapters are pure I/O boundaries: they hold no delivery
state and translate their vendor's status vocabulary into internal
delivery statuses through ``translate_status``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class CourierError(Exception):
    """The courier rejected a request (non-2xx application error)."""

    retryable = False

    def __init__(self, message: str, error_id: str | None = None, response: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_id = error_id
        self.response = response or {}


class CourierTransportError(CourierError):
    """Timeout, connection failure or 5xx after retries were exhausted."""

    retryable = True


class CourierQuotationExpired(CourierError):
    """The quotation used for placement is no longer valid."""


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Stop:
    address: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Contact:
    name: str
    phone: str
    stop_id: str | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class Quotation:
    quotation_id: str
    service_type: str
    price_total: float
    currency: str
    stop_ids: list[str] = field(default_factory=list)
    price_breakdown: dict = field(default_factory=dict)
    distance_m: float | None = None
    expires_at: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "quotation_id": self.quotation_id,
            "service_type": self.service_type,
            "price_total": self.price_total,
            "currency": self.currency,
            "stop_ids": list(self.stop_ids),
            "price_breakdown": dict(self.price_breakdown),
            "distance_m": self.distance_m,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class CourierOrder:
    """Placement result and order details share this shape."""

    external_order_id: str
    status: str
    quotation_id: str | None = None
    tracking_url: str | None = None
    driver_id: str | None = None
    price_total: float | None = None
    currency: str | None = None

    def as_dict(self) -> dict:
        return {
            "external_order_id": self.external_order_id,
            "status": self.status,
            "quotation_id": self.quotation_id,
            "tracking_url": self.tracking_url,
            "driver_id": self.driver_id,
            "price_total": self.price_total,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class CourierDriver:
    driver_id: str
    name: str
    phone: str
    plate_number: str | None = None
    vehicle_type: str | None = None
    photo_url: str | None = None


@dataclass(frozen=True)
class CityInfo:
    locode: str
    name: str
    services: list[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------
class CourierPort(ABC):
    """Abstract interface for courier adapters."""

    provider: str = "courier"

    @abstractmethod
    def get_quotation(
        self,
        service_type: str,
        stops: list[Stop],
        item: dict | None = None,
        special_requests: list[str] | None = None,
        language: str = "en",
    ) -> Quotation:
        """Price a route. ``stops[0]`` is the pickup, ``stops[-1]`` the drop-off."""
        ...

    @abstractmethod
    def get_quotation_details(self, quotation_id: str) -> Quotation:
        """Fetch a previously issued quotation (stop ids, expiry)."""
        ...

    @abstractmethod
    def place_order(
        self,
        quotation_id: str,
        sender: Contact,
        recipients: list[Contact],
        metadata: dict | None = None,
        is_pod_enabled: bool = False,
    ) -> CourierOrder:
        """Consume a quotation and dispatch an order.

        Raises ``CourierQuotationExpired`` when the quotation is no longer valid.
        """
        ...

    @abstractmethod
    def edit_order(
        self,
        external_order_id: str,
        stops: list[Stop] | None = None,
        recipients: list[Contact] | None = None,
    ) -> CourierOrder:
        """Edit stops or recipients of an order that has not been picked up."""
        ...

    @abstractmethod
    def cancel_order(self, external_order_id: str) -> bool:
        """Cancel an order. Raises ``CourierError`` when the courier refuses."""
        ...

    @abstractmethod
    def get_order_details(self, external_order_id: str) -> CourierOrder:
        """Polling fallback for order status."""
        ...

    @abstractmethod
    def get_driver_details(self, external_order_id: str, driver_id: str | None = None) -> CourierDriver:
        """Fetch the driver assigned to an order."""
        ...

    @abstractmethod
    def get_city_info(self, city: str) -> CityInfo:
        """Service types and special requests available in a city."""
        ...

    @abstractmethod
    def set_webhook_url(self, url: str) -> bool:
        """Register the endpoint that receives status pushes."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, timestamp: str, signature: str) -> bool:
        """Verify that a webhook callback is authentic."""
        ...

    @abstractmethod
    def translate_status(self, courier_status: str) -> str | None:
        """Map a vendor status onto an internal delivery status value, or None if unknown."""
        ...
