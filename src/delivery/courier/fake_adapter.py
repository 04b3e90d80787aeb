"""Fake courier adapter — deterministic courier for testing and development.

Issues quotations and orders in memory, records every call, and can be
configured to fail in the ways the real courier does: transport errors,
application rejections, expired quotations and refused cancellations.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from delivery.courier.port import (
    CityInfo,
    Contact,
    CourierDriver,
    CourierError,
    CourierOrder,
    CourierPort,
    CourierQuotationExpired,
    CourierTransportError,
    Quotation,
    Stop,
)
from delivery.courier.signing import verify_webhook
from delivery.courier.status import LALAMOVE_STATUS_MAP, translate

DEFAULT_DRIVER = CourierDriver(
    driver_id="drv-fake-001",
    name="Carlo Reyes",
    phone="+63 917 000 0001",
    plate_number="FAK-0001",
    vehicle_type="MOTORCYCLE",
)


class FakeCourier(CourierPort):
    """Fake courier that speaks the Lalamove status vocabulary and always succeeds by default."""

    provider = "lalamove"

    def __init__(self) -> None:
        self.should_succeed = True
        self.transport_failure = False
        self.failure_reason = "Courier unavailable"
        self.quotation_expired = False
        self.cancel_succeeds = True
        self.cancel_failure_reason = "Order is already en route and cannot be cancelled"
        self.assign_driver_on_placement = False
        self.webhook_secret = "fake-webhook-secret"
        self.require_signature = False
        self.base_fare = 120.0
        self.calls: list[dict] = []
        self.quotations: dict[str, Quotation] = {}
        self.orders: dict[str, CourierOrder] = {}
        self.drivers: dict[str, CourierDriver] = {DEFAULT_DRIVER.driver_id: DEFAULT_DRIVER}
        self.webhook_url: str | None = None

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Courier unavailable",
        transport_failure: bool = False,
        quotation_expired: bool = False,
        cancel_succeeds: bool = True,
        assign_driver_on_placement: bool = False,
        require_signature: bool = False,
    ) -> None:
        """Configure the fake courier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.transport_failure = transport_failure
        self.quotation_expired = quotation_expired
        self.cancel_succeeds = cancel_succeeds
        self.assign_driver_on_placement = assign_driver_on_placement
        self.require_signature = require_signature

    def calls_to(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    def set_order_status(self, external_order_id: str, status: str, driver_id: str | None = None) -> None:
        """Simulate the courier moving an order along (for polling tests)."""
        order = self.orders[external_order_id]
        self.orders[external_order_id] = CourierOrder(
            external_order_id=order.external_order_id,
            status=status,
            quotation_id=order.quotation_id,
            tracking_url=order.tracking_url,
            driver_id=driver_id or order.driver_id,
            price_total=order.price_total,
            currency=order.currency,
        )

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append({"method": method, **kwargs})
        if self.transport_failure:
            raise CourierTransportError(self.failure_reason)
        if not self.should_succeed:
            raise CourierError(self.failure_reason, error_id="ERR_FAKE")

    def _order(self, external_order_id: str) -> CourierOrder:
        if external_order_id not in self.orders:
            raise CourierError(f"Order {external_order_id} not found", error_id="ERR_ORDER_NOT_FOUND")
        return self.orders[external_order_id]

    # -------------------------------------------------------------------
    # Port
    # -------------------------------------------------------------------
    def get_quotation(
        self,
        service_type: str,
        stops: list[Stop],
        item: dict | None = None,
        special_requests: list[str] | None = None,
        language: str = "en",
    ) -> Quotation:
        self._record("get_quotation", service_type=service_type, stops=stops, item=item)
        if len(stops) < 2:
            raise ValueError("A quotation needs at least a pickup and a drop-off stop")

        quotation_id = f"qtn-{uuid4().hex[:10]}"
        quotation = Quotation(
            quotation_id=quotation_id,
            service_type=service_type,
            price_total=self.base_fare,
            currency="PHP",
            stop_ids=[f"{quotation_id}-stop-{i + 1}" for i in range(len(stops))],
            price_breakdown={"base": str(self.base_fare), "total": str(self.base_fare), "currency": "PHP"},
            expires_at=datetime.now(UTC) + timedelta(minutes=5),
        )
        self.quotations[quotation_id] = quotation
        return quotation

    def get_quotation_details(self, quotation_id: str) -> Quotation:
        self._record("get_quotation_details", quotation_id=quotation_id)
        if quotation_id not in self.quotations:
            raise CourierError(f"Quotation {quotation_id} not found", error_id="ERR_INVALID_QUOTATION_ID")
        return self.quotations[quotation_id]

    def place_order(
        self,
        quotation_id: str,
        sender: Contact,
        recipients: list[Contact],
        metadata: dict | None = None,
        is_pod_enabled: bool = False,
    ) -> CourierOrder:
        self._record(
            "place_order",
            quotation_id=quotation_id,
            sender=sender,
            recipients=recipients,
            metadata=metadata,
        )
        if self.quotation_expired:
            raise CourierQuotationExpired("Quotation has expired", error_id="ERR_QUOTATION_EXPIRED")

        external_order_id = f"llm-{uuid4().hex[:12]}"
        quotation = self.quotations.get(quotation_id)
        driver_id = DEFAULT_DRIVER.driver_id if self.assign_driver_on_placement else None
        order = CourierOrder(
            external_order_id=external_order_id,
            status="ASSIGNING_DRIVER",
            quotation_id=quotation_id,
            tracking_url=f"https://share.fake-courier.example.com/{external_order_id}",
            driver_id=driver_id,
            price_total=quotation.price_total if quotation else self.base_fare,
            currency="PHP",
        )
        self.orders[external_order_id] = order
        return order

    def edit_order(
        self,
        external_order_id: str,
        stops: list[Stop] | None = None,
        recipients: list[Contact] | None = None,
    ) -> CourierOrder:
        self._record("edit_order", external_order_id=external_order_id, stops=stops, recipients=recipients)
        order = self._order(external_order_id)
        if order.status in ("PICKED_UP", "COMPLETED"):
            raise CourierError("Order can no longer be edited", error_id="ERR_ORDER_NOT_EDITABLE")
        return order

    def cancel_order(self, external_order_id: str) -> bool:
        self._record("cancel_order", external_order_id=external_order_id)
        order = self._order(external_order_id)
        if not self.cancel_succeeds:
            raise CourierError(self.cancel_failure_reason, error_id="ERR_CANCELLATION_FORBIDDEN")
        self.set_order_status(order.external_order_id, "CANCELLED")
        return True

    def get_order_details(self, external_order_id: str) -> CourierOrder:
        self._record("get_order_details", external_order_id=external_order_id)
        return self._order(external_order_id)

    def get_driver_details(self, external_order_id: str, driver_id: str | None = None) -> CourierDriver:
        self._record("get_driver_details", external_order_id=external_order_id, driver_id=driver_id)
        order = self._order(external_order_id)
        key = driver_id or order.driver_id
        if key not in self.drivers:
            raise CourierError(f"Driver {key} not found", error_id="ERR_DRIVER_NOT_FOUND")
        return self.drivers[key]

    def get_city_info(self, city: str) -> CityInfo:
        self._record("get_city_info", city=city)
        return CityInfo(
            locode=city.upper(),
            name=city,
            services=[
                {"key": "MOTORCYCLE", "specialRequests": ["LALABAG"]},
                {"key": "MPV", "specialRequests": []},
                {"key": "VAN", "specialRequests": ["HELP"]},
            ],
        )

    def set_webhook_url(self, url: str) -> bool:
        self._record("set_webhook_url", url=url)
        self.webhook_url = url
        return True

    def verify_webhook_signature(self, payload: str, timestamp: str, signature: str) -> bool:
        if not self.require_signature:
            return True
        return verify_webhook(self.webhook_secret, timestamp, payload, signature)

    def translate_status(self, courier_status: str) -> str | None:
        return translate(LALAMOVE_STATUS_MAP, courier_status)
