"""Lalamove v3 courier adapter.

Every request is HMAC-signed with the API secret and routed to the
configured market. Reads, quotations and webhook registration are retried on
connection errors, 429 and 5xx with capped exponential backoff. Placing,
editing and cancelling orders are never re-sent once they reach the
courier, since the API has no idempotency keys.
"""

import json
import time
from collections.abc import Callable
from datetime import datetime
from urllib.parse import urlparse

import requests
import structlog
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

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
from delivery.courier.signing import sign_request, verify_webhook
from delivery.courier.status import LALAMOVE_STATUS_MAP, translate

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://rest.sandbox.lalamove.com/v3"
DEFAULT_MARKET = "PH_PH"

_QUOTATION_EXPIRED_IDS = {"ERR_QUOTATION_EXPIRED"}

# Writes that are safe to repeat: pricing a route creates nothing, and
# setting the webhook URL twice leaves the same URL.
RETRYABLE_WRITES = {
    "/quotations": frozenset({"GET", "POST"}),
    "/webhook": frozenset({"GET", "PATCH"}),
}


def _retry(max_retries: int, methods: frozenset) -> Retry:
    return Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        backoff_factor=0.5,
        backoff_max=8,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=methods,
        raise_on_status=False,
    )


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _float_or_none(value) -> float | None:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _stop_payload(stop: Stop) -> dict:
    return {
        "coordinates": {"lat": str(stop.latitude), "lng": str(stop.longitude)},
        "address": stop.address,
    }


def _contact_payload(contact: Contact) -> dict:
    payload = {"stopId": contact.stop_id, "name": contact.name, "phone": contact.phone}
    if contact.remarks:
        payload["remarks"] = contact.remarks
    return payload


def _parse_quotation(data: dict) -> Quotation:
    price = data.get("priceBreakdown") or {}
    distance = data.get("distance") or {}
    return Quotation(
        quotation_id=str(data.get("quotationId", "")),
        service_type=data.get("serviceType", ""),
        price_total=_float_or_none(price.get("total")) or 0.0,
        currency=price.get("currency", ""),
        stop_ids=[str(s.get("stopId")) for s in data.get("stops") or [] if s.get("stopId") is not None],
        price_breakdown=price,
        distance_m=_float_or_none(distance.get("value")),
        expires_at=_parse_datetime(data.get("expiresAt")),
    )


def _parse_order(data: dict) -> CourierOrder:
    price = data.get("priceBreakdown") or {}
    return CourierOrder(
        external_order_id=str(data.get("orderId", "")),
        status=data.get("status", ""),
        quotation_id=data.get("quotationId"),
        tracking_url=data.get("shareLink"),
        driver_id=str(data["driverId"]) if data.get("driverId") else None,
        price_total=_float_or_none(price.get("total")),
        currency=price.get("currency"),
    )


class LalamoveCourier(CourierPort):
    """Signed JSON client for the Lalamove REST API."""

    provider = "lalamove"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        market: str = DEFAULT_MARKET,
        timeout: float = 10.0,
        max_retries: int = 3,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.market = market
        self.timeout = timeout
        self._clock = clock
        # Signatures cover the full request path, including the version prefix
        self._path_prefix = urlparse(self.base_url).path.rstrip("/")

        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        reads = HTTPAdapter(max_retries=_retry(max_retries, frozenset({"GET"})))
        self.session.mount("https://", reads)
        self.session.mount("http://", reads)
        # requests picks the adapter with the longest matching prefix
        for path, methods in RETRYABLE_WRITES.items():
            self.session.mount(f"{self.base_url}{path}", HTTPAdapter(max_retries=_retry(max_retries, methods)))

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def _headers(self, method: str, path: str, body: str) -> dict:
        timestamp = int(self._clock() * 1000)
        signature = sign_request(self.api_secret, method, f"{self._path_prefix}{path}", body, timestamp)
        return {
            "Authorization": f"hmac {self.api_key}:{timestamp}:{signature}",
            "Market": self.market,
            "X-LLM-Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        if not self.api_key or not self.api_secret:
            raise CourierError("Lalamove API credentials are not configured")

        body = json.dumps(payload, separators=(",", ":")) if payload is not None else ""
        try:
            resp = self.session.request(
                method,
                f"{self.base_url}{path}",
                data=body.encode("utf-8") if body else None,
                headers=self._headers(method, path, body),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Lalamove request failed", method=method, path=path, error=str(exc))
            raise CourierTransportError(f"Courier request failed: {exc}") from exc

        try:
            data = resp.json() if resp.content else {}
        except ValueError:
            data = {}

        if resp.status_code >= 500 or resp.status_code == 429:
            logger.warning("Lalamove upstream unavailable", method=method, path=path, status=resp.status_code)
            raise CourierTransportError(self._error_message(resp.status_code, data), response=data)
        if not resp.ok:
            raise self._application_error(resp.status_code, data)
        return data if isinstance(data, dict) else {"data": data}

    @staticmethod
    def _first_error(data: dict) -> dict:
        errors = data.get("errors") if isinstance(data, dict) else None
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return errors[0]
        return {}

    def _error_message(self, status: int, data: dict) -> str:
        first = self._first_error(data)
        return first.get("message") or first.get("detail") or f"HTTP {status}"

    def _application_error(self, status: int, data: dict) -> CourierError:
        first = self._first_error(data)
        message = self._error_message(status, data)
        error_id = first.get("id")
        lowered = message.lower()
        if error_id in _QUOTATION_EXPIRED_IDS or ("quotation" in lowered and "expired" in lowered):
            return CourierQuotationExpired(message, error_id=error_id, response=data)
        return CourierError(message, error_id=error_id, response=data)

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def get_quotation(
        self,
        service_type: str,
        stops: list[Stop],
        item: dict | None = None,
        special_requests: list[str] | None = None,
        language: str = "en",
    ) -> Quotation:
        if len(stops) < 2:
            raise ValueError("A quotation needs at least a pickup and a drop-off stop")
        payload = {
            "data": {
                "market": self.market,
                "serviceType": service_type,
                "specialRequests": special_requests or [],
                "language": language,
                "stops": [_stop_payload(s) for s in stops],
                "item": item or {"quantity": "1", "weight": "1"},
            }
        }
        data = self._request("POST", "/quotations", payload)
        return _parse_quotation(data.get("data") or {})

    def get_quotation_details(self, quotation_id: str) -> Quotation:
        data = self._request("GET", f"/quotations/{quotation_id}")
        return _parse_quotation(data.get("data") or {})

    def place_order(
        self,
        quotation_id: str,
        sender: Contact,
        recipients: list[Contact],
        metadata: dict | None = None,
        is_pod_enabled: bool = False,
    ) -> CourierOrder:
        payload = {
            "data": {
                "quotationId": quotation_id,
                "sender": _contact_payload(sender),
                "recipients": [_contact_payload(r) for r in recipients],
                "isPODEnabled": is_pod_enabled,
                "metadata": metadata or {},
            }
        }
        data = self._request("POST", "/orders", payload)
        return _parse_order(data.get("data") or {})

    def edit_order(
        self,
        external_order_id: str,
        stops: list[Stop] | None = None,
        recipients: list[Contact] | None = None,
    ) -> CourierOrder:
        body: dict = {}
        if stops:
            body["stops"] = [_stop_payload(s) for s in stops]
        if recipients:
            body["recipients"] = [_contact_payload(r) for r in recipients]
        data = self._request("PATCH", f"/orders/{external_order_id}", {"data": body})
        return _parse_order(data.get("data") or {"orderId": external_order_id})

    def cancel_order(self, external_order_id: str) -> bool:
        self._request("PUT", f"/orders/{external_order_id}/cancel", {"data": {}})
        return True

    def get_order_details(self, external_order_id: str) -> CourierOrder:
        data = self._request("GET", f"/orders/{external_order_id}")
        return _parse_order(data.get("data") or {})

    def get_driver_details(self, external_order_id: str, driver_id: str | None = None) -> CourierDriver:
        path = f"/orders/{external_order_id}/drivers/{driver_id}" if driver_id else f"/orders/{external_order_id}/driver"
        data = (self._request("GET", path).get("data")) or {}
        return CourierDriver(
            driver_id=str(data.get("driverId", driver_id or "")),
            name=data.get("name", ""),
            phone=data.get("phone", ""),
            plate_number=data.get("plateNumber"),
            vehicle_type=data.get("vehicleType"),
            photo_url=data.get("photo"),
        )

    def get_city_info(self, city: str) -> CityInfo:
        data = self._request("GET", f"/cities/{city}").get("data") or {}
        if isinstance(data, list):
            data = next((c for c in data if str(c.get("locode", "")).upper() == city.upper()), data[0] if data else {})
        return CityInfo(
            locode=data.get("locode", city),
            name=data.get("name", city),
            services=data.get("services") or [],
        )

    def set_webhook_url(self, url: str) -> bool:
        self._request("PATCH", "/webhook", {"data": {"url": url}})
        return True

    def verify_webhook_signature(self, payload: str, timestamp: str, signature: str) -> bool:
        return verify_webhook(self.api_secret, timestamp, payload, signature)

    def translate_status(self, courier_status: str) -> str | None:
        return translate(LALAMOVE_STATUS_MAP, courier_status)
