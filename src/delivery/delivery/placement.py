"""Courier placement — command and handler.

Places a courier order from a quotation and links it to the delivery. All
local checks run before the courier is called, so a conflicting request
never dispatches a second driver. If placement fails, the delivery is left
untouched.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from delivery.courier import get_courier
from delivery.courier.port import Contact, CourierError, CourierQuotationExpired
from delivery.domain import delivery
from delivery.delivery.delivery import Delivery
from delivery.errors import QuotationExpired, UpstreamError
from delivery.order.order import sync_order_status

logger = structlog.get_logger(__name__)

# Stop ids used when the courier does not report its own
_FALLBACK_STOP_IDS = ("1", "2")


@delivery.command(part_of="Delivery")
class PlaceCourierOrder:
    """Place a courier order for a pending delivery."""

    delivery_id = Identifier(required=True)
    requested_by = Identifier(required=True)
    quotation_id = String(required=True, max_length=100)
    sender_name = String(max_length=150)
    sender_phone = String(max_length=50)
    recipient_name = String(max_length=150)
    recipient_phone = String(max_length=50)
    is_pod_enabled = Boolean(default=False)


def _upstream(exc: CourierError, action: str) -> UpstreamError:
    logger.warning(
        f"Courier {action} failed",
        error=exc.message,
        error_id=exc.error_id,
        retryable=exc.retryable,
    )
    return UpstreamError(exc.message, retryable=exc.retryable, upstream=exc.error_id)


@delivery.command_handler(part_of=Delivery)
class PlaceCourierOrderHandler:
    @handle(PlaceCourierOrder)
    def place_courier_order(self, command):
        repo = current_domain.repository_for(Delivery)
        dlv = repo.get(command.delivery_id)
        dlv.ensure_seller(command.requested_by)
        dlv.assert_can_place_courier_order()

        courier = get_courier()
        try:
            quotation = courier.get_quotation_details(command.quotation_id)
        except CourierQuotationExpired as exc:
            raise QuotationExpired(quotation_id=command.quotation_id) from exc
        except CourierError as exc:
            raise _upstream(exc, "quotation lookup") from exc

        if quotation.expires_at is not None and quotation.expires_at <= datetime.now(UTC):
            raise QuotationExpired(quotation_id=command.quotation_id)

        stop_ids = list(quotation.stop_ids) or list(_FALLBACK_STOP_IDS)
        sender = Contact(
            name=command.sender_name or "Seller",
            phone=command.sender_phone or "",
            stop_id=stop_ids[0],
        )
        recipient = Contact(
            name=command.recipient_name or "Buyer",
            phone=command.recipient_phone or "",
            stop_id=stop_ids[-1],
        )

        try:
            placed = courier.place_order(
                quotation_id=command.quotation_id,
                sender=sender,
                recipients=[recipient],
                metadata={
                    "order_id": str(dlv.order_id),
                    "buyer_id": str(dlv.buyer_id),
                    "seller_id": str(dlv.seller_id),
                },
                is_pod_enabled=command.is_pod_enabled,
            )
        except CourierQuotationExpired as exc:
            raise QuotationExpired(quotation_id=command.quotation_id) from exc
        except CourierError as exc:
            raise _upstream(exc, "placement") from exc

        dlv.record_courier_placement(
            provider=courier.provider,
            courier_order_id=placed.external_order_id,
            quotation_id=command.quotation_id,
            courier_status=placed.status,
            tracking_url=placed.tracking_url,
            fare=placed.price_total if placed.price_total is not None else quotation.price_total,
            currency=placed.currency or quotation.currency,
            driver_matched=bool(placed.driver_id),
        )

        if placed.driver_id:
            # The order is placed; missing driver details are filled in later
            try:
                driver = courier.get_driver_details(placed.external_order_id, placed.driver_id)
                dlv.match_courier_driver(
                    courier_driver_id=driver.driver_id,
                    name=driver.name,
                    phone=driver.phone,
                    vehicle_type=driver.vehicle_type,
                    plate_number=driver.plate_number,
                )
            except CourierError as exc:
                logger.warning(
                    "Driver lookup after placement failed",
                    delivery_id=str(dlv.id),
                    courier_order_id=placed.external_order_id,
                    error=exc.message,
                )

        repo.add(dlv)
        sync_order_status(dlv)

        logger.info(
            "Courier order placed",
            delivery_id=str(dlv.id),
            order_id=str(dlv.order_id),
            courier_order_id=placed.external_order_id,
            courier_status=placed.status,
        )
        return {
            "delivery_id": str(dlv.id),
            "order_id": str(dlv.order_id),
            "status": dlv.status,
            "courier_order_id": placed.external_order_id,
            "courier_status": placed.status,
            "quotation_id": command.quotation_id,
            "tracking_url": placed.tracking_url,
            "driver_id": placed.driver_id,
        }
