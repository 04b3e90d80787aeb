"""Courier updates — reconciliation of webhook and poll signals.

Webhook deliveries, status polls and deferred retries all funnel into one
command, ReconcileCourierUpdate, so every path applies the same
forward-only rules to the delivery and keeps its Order in step.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from delivery.courier import get_courier
from delivery.courier.port import CourierError
from delivery.courier.status import CourierMessageType
from delivery.domain import delivery
from delivery.delivery.delivery import Delivery, ReconcileOutcome
from delivery.errors import DeliveryNotFound, UpstreamError
from delivery.order.order import sync_order_status

logger = structlog.get_logger(__name__)


@delivery.command(part_of="Delivery")
class ReconcileCourierUpdate:
    """Apply one courier update to the delivery it refers to."""

    courier_order_id = String(required=True, max_length=100)
    message_type = String(required=True, max_length=50)
    courier_status = String(max_length=50)
    driver_id = String(max_length=100)
    share_link = String(max_length=500)
    amount = Float()
    currency = String(max_length=10)
    source = String(max_length=20, default="webhook")


@delivery.command(part_of="Delivery")
class RefreshCourierStatus:
    """Pull the courier's view of a delivery and reconcile it."""

    delivery_id = Identifier(required=True)


def _apply_status(dlv, courier, command) -> str:
    target = courier.translate_status(command.courier_status)
    if target is None:
        logger.warning(
            "Unknown courier status ignored",
            delivery_id=str(dlv.id),
            courier_status=command.courier_status,
            source=command.source,
        )
        return ReconcileOutcome.IGNORED.value

    previous = dlv.status
    outcome = dlv.reconcile(target, command.courier_status)
    if outcome == ReconcileOutcome.IGNORED:
        logger.info(
            "Courier status ignored",
            delivery_id=str(dlv.id),
            status=dlv.status,
            courier_status=command.courier_status,
            source=command.source,
        )
    elif outcome == ReconcileOutcome.APPLIED:
        logger.info(
            "Courier status applied",
            delivery_id=str(dlv.id),
            from_status=previous,
            to_status=dlv.status,
            courier_status=command.courier_status,
            source=command.source,
        )

    if command.driver_id and outcome != ReconcileOutcome.IGNORED:
        _apply_driver(dlv, courier, command)
    return outcome.value


def _apply_driver(dlv, courier, command) -> str:
    if dlv.driver and dlv.driver.courier_driver_id == command.driver_id:
        return ReconcileOutcome.UNCHANGED.value
    # Lookup failures propagate so the update is retried
    driver = courier.get_driver_details(dlv.courier_order_id, command.driver_id)
    matched = dlv.match_courier_driver(
        courier_driver_id=driver.driver_id,
        name=driver.name,
        phone=driver.phone,
        vehicle_type=driver.vehicle_type,
        plate_number=driver.plate_number,
    )
    if matched:
        logger.info("Courier driver matched", delivery_id=str(dlv.id), courier_driver_id=driver.driver_id)
    return ReconcileOutcome.APPLIED.value if matched else ReconcileOutcome.UNCHANGED.value


def _apply_update(dlv, courier, command) -> str:
    try:
        message_type = CourierMessageType(command.message_type)
    except ValueError:
        logger.warning(
            "Unknown courier message type ignored",
            delivery_id=str(dlv.id),
            message_type=command.message_type,
        )
        return ReconcileOutcome.IGNORED.value

    if message_type == CourierMessageType.ORDER_STATUS_CHANGED:
        return _apply_status(dlv, courier, command)

    if message_type == CourierMessageType.DRIVER_ASSIGNED:
        if not command.driver_id:
            return ReconcileOutcome.IGNORED.value
        return _apply_driver(dlv, courier, command)

    if message_type == CourierMessageType.ORDER_EDITED:
        changed = dlv.record_share_link(command.share_link)
        return ReconcileOutcome.APPLIED.value if changed else ReconcileOutcome.UNCHANGED.value

    if message_type == CourierMessageType.ORDER_AMOUNT_CHANGED:
        changed = dlv.record_fare_change(command.amount, command.currency)
        logger.info(
            "Courier fare changed",
            delivery_id=str(dlv.id),
            amount=command.amount,
            currency=command.currency,
        )
        return ReconcileOutcome.APPLIED.value if changed else ReconcileOutcome.IGNORED.value

    # Linkage is set once; a replacement order is not followed
    logger.warning(
        "Courier order replacement ignored",
        delivery_id=str(dlv.id),
        courier_order_id=command.courier_order_id,
    )
    return ReconcileOutcome.IGNORED.value


@delivery.command_handler(part_of=Delivery)
class CourierUpdateHandler:
    @handle(ReconcileCourierUpdate)
    def reconcile_courier_update(self, command):
        repo = current_domain.repository_for(Delivery)
        dlv = repo.find_by_courier_order_id(command.courier_order_id)
        if dlv is None:
            raise DeliveryNotFound(
                f"No delivery linked to courier order {command.courier_order_id}",
                courier_order_id=command.courier_order_id,
            )

        try:
            outcome = _apply_update(dlv, get_courier(), command)
        except CourierError as exc:
            raise UpstreamError(exc.message, retryable=exc.retryable, upstream=exc.error_id) from exc

        repo.add(dlv)
        sync_order_status(dlv)
        return outcome

    @handle(RefreshCourierStatus)
    def refresh_courier_status(self, command):
        repo = current_domain.repository_for(Delivery)
        dlv = repo.get(command.delivery_id)
        if not dlv.has_courier_order:
            return None

        courier = get_courier()
        try:
            details = courier.get_order_details(dlv.courier_order_id)
            outcome = _apply_update(
                dlv,
                courier,
                ReconcileCourierUpdate(
                    courier_order_id=dlv.courier_order_id,
                    message_type=CourierMessageType.ORDER_STATUS_CHANGED.value,
                    courier_status=details.status,
                    driver_id=details.driver_id,
                    source="poll",
                ),
            )
        except CourierError as exc:
            logger.warning(
                "Courier status poll failed",
                delivery_id=str(dlv.id),
                courier_order_id=dlv.courier_order_id,
                error=exc.message,
            )
            raise UpstreamError(exc.message, retryable=exc.retryable, upstream=exc.error_id) from exc

        if details.tracking_url:
            dlv.record_share_link(details.tracking_url)

        repo.add(dlv)
        sync_order_status(dlv)
        return {"outcome": outcome, "courier": details.as_dict()}
