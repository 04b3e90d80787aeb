"""Outbound notifications — reacts to delivery events.

Each transition tells the buyer (or, for fare and cancellation problems,
the seller) what happened. Notifying is fire-and-forget: a failure is
logged and never undoes the transition.
"""

import structlog
from protean.utils.mixins import handle

from delivery.domain import delivery
from delivery.delivery.delivery import Delivery
from delivery.delivery.events import (
    CourierCancellationRejected,
    CourierDriverMatched,
    CourierFareChanged,
    CourierOrderEdited,
    CourierOrderPlaced,
    DeliveryCancelled,
    DeliveryCompleted,
    DeliveryInTransit,
    DeliveryPickedUp,
    DriverAssigned,
)
from delivery.notifier import get_notifier
from delivery.notifier.port import Notification, NotificationPriority

logger = structlog.get_logger(__name__)

NOTIFICATION_TYPE = "order_update"


def order_action_url(order_id) -> str:
    return f"/marketplace/orders/{order_id}"


def _send(user_id, order_id, title: str, message: str, priority: NotificationPriority) -> None:
    notification = Notification(
        user_id=str(user_id),
        type=NOTIFICATION_TYPE,
        title=title,
        message=message,
        priority=priority.value,
        action_url=order_action_url(order_id),
    )
    try:
        get_notifier().notify(notification)
    except Exception as exc:
        logger.warning(
            "Notification failed",
            user_id=str(user_id),
            order_id=str(order_id),
            title=title,
            error=str(exc),
        )


@delivery.event_handler(part_of=Delivery)
class DeliveryNotificationHandler:
    """Notifies buyers and sellers about delivery progress."""

    @handle(CourierOrderPlaced)
    def on_courier_order_placed(self, event: CourierOrderPlaced) -> None:
        if event.driver_matched:
            progress = "A driver has been matched to your delivery."
        else:
            progress = "Driver is being assigned to your delivery."
        _send(
            event.buyer_id,
            event.order_id,
            "Delivery Arranged",
            f"{progress} Track your order: {event.tracking_url or 'N/A'}",
            NotificationPriority.HIGH,
        )

    @handle(DriverAssigned)
    def on_driver_assigned(self, event: DriverAssigned) -> None:
        _send(
            event.buyer_id,
            event.order_id,
            "Driver Assigned",
            f"A driver has been assigned to your delivery. {event.driver_name} will deliver your order.",
            NotificationPriority.HIGH,
        )

    @handle(CourierDriverMatched)
    def on_courier_driver_matched(self, event: CourierDriverMatched) -> None:
        _send(
            event.buyer_id,
            event.order_id,
            "Driver Assigned",
            "A driver has been assigned to your delivery. Your order is on the way!",
            NotificationPriority.HIGH,
        )

    @handle(DeliveryPickedUp)
    def on_picked_up(self, event: DeliveryPickedUp) -> None:
        _send(
            event.buyer_id,
            event.order_id,
            "Order Picked Up",
            "Your order has been picked up",
            NotificationPriority.MEDIUM,
        )

    @handle(DeliveryInTransit)
    def on_in_transit(self, event: DeliveryInTransit) -> None:
        _send(
            event.buyer_id,
            event.order_id,
            "Order In Transit",
            "Your order is on the way",
            NotificationPriority.MEDIUM,
        )

    @handle(DeliveryCompleted)
    def on_completed(self, event: DeliveryCompleted) -> None:
        _send(
            event.buyer_id,
            event.order_id,
            "Order Delivered",
            "Your order has been delivered",
            NotificationPriority.HIGH,
        )

    @handle(DeliveryCancelled)
    def on_cancelled(self, event: DeliveryCancelled) -> None:
        message = "Your delivery has been cancelled"
        if event.reason:
            message = f"{message}: {event.reason}"
        _send(event.buyer_id, event.order_id, "Delivery Cancelled", message, NotificationPriority.HIGH)

    @handle(CourierOrderEdited)
    def on_courier_order_edited(self, event: CourierOrderEdited) -> None:
        _send(
            event.buyer_id,
            event.order_id,
            "Delivery Updated",
            "Your delivery information has been updated.",
            NotificationPriority.LOW,
        )

    @handle(CourierFareChanged)
    def on_fare_changed(self, event: CourierFareChanged) -> None:
        amount = f"{event.currency or ''} {event.amount}".strip() if event.amount is not None else "updated"
        _send(
            event.seller_id,
            event.order_id,
            "Delivery Amount Changed",
            f"The courier fare for delivery {event.tracking_number} changed to {amount}.",
            NotificationPriority.LOW,
        )

    @handle(CourierCancellationRejected)
    def on_cancellation_rejected(self, event: CourierCancellationRejected) -> None:
        _send(
            event.seller_id,
            event.order_id,
            "Cancellation Not Possible",
            f"The courier could not cancel delivery {event.tracking_number}: {event.reason}",
            NotificationPriority.MEDIUM,
        )
