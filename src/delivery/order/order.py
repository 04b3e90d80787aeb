"""Order aggregate — the delivery-side view of a marketplace order.

The order record is keyed by the marketplace order id. Its status is never
set directly by callers: every delivery transition updates it in the same
unit of work through ``sync_order_status``.
"""

from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.order.events import OrderStatusSynced

logger = structlog.get_logger(__name__)


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


@delivery.aggregate
class Order:
    order_id = Identifier(identifier=True, required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    subtotal = Float(min_value=0.0, default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.CONFIRMED.value)
    delivery_id = Identifier()
    updated_at = DateTime()

    def sync_with_delivery(self, status: str, delivery_id: str, delivery_status: str) -> bool:
        """Move to ``status``. Returns False when already there."""
        if self.status == status and str(self.delivery_id or "") == str(delivery_id):
            return False

        previous = self.status
        now = datetime.now(UTC)
        self.status = OrderStatus(status).value
        self.delivery_id = delivery_id
        self.updated_at = now
        self.raise_(
            OrderStatusSynced(
                order_id=str(self.order_id),
                delivery_id=str(delivery_id),
                previous_status=previous,
                status=self.status,
                delivery_status=delivery_status,
                synced_at=now,
            )
        )
        return True


def sync_order_status(dlv, order: Order | None = None) -> None:
    """Bring the delivery's Order in line with its current status."""
    repo = current_domain.repository_for(Order)
    if order is None:
        order = repo._dao.query.filter(order_id=str(dlv.order_id)).all().first
    if order is None:
        order = Order(
            order_id=str(dlv.order_id),
            buyer_id=str(dlv.buyer_id),
            seller_id=str(dlv.seller_id),
        )

    if order.sync_with_delivery(dlv.order_status, str(dlv.id), dlv.status):
        logger.info(
            "Order status synced",
            order_id=str(order.order_id),
            delivery_id=str(dlv.id),
            order_status=order.status,
            delivery_status=dlv.status,
        )
    repo.add(order)
