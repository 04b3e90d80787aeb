"""Delivery cancellation — command and handler.

Manual deliveries are cancelled locally. Courier deliveries are cancelled
upstream first:

- before pickup the local cancellation proceeds whatever the courier
  answers, and a refusal is recorded on the delivery;
- after pickup the courier's answer decides: the delivery is cancelled only
  if the courier confirms, otherwise it keeps its status.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from delivery.courier import get_courier
from delivery.courier.port import CourierError
from delivery.domain import delivery
from delivery.delivery.delivery import Delivery, TransitionSource
from delivery.order.order import sync_order_status

logger = structlog.get_logger(__name__)

_NOT_CONFIRMED = "Courier did not confirm the cancellation"


@delivery.command(part_of="Delivery")
class CancelDelivery:
    """Cancel a delivery on behalf of its seller."""

    delivery_id = Identifier(required=True)
    requested_by = Identifier(required=True)
    reason = String(max_length=500)


@delivery.command_handler(part_of=Delivery)
class CancelDeliveryHandler:
    @handle(CancelDelivery)
    def cancel_delivery(self, command):
        repo = current_domain.repository_for(Delivery)
        dlv = repo.get(command.delivery_id)
        dlv.ensure_seller(command.requested_by)
        dlv.assert_can_cancel()

        reason = command.reason or "Cancelled by seller"
        upstream_cancelled = None
        upstream_error = None

        if dlv.has_courier_order:
            try:
                upstream_cancelled = bool(get_courier().cancel_order(dlv.courier_order_id))
                if not upstream_cancelled:
                    upstream_error = _NOT_CONFIRMED
            except CourierError as exc:
                upstream_cancelled = False
                upstream_error = exc.message
                logger.warning(
                    "Courier cancellation failed",
                    delivery_id=str(dlv.id),
                    courier_order_id=dlv.courier_order_id,
                    error=exc.message,
                )

        if dlv.cancellation_needs_courier_ack and not upstream_cancelled:
            dlv.record_cancellation_rejected(upstream_error or _NOT_CONFIRMED)
        else:
            dlv.cancel(reason, TransitionSource.MANUAL, upstream_error=upstream_error)

        repo.add(dlv)
        sync_order_status(dlv)

        logger.info(
            "Delivery cancellation processed",
            delivery_id=str(dlv.id),
            status=dlv.status,
            upstream_cancelled=upstream_cancelled,
        )
        return {
            "delivery_id": str(dlv.id),
            "cancelled": dlv.status == "cancelled",
            "status": dlv.status,
            "upstream_cancelled": upstream_cancelled,
            "upstream_error": upstream_error,
        }
