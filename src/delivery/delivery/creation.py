"""Delivery creation — command and handler.

A paid order gets exactly one delivery. Creating it again for the same
order returns the existing delivery instead of a second one.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Text
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.delivery.delivery import Delivery
from delivery.order.order import Order, sync_order_status

logger = structlog.get_logger(__name__)

MAX_TRACKING_NUMBER_ATTEMPTS = 5


@delivery.command(part_of="Delivery")
class CreateDelivery:
    """Create the delivery for a paid order."""

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    pickup_address = Text(required=True)  # JSON object
    delivery_address = Text(required=True)  # JSON object
    subtotal = Float(min_value=0.0, default=0.0)


def _unused_tracking_number(repo) -> str:
    for _ in range(MAX_TRACKING_NUMBER_ATTEMPTS):
        candidate = Delivery.generate_tracking_number()
        if repo.find_by_tracking_number(candidate) is None:
            return candidate
        logger.warning("Tracking number collision", tracking_number=candidate)
    raise ValidationError({"tracking_number": ["Could not allocate a unique tracking number"]})


@delivery.command_handler(part_of=Delivery)
class CreateDeliveryHandler:
    @handle(CreateDelivery)
    def create_delivery(self, command):
        repo = current_domain.repository_for(Delivery)

        existing = repo.find_by_order_id(command.order_id)
        if existing is not None:
            logger.info(
                "Delivery already exists for order",
                order_id=str(command.order_id),
                delivery_id=str(existing.id),
            )
            return str(existing.id)

        dlv = Delivery.create(
            tracking_number=_unused_tracking_number(repo),
            order_id=str(command.order_id),
            buyer_id=str(command.buyer_id),
            seller_id=str(command.seller_id),
            pickup_address=json.loads(command.pickup_address),
            delivery_address=json.loads(command.delivery_address),
        )
        repo.add(dlv)

        order = Order(
            order_id=str(command.order_id),
            buyer_id=str(command.buyer_id),
            seller_id=str(command.seller_id),
            subtotal=command.subtotal or 0.0,
        )
        sync_order_status(dlv, order)

        logger.info(
            "Delivery created",
            delivery_id=str(dlv.id),
            order_id=str(dlv.order_id),
            tracking_number=dlv.tracking_number,
        )
        return str(dlv.id)
