"""Courier order edits — command and handler.

Drop-off details can change until the parcel is picked up. The pickup
check runs locally first, so a late edit never reaches the courier.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from delivery.courier import get_courier
from delivery.courier.port import Contact, CourierError, Stop
from delivery.domain import delivery
from delivery.delivery.delivery import Address, Delivery
from delivery.delivery.quotation import resolve_coordinates
from delivery.errors import UpstreamError
from delivery.geocoding.port import Coordinates

logger = structlog.get_logger(__name__)


@delivery.command(part_of="Delivery")
class EditCourierOrder:
    """Change the drop-off address or recipient of a courier order."""

    delivery_id = Identifier(required=True)
    requested_by = Identifier(required=True)
    delivery_address = Text()  # JSON object
    recipient_name = String(max_length=150)
    recipient_phone = String(max_length=50)
    remarks = String(max_length=500)


def _stop_for(address: Address, label: str) -> Stop:
    text = address.location_text()
    known = Coordinates(address.latitude, address.longitude) if address.has_coordinates else None
    coords = resolve_coordinates(text, known, label)
    return Stop(address=text, latitude=coords.latitude, longitude=coords.longitude)


@delivery.command_handler(part_of=Delivery)
class EditCourierOrderHandler:
    @handle(EditCourierOrder)
    def edit_courier_order(self, command):
        repo = current_domain.repository_for(Delivery)
        dlv = repo.get(command.delivery_id)
        dlv.ensure_seller(command.requested_by)

        courier = get_courier()
        stage = courier.translate_status(dlv.courier_status)
        dlv.assert_can_edit_courier_order(stage)

        new_address = json.loads(command.delivery_address) if command.delivery_address else None
        stops = None
        if new_address:
            drop_off = _stop_for(Address(**new_address), "delivery")
            new_address = {**new_address, "latitude": drop_off.latitude, "longitude": drop_off.longitude}
            stops = [_stop_for(dlv.pickup_address, "pickup"), drop_off]

        recipients = None
        if command.recipient_name or command.recipient_phone:
            recipients = [
                Contact(
                    name=command.recipient_name or "Buyer",
                    phone=command.recipient_phone or "",
                    remarks=command.remarks,
                )
            ]

        try:
            updated = courier.edit_order(dlv.courier_order_id, stops=stops, recipients=recipients)
        except CourierError as exc:
            logger.warning(
                "Courier edit failed",
                delivery_id=str(dlv.id),
                courier_order_id=dlv.courier_order_id,
                error=exc.message,
            )
            raise UpstreamError(exc.message, retryable=exc.retryable, upstream=exc.error_id) from exc

        dlv.record_courier_edit(
            tracking_url=updated.tracking_url,
            delivery_address=new_address,
            courier_stage=stage,
        )
        repo.add(dlv)

        logger.info("Courier order edited", delivery_id=str(dlv.id), courier_order_id=dlv.courier_order_id)
        return {
            "delivery_id": str(dlv.id),
            "courier_order_id": dlv.courier_order_id,
            "tracking_url": dlv.courier_tracking_url,
            "status": dlv.status,
        }
