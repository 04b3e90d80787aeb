"""Manual progress — command and handler.

Deliveries without a courier order are moved along by the seller:
pickup confirmation, on the way, delivered.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.delivery.delivery import Delivery, DeliveryStatus
from delivery.order.order import sync_order_status


@delivery.command(part_of="Delivery")
class UpdateDeliveryProgress:
    """Seller-reported progress on a manually assigned delivery."""

    delivery_id = Identifier(required=True)
    requested_by = Identifier(required=True)
    status = String(required=True, max_length=20)
    notes = Text()


@delivery.command_handler(part_of=Delivery)
class UpdateDeliveryProgressHandler:
    @handle(UpdateDeliveryProgress)
    def update_progress(self, command):
        repo = current_domain.repository_for(Delivery)
        dlv = repo.get(command.delivery_id)
        dlv.ensure_seller(command.requested_by)

        try:
            target = DeliveryStatus(command.status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown delivery status {command.status}"]})

        dlv.advance_manually(target, command.notes)
        repo.add(dlv)
        sync_order_status(dlv)
        return dlv.status
