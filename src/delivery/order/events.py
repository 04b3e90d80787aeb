"""Order domain events."""

from protean.fields import DateTime, Identifier, String

from delivery.domain import delivery


@delivery.event(part_of="Order")
class OrderStatusSynced:
    """Order status was moved to match its delivery."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    previous_status = String()
    status = String(required=True)
    delivery_status = String(required=True)
    synced_at = DateTime(required=True)
