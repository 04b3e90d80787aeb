"""Repository for the Delivery aggregate."""

from delivery.domain import delivery
from delivery.delivery.delivery import Delivery, DeliveryStatus


@delivery.repository(part_of=Delivery)
class DeliveryRepository:
    """Lookups by the external references a delivery is known by."""

    def find_by_order_id(self, order_id: str) -> Delivery | None:
        return self._dao.query.filter(order_id=str(order_id)).all().first

    def find_by_tracking_number(self, tracking_number: str) -> Delivery | None:
        return self._dao.query.filter(tracking_number=tracking_number).all().first

    def find_by_courier_order_id(self, courier_order_id: str) -> Delivery | None:
        return self._dao.query.filter(courier_order_id=str(courier_order_id)).all().first

    def find_active_courier_deliveries(self) -> list[Delivery]:
        """Courier-linked deliveries still waiting on the courier."""
        active = []
        for status in (DeliveryStatus.ASSIGNED, DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT):
            items = self._dao.query.filter(status=status.value).all().items
            active.extend(d for d in items if d.courier_order_id)
        return active
