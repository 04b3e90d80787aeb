"""Delivery tracking — public tracking page view, keyed by tracking number.

Holds only what an anonymous visitor may see: status, driver contact,
city-level route and the timeline. No buyer or seller identities.
"""

import json

from protean.core.projector import on
from protean.fields import DateTime, String, Text
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.delivery.delivery import Delivery
from delivery.delivery.events import (
    CourierDriverMatched,
    CourierOrderEdited,
    CourierOrderPlaced,
    DeliveryCancelled,
    DeliveryCompleted,
    DeliveryCreated,
    DeliveryInTransit,
    DeliveryPickedUp,
    DriverAssigned,
)


@delivery.projection
class DeliveryTrackingView:
    tracking_number = String(identifier=True, required=True, max_length=30)
    status = String(required=True)
    driver_name = String()
    driver_phone = String()
    vehicle_type = String()
    plate_number = String()
    pickup_city = String()
    delivery_city = String()
    courier_tracking_url = String()
    estimated_delivery_time = DateTime()
    timeline_json = Text()  # JSON list of {status, description, occurred_at}
    created_at = DateTime()
    assigned_at = DateTime()
    picked_up_at = DateTime()
    in_transit_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    updated_at = DateTime()


def _append(view, status: str, description: str, occurred_at) -> None:
    timeline = json.loads(view.timeline_json) if view.timeline_json else []
    timeline.append(
        {
            "status": status,
            "description": description,
            "occurred_at": occurred_at.isoformat() if occurred_at else None,
        }
    )
    view.timeline_json = json.dumps(timeline)
    view.updated_at = occurred_at


@delivery.projector(projector_for=DeliveryTrackingView, aggregates=[Delivery])
class DeliveryTrackingProjector:
    @on(DeliveryCreated)
    def on_delivery_created(self, event):
        view = DeliveryTrackingView(
            tracking_number=event.tracking_number,
            status="pending",
            pickup_city=event.pickup_city,
            delivery_city=event.delivery_city,
            timeline_json=json.dumps([]),
            created_at=event.created_at,
        )
        _append(view, "pending", "Delivery created", event.created_at)
        current_domain.repository_for(DeliveryTrackingView).add(view)

    @on(DriverAssigned)
    def on_driver_assigned(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.status = "assigned"
        view.driver_name = event.driver_name
        view.driver_phone = event.driver_phone
        view.vehicle_type = event.vehicle_type
        view.plate_number = event.plate_number
        view.estimated_delivery_time = event.estimated_delivery_time
        view.assigned_at = event.assigned_at
        _append(view, "assigned", f"Driver {event.driver_name} assigned", event.assigned_at)
        repo.add(view)

    @on(CourierOrderPlaced)
    def on_courier_order_placed(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.status = "assigned"
        view.courier_tracking_url = event.tracking_url
        view.assigned_at = event.assigned_at
        _append(view, "assigned", "Courier booked, assigning a driver", event.assigned_at)
        repo.add(view)

    @on(CourierDriverMatched)
    def on_courier_driver_matched(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.driver_name = event.driver_name
        view.driver_phone = event.driver_phone
        view.vehicle_type = event.vehicle_type
        view.plate_number = event.plate_number
        view.updated_at = event.matched_at
        repo.add(view)

    @on(CourierOrderEdited)
    def on_courier_order_edited(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.courier_tracking_url = event.tracking_url
        if event.delivery_city:
            view.delivery_city = event.delivery_city
        view.updated_at = event.edited_at
        repo.add(view)

    @on(DeliveryPickedUp)
    def on_picked_up(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.status = "picked_up"
        view.picked_up_at = event.picked_up_at
        _append(view, "picked_up", event.notes or "Parcel picked up", event.picked_up_at)
        repo.add(view)

    @on(DeliveryInTransit)
    def on_in_transit(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.status = "in_transit"
        view.in_transit_at = event.in_transit_at
        _append(view, "in_transit", event.notes or "Parcel on the way", event.in_transit_at)
        repo.add(view)

    @on(DeliveryCompleted)
    def on_completed(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.status = "delivered"
        view.delivered_at = event.delivered_at
        _append(view, "delivered", event.notes or "Parcel delivered", event.delivered_at)
        repo.add(view)

    @on(DeliveryCancelled)
    def on_cancelled(self, event):
        repo = current_domain.repository_for(DeliveryTrackingView)
        view = repo.get(event.tracking_number)
        view.status = "cancelled"
        view.cancelled_at = event.cancelled_at
        _append(view, "cancelled", event.reason or "Delivery cancelled", event.cancelled_at)
        repo.add(view)
