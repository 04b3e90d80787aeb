"""Delivery domain events — immutable facts about delivery state changes.

All events are past tense, versioned, and carry the order, buyer and
tracking references that notification handlers and the public tracking
projection need without reloading the aggregate.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from delivery.domain import delivery


@delivery.event(part_of="Delivery")
class DeliveryCreated:
    """A delivery was created for a paid order."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    tracking_number = String(required=True)
    pickup_city = String()
    delivery_city = String()
    created_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class DriverAssigned:
    """The seller assigned a driver manually, bypassing the courier."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    tracking_number = String(required=True)
    driver_name = String(required=True)
    driver_phone = String(required=True)
    vehicle_type = String()
    plate_number = String()
    estimated_delivery_time = DateTime()
    assigned_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class CourierOrderPlaced:
    """A courier order was placed and linked to the delivery."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    tracking_number = String(required=True)
    courier_provider = String(required=True)
    courier_order_id = String(required=True)
    quotation_id = String(required=True)
    courier_status = String()
    tracking_url = String()
    driver_matched = Boolean(default=False)
    assigned_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class CourierDriverMatched:
    """The courier matched a driver to the order."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    tracking_number = String(required=True)
    courier_driver_id = String(required=True)
    driver_name = String()
    driver_phone = String()
    vehicle_type = String()
    plate_number = String()
    matched_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class CourierOrderEdited:
    """Stops or recipients of the courier order were changed."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    tracking_number = String(required=True)
    tracking_url = String()
    delivery_city = String()
    edited_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class CourierFareChanged:
    """The courier changed the fare of a placed order."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    tracking_number = String(required=True)
    amount = Float()
    currency = String()
    changed_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class DeliveryPickedUp:
    """The parcel was picked up from the seller."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    tracking_number = String(required=True)
    source = String(required=True)
    notes = Text()
    picked_up_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class DeliveryInTransit:
    """The parcel is on its way to the buyer."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    tracking_number = String(required=True)
    source = String(required=True)
    notes = Text()
    in_transit_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class DeliveryCompleted:
    """The parcel was delivered to the buyer."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    tracking_number = String(required=True)
    source = String(required=True)
    notes = Text()
    delivered_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class DeliveryCancelled:
    """The delivery was cancelled by the seller or the courier."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    tracking_number = String(required=True)
    source = String(required=True)
    reason = String()
    upstream_error = String()
    cancelled_at = DateTime(required=True)


@delivery.event(part_of="Delivery")
class CourierCancellationRejected:
    """The courier refused to cancel an order already past pickup."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    tracking_number = String(required=True)
    status = String(required=True)
    reason = String()
    rejected_at = DateTime(required=True)
