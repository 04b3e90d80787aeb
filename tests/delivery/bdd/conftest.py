"""Shared BDD fixtures and step definitions for the Delivery domain."""

import pytest
from delivery.delivery.delivery import Delivery
from delivery.delivery.events import (
    CourierCancellationRejected,
    CourierDriverMatched,
    CourierFareChanged,
    CourierOrderEdited,
    CourierOrderPlaced,
    DeliveryCancelled,
    DeliveryCompleted,
    DeliveryCreated,
    DeliveryInTransit,
    DeliveryPickedUp,
    DriverAssigned,
)
from delivery.errors import AlreadyAssigned, AlreadyPlaced, QuotationExpired, TooLateToEdit
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

_DELIVERY_EVENT_CLASSES = {
    "DeliveryCreated": DeliveryCreated,
    "DriverAssigned": DriverAssigned,
    "CourierOrderPlaced": CourierOrderPlaced,
    "CourierDriverMatched": CourierDriverMatched,
    "CourierOrderEdited": CourierOrderEdited,
    "CourierFareChanged": CourierFareChanged,
    "DeliveryPickedUp": DeliveryPickedUp,
    "DeliveryInTransit": DeliveryInTransit,
    "DeliveryCompleted": DeliveryCompleted,
    "DeliveryCancelled": DeliveryCancelled,
    "CourierCancellationRejected": CourierCancellationRejected,
}

_ERROR_CLASSES = {
    "validation error": ValidationError,
    "already placed": AlreadyPlaced,
    "already assigned": AlreadyAssigned,
    "too late to edit": TooLateToEdit,
    "quotation expired": QuotationExpired,
}

_PICKUP = {"street": "12 Mabini St", "city": "Malolos", "province": "Bulacan", "latitude": 14.8527, "longitude": 120.816}
_DROP_OFF = {"street": "88 Katipunan Ave", "city": "Quezon City", "province": "Metro Manila"}


def _new_delivery(order_id: str) -> Delivery:
    return Delivery.create(
        order_id=order_id,
        buyer_id="buyer-bdd",
        seller_id="seller-bdd",
        pickup_address=_PICKUP,
        delivery_address=_DROP_OFF,
    )


def _placed_delivery(order_id: str) -> Delivery:
    dlv = _new_delivery(order_id)
    dlv.record_courier_placement(
        provider="lalamove",
        courier_order_id=f"llm-{order_id}",
        quotation_id="qtn-bdd",
        courier_status="ASSIGNING_DRIVER",
        tracking_url=f"https://share.example.com/llm-{order_id}",
        fare=120.0,
        currency="PHP",
    )
    return dlv


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pending delivery", target_fixture="dlv")
def pending_delivery():
    dlv = _new_delivery("ord-bdd-001")
    dlv._events.clear()
    return dlv


@given("a delivery with a manually assigned driver", target_fixture="dlv")
def manually_assigned_delivery():
    dlv = _new_delivery("ord-bdd-002")
    dlv.assign_driver(name="Juan Dela Cruz", phone="+63 912 345 6789", vehicle_type="motorcycle")
    dlv._events.clear()
    return dlv


@given("a delivery placed with the courier", target_fixture="dlv")
def courier_delivery():
    dlv = _placed_delivery("ord-bdd-003")
    dlv._events.clear()
    return dlv


@given("a courier delivery that has been picked up", target_fixture="dlv")
def picked_up_courier_delivery():
    dlv = _placed_delivery("ord-bdd-004")
    dlv.reconcile("picked_up", "PICKED_UP")
    dlv._events.clear()
    return dlv


@given("a courier delivery that has been delivered", target_fixture="dlv")
def delivered_courier_delivery():
    dlv = _placed_delivery("ord-bdd-005")
    dlv.reconcile("delivered", "COMPLETED")
    dlv._events.clear()
    return dlv


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the delivery status is "{status}"'))
def delivery_status_is(dlv, status):
    assert dlv.status == status


@then(parsers.cfparse('the order status becomes "{status}"'))
def order_status_is(dlv, status):
    assert dlv.order_status == status


@then(parsers.cfparse("the action fails with {kind}"))
def action_fails(error, kind):
    assert error["exc"] is not None, f"Expected {kind} but nothing was raised"
    assert isinstance(error["exc"], _ERROR_CLASSES[kind]), f"Got {type(error['exc']).__name__}"


@then(parsers.cfparse("a {event_type} event is raised"))
def delivery_event_raised(dlv, event_type):
    event_cls = _DELIVERY_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in dlv._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in dlv._events]}"


@then("no events are raised")
def no_events_raised(dlv):
    assert dlv._events == []


@then("the delivery is past pickup")
def delivery_past_pickup(dlv):
    assert dlv.past_pickup is True
