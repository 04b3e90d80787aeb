"""Editing and cancelling courier deliveries."""

import json

import pytest
from delivery.delivery.assignment import AssignDriver
from delivery.delivery.cancellation import CancelDelivery
from delivery.delivery.delivery import Delivery
from delivery.delivery.editing import EditCourierOrder
from delivery.errors import ForbiddenError, TooLateToEdit, UpstreamError
from delivery.order.order import Order
from delivery.reconciliation.service import reconcile_or_defer
from protean import current_domain
from protean.exceptions import ValidationError

NEW_ADDRESS = {
    "full_address": "Baguio, Benguet",
    "street": "5 Session Rd",
    "city": "Baguio",
    "province": "Benguet",
    "country": "Philippines",
}


def _delivery(delivery_id) -> Delivery:
    return current_domain.repository_for(Delivery).get(str(delivery_id))


def _edit(delivery_id, requested_by="seller-001", **fields):
    return current_domain.process(
        EditCourierOrder(delivery_id=str(delivery_id), requested_by=requested_by, **fields),
        asynchronous=False,
    )


def _cancel(delivery_id, requested_by="seller-001", reason=None):
    return current_domain.process(
        CancelDelivery(delivery_id=str(delivery_id), requested_by=requested_by, reason=reason),
        asynchronous=False,
    )


@pytest.fixture()
def placed(create_delivery, place_courier_order):
    dlv = create_delivery(order_id="ord-ed-001")
    courier_order_id = place_courier_order(dlv)
    return _delivery(dlv.id), courier_order_id


class TestEditCourierOrder:
    def test_new_drop_off_is_geocoded_and_sent(self, placed, courier, notifier):
        dlv, courier_order_id = placed
        result = _edit(dlv.id, delivery_address=json.dumps(NEW_ADDRESS))

        assert result["courier_order_id"] == courier_order_id
        [call] = courier.calls_to("edit_order")
        assert call["stops"][1].latitude == pytest.approx(16.4023)
        assert call["stops"][0].latitude == pytest.approx(14.8527)

        dlv = _delivery(dlv.id)
        assert dlv.delivery_address.city == "Baguio"
        assert dlv.delivery_address.latitude == pytest.approx(16.4023)
        assert notifier.sent_to("buyer-001")[-1].title == "Delivery Updated"

    def test_recipient_only_edit(self, placed, courier):
        dlv, _ = placed
        _edit(dlv.id, recipient_name="Ana Cruz", recipient_phone="+63 917 555 0000", remarks="Gate 2")

        [call] = courier.calls_to("edit_order")
        assert call["stops"] is None
        assert call["recipients"][0].name == "Ana Cruz"
        assert call["recipients"][0].remarks == "Gate 2"

    def test_edit_after_pickup_is_too_late(self, placed, status_update, courier):
        dlv, courier_order_id = placed
        reconcile_or_defer(status_update(courier_order_id, "PICKED_UP"))

        with pytest.raises(TooLateToEdit):
            _edit(dlv.id, delivery_address=json.dumps(NEW_ADDRESS))
        assert courier.calls_to("edit_order") == []
        assert _delivery(dlv.id).delivery_address.city == "Quezon City"

    def test_late_pickup_report_still_closes_the_edit_window(self, placed, status_update, courier):
        dlv, courier_order_id = placed
        reconcile_or_defer(status_update(courier_order_id, "ON_GOING"))
        assert reconcile_or_defer(status_update(courier_order_id, "PICKED_UP")) == "ignored"

        dlv = _delivery(dlv.id)
        assert dlv.status == "in_transit"
        assert dlv.picked_up_at is not None
        with pytest.raises(TooLateToEdit):
            _edit(dlv.id, recipient_name="Ana Cruz")
        assert courier.calls_to("edit_order") == []

    def test_courier_reported_pickup_blocks_edit_before_local_update(self, placed, courier):
        dlv, courier_order_id = placed
        dlv.courier_status = "PICKED_UP"
        current_domain.repository_for(Delivery).add(dlv)

        with pytest.raises(TooLateToEdit):
            _edit(dlv.id, recipient_name="Ana Cruz")
        assert courier.calls_to("edit_order") == []

    def test_edit_without_courier_order(self, create_delivery):
        dlv = create_delivery(order_id="ord-ed-002")
        with pytest.raises(ValidationError) as exc:
            _edit(dlv.id, recipient_name="Ana Cruz")
        assert "courier_order_id" in exc.value.messages

    def test_courier_rejection_is_upstream_error(self, placed, courier):
        dlv, _ = placed
        courier.configure(should_succeed=False, failure_reason="Stop out of service area")
        with pytest.raises(UpstreamError) as exc:
            _edit(dlv.id, recipient_name="Ana Cruz")
        assert exc.value.status_code == 400

    def test_only_the_seller_may_edit(self, placed, courier):
        dlv, _ = placed
        with pytest.raises(ForbiddenError):
            _edit(dlv.id, requested_by="buyer-001", recipient_name="Ana Cruz")


class TestCancelDelivery:
    def test_manual_delivery_is_cancelled_locally(self, create_delivery, courier, notifier):
        dlv = create_delivery(order_id="ord-cn-001")
        current_domain.process(
            AssignDriver(delivery_id=str(dlv.id), requested_by="seller-001", driver_id="driver_1"),
            asynchronous=False,
        )

        result = _cancel(dlv.id, reason="Buyer changed their mind")

        assert result["cancelled"] is True
        assert result["upstream_cancelled"] is None
        assert courier.calls_to("cancel_order") == []
        dlv = _delivery(dlv.id)
        assert dlv.cancellation_reason == "Buyer changed their mind"
        assert current_domain.repository_for(Order).get("ord-cn-001").status == "confirmed"
        assert notifier.sent_to("buyer-001")[-1].message.endswith("Buyer changed their mind")

    def test_default_reason(self, create_delivery):
        dlv = create_delivery(order_id="ord-cn-002")
        _cancel(dlv.id)
        assert _delivery(dlv.id).cancellation_reason == "Cancelled by seller"

    def test_courier_order_is_cancelled_upstream(self, placed, courier):
        dlv, courier_order_id = placed
        result = _cancel(dlv.id)

        assert result == {
            "delivery_id": str(dlv.id),
            "cancelled": True,
            "status": "cancelled",
            "upstream_cancelled": True,
            "upstream_error": None,
        }
        assert courier.orders[courier_order_id].status == "CANCELLED"

    def test_refusal_before_pickup_still_cancels(self, placed, courier):
        dlv, _ = placed
        courier.configure(cancel_succeeds=False)

        result = _cancel(dlv.id)

        assert result["cancelled"] is True
        assert result["upstream_cancelled"] is False
        assert _delivery(dlv.id).upstream_cancel_error == "Order is already en route and cannot be cancelled"

    def test_courier_outage_before_pickup_still_cancels(self, placed, courier):
        dlv, _ = placed
        courier.configure(transport_failure=True)
        assert _cancel(dlv.id)["cancelled"] is True

    def test_refusal_after_pickup_keeps_the_delivery(self, placed, status_update, courier, notifier):
        dlv, courier_order_id = placed
        reconcile_or_defer(status_update(courier_order_id, "PICKED_UP"))
        courier.configure(cancel_succeeds=False)

        result = _cancel(dlv.id)

        assert result["cancelled"] is False
        assert result["status"] == "picked_up"
        dlv = _delivery(dlv.id)
        assert dlv.status == "picked_up"
        assert dlv.upstream_cancel_error == "Order is already en route and cannot be cancelled"
        assert current_domain.repository_for(Order).get("ord-ed-001").status == "shipped"
        assert notifier.sent_to("seller-001")[-1].title == "Cancellation Not Possible"

    def test_confirmed_cancel_after_pickup(self, placed, status_update):
        dlv, courier_order_id = placed
        reconcile_or_defer(status_update(courier_order_id, "PICKED_UP"))

        assert _cancel(dlv.id)["cancelled"] is True
        assert current_domain.repository_for(Order).get("ord-ed-001").status == "confirmed"

    def test_delivered_delivery_cannot_be_cancelled(self, placed, status_update, courier):
        dlv, courier_order_id = placed
        reconcile_or_defer(status_update(courier_order_id, "COMPLETED"))

        with pytest.raises(ValidationError):
            _cancel(dlv.id)
        assert courier.calls_to("cancel_order") == []

    def test_only_the_seller_may_cancel(self, placed):
        dlv, _ = placed
        with pytest.raises(ForbiddenError):
            _cancel(dlv.id, requested_by="buyer-001")
