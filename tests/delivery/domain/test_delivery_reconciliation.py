"""Tests for forward-only reconciliation of courier-reported statuses."""

import pytest
from delivery.delivery.delivery import Delivery, DeliveryStatus, ReconcileOutcome, forward_path
from delivery.delivery.events import DeliveryCancelled, DeliveryCompleted, DeliveryInTransit, DeliveryPickedUp


def _courier_delivery():
    dlv = Delivery.create(
        order_id="ord-rec-001",
        buyer_id="buyer-001",
        seller_id="seller-001",
        pickup_address={"city": "Malolos", "province": "Bulacan"},
        delivery_address={"city": "Quezon City", "province": "Metro Manila"},
    )
    dlv.record_courier_placement(
        provider="lalamove",
        courier_order_id="llm-rec-001",
        quotation_id="qtn-rec-001",
        courier_status="ASSIGNING_DRIVER",
    )
    dlv._events.clear()
    return dlv


class TestForwardPath:
    def test_single_step(self):
        assert forward_path(DeliveryStatus.ASSIGNED, DeliveryStatus.PICKED_UP) == [DeliveryStatus.PICKED_UP]

    def test_assigned_to_delivered_walks_through_pickup(self):
        assert forward_path(DeliveryStatus.ASSIGNED, DeliveryStatus.DELIVERED) == [
            DeliveryStatus.PICKED_UP,
            DeliveryStatus.DELIVERED,
        ]

    def test_assigned_to_in_transit_is_direct(self):
        assert forward_path(DeliveryStatus.ASSIGNED, DeliveryStatus.IN_TRANSIT) == [DeliveryStatus.IN_TRANSIT]

    def test_pending_to_delivered(self):
        assert forward_path(DeliveryStatus.PENDING, DeliveryStatus.DELIVERED) == [
            DeliveryStatus.ASSIGNED,
            DeliveryStatus.PICKED_UP,
            DeliveryStatus.DELIVERED,
        ]

    def test_unreachable_target(self):
        assert forward_path(DeliveryStatus.DELIVERED, DeliveryStatus.PICKED_UP) == []


class TestReconcile:
    def test_forward_move_is_applied(self):
        dlv = _courier_delivery()
        outcome = dlv.reconcile("picked_up", "PICKED_UP")
        assert outcome == ReconcileOutcome.APPLIED
        assert dlv.status == "picked_up"
        assert dlv.courier_status == "PICKED_UP"
        assert dlv.picked_up_at is not None
        assert isinstance(dlv._events[-1], DeliveryPickedUp)

    def test_completion_skips_ahead_with_intermediate_events(self):
        dlv = _courier_delivery()
        outcome = dlv.reconcile("delivered", "COMPLETED")
        assert outcome == ReconcileOutcome.APPLIED
        assert dlv.status == "delivered"
        assert dlv.actual_delivery_time is not None
        assert dlv.picked_up_at is not None
        assert [type(e) for e in dlv._events] == [DeliveryPickedUp, DeliveryCompleted]

    def test_on_going_moves_to_in_transit(self):
        dlv = _courier_delivery()
        dlv.reconcile("in_transit", "ON_GOING")
        assert dlv.status == "in_transit"
        assert isinstance(dlv._events[-1], DeliveryInTransit)

    def test_same_status_is_unchanged(self):
        dlv = _courier_delivery()
        dlv.reconcile("picked_up", "PICKED_UP")
        dlv._events.clear()
        assert dlv.reconcile("picked_up", "PICKED_UP") == ReconcileOutcome.UNCHANGED
        assert dlv._events == []

    def test_same_stage_records_new_courier_status(self):
        dlv = _courier_delivery()
        assert dlv.reconcile("assigned", "REJECTED") == ReconcileOutcome.UNCHANGED
        assert dlv.courier_status == "REJECTED"
        assert dlv.status == "assigned"

    def test_backward_move_is_ignored(self):
        dlv = _courier_delivery()
        dlv.reconcile("in_transit", "ON_GOING")
        assert dlv.reconcile("assigned", "ASSIGNING_DRIVER") == ReconcileOutcome.IGNORED
        assert dlv.status == "in_transit"
        assert dlv.courier_status == "ON_GOING"

    def test_late_pickup_report_is_ignored_but_remembered(self):
        dlv = _courier_delivery()
        dlv.reconcile("in_transit", "ON_GOING")
        assert dlv.picked_up_at is None

        assert dlv.reconcile("picked_up", "PICKED_UP") == ReconcileOutcome.IGNORED
        assert dlv.status == "in_transit"
        assert dlv.picked_up_at is not None
        assert dlv.past_pickup

    def test_unknown_status_is_ignored(self):
        dlv = _courier_delivery()
        assert dlv.reconcile(None, "TELEPORTED") == ReconcileOutcome.IGNORED
        assert dlv.status == "assigned"

    def test_terminal_delivery_ignores_everything(self):
        dlv = _courier_delivery()
        dlv.reconcile("delivered", "COMPLETED")
        dlv._events.clear()
        assert dlv.reconcile("picked_up", "PICKED_UP") == ReconcileOutcome.IGNORED
        assert dlv.reconcile("cancelled", "CANCELLED") == ReconcileOutcome.IGNORED
        assert dlv.status == "delivered"
        assert dlv._events == []

    def test_courier_cancellation(self):
        dlv = _courier_delivery()
        assert dlv.reconcile("cancelled", "EXPIRED") == ReconcileOutcome.APPLIED
        assert dlv.status == "cancelled"
        assert dlv.cancelled_at is not None
        assert dlv.cancellation_reason == "Courier reported EXPIRED"
        event = dlv._events[-1]
        assert isinstance(event, DeliveryCancelled)
        assert event.source == "courier"

    @pytest.mark.parametrize(
        "sequence, final",
        [
            (["picked_up", "in_transit", "delivered"], "delivered"),
            (["delivered", "in_transit", "picked_up"], "delivered"),
            (["in_transit", "picked_up", "assigned"], "in_transit"),
            (["picked_up", "picked_up", "in_transit"], "in_transit"),
        ],
    )
    def test_final_status_is_the_furthest_reported(self, sequence, final):
        dlv = _courier_delivery()
        for status in sequence:
            dlv.reconcile(status, status.upper())
        assert dlv.status == final

    def test_timeline_records_courier_source(self):
        dlv = _courier_delivery()
        dlv.reconcile("picked_up", "PICKED_UP")
        assert dlv.timeline[-1].source == "courier"
        assert dlv.timeline[-1].notes == "Courier status PICKED_UP"
