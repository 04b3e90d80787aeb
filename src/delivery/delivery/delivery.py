"""Delivery aggregate (CQRS) — the core of the delivery domain.

One Delivery per paid Order. The seller either assigns a driver manually or
places a courier order; after that the courier's reported statuses drive
the delivery forward. Reconciliation applies forward moves only, so a late
or duplicated webhook can never walk a delivery backwards.

State Machine:
    PENDING → ASSIGNED → PICKED_UP → IN_TRANSIT → DELIVERED
    ASSIGNED → IN_TRANSIT
    PICKED_UP → DELIVERED
    {PENDING, ASSIGNED, PICKED_UP, IN_TRANSIT} → CANCELLED
"""

import secrets
import string
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    String,
    Text,
    ValueObject,
)

from delivery.domain import delivery
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
from delivery.errors import AlreadyAssigned, AlreadyPlaced, ForbiddenError, TooLateToEdit


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class DeliveryStatus(Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TransitionSource(Enum):
    MANUAL = "manual"
    COURIER = "courier"
    SYSTEM = "system"


class ReconcileOutcome(Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    IGNORED = "ignored"


_VALID_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.ASSIGNED, DeliveryStatus.CANCELLED},
    DeliveryStatus.ASSIGNED: {DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT, DeliveryStatus.CANCELLED},
    DeliveryStatus.PICKED_UP: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED},
    DeliveryStatus.DELIVERED: set(),  # terminal
    DeliveryStatus.CANCELLED: set(),  # terminal
}

_PROGRESS_RANK = {
    DeliveryStatus.PENDING: 0,
    DeliveryStatus.ASSIGNED: 1,
    DeliveryStatus.PICKED_UP: 2,
    DeliveryStatus.IN_TRANSIT: 3,
    DeliveryStatus.DELIVERED: 4,
}

_TERMINAL_STATUSES = {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED}

# Courier orders can be edited until the parcel leaves the seller
_PAST_PICKUP_VALUES = {DeliveryStatus.PICKED_UP.value, DeliveryStatus.DELIVERED.value}

# Order.status that must accompany each Delivery.status
ORDER_STATUS_FOR_DELIVERY = {
    DeliveryStatus.PENDING: "confirmed",
    DeliveryStatus.ASSIGNED: "confirmed",
    DeliveryStatus.PICKED_UP: "shipped",
    DeliveryStatus.IN_TRANSIT: "shipped",
    DeliveryStatus.DELIVERED: "delivered",
    DeliveryStatus.CANCELLED: "confirmed",
}

TRACKING_PREFIX = "AGR"
_TRACKING_ALPHABET = string.ascii_uppercase + string.digits


def forward_path(current: DeliveryStatus, target: DeliveryStatus) -> list[DeliveryStatus]:
    """Shortest chain of non-cancelling edges from ``current`` to ``target``.

    Ties are broken toward the earlier stage, so ASSIGNED → DELIVERED walks
    through PICKED_UP. Returns an empty list when ``target`` is unreachable.
    """
    frontier = [(current, [])]
    seen = {current}
    while frontier:
        next_frontier = []
        for status, path in frontier:
            neighbours = sorted(
                (s for s in _VALID_TRANSITIONS[status] if s in _PROGRESS_RANK),
                key=_PROGRESS_RANK.get,
            )
            for neighbour in neighbours:
                if neighbour in seen:
                    continue
                if neighbour == target:
                    return path + [neighbour]
                seen.add(neighbour)
                next_frontier.append((neighbour, path + [neighbour]))
        frontier = next_frontier
    return []


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@delivery.value_object(part_of="Delivery")
class Address:
    """A pickup or drop-off address with optional resolved coordinates."""

    full_address = String(max_length=500)
    street = String(max_length=255)
    barangay = String(max_length=100)
    city = String(max_length=100)
    province = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100, default="Philippines")
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)

    def location_text(self) -> str:
        if self.full_address:
            return self.full_address
        parts = [self.street, self.barangay, self.city, self.province, self.country]
        return ", ".join(p for p in parts if p)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@delivery.value_object(part_of="Delivery")
class DriverDetails:
    """The driver and vehicle carrying the parcel."""

    name = String(required=True, max_length=150)
    phone = String(required=True, max_length=50)
    email = String(max_length=254)
    vehicle_type = String(max_length=50)
    plate_number = String(max_length=30)
    vehicle_description = String(max_length=255)
    courier_driver_id = String(max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@delivery.entity(part_of="Delivery")
class TimelineEntry:
    """A status change applied to the delivery."""

    status = String(required=True, max_length=20)
    source = String(required=True, max_length=20, choices=TransitionSource)
    notes = Text()
    occurred_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@delivery.aggregate
class Delivery:
    order_id = Identifier(required=True, unique=True)
    tracking_number = String(required=True, max_length=30, unique=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    pickup_address = ValueObject(Address)
    delivery_address = ValueObject(Address)
    status = String(
        choices=DeliveryStatus,
        default=DeliveryStatus.PENDING.value,
    )

    # Manual assignment or courier driver lookup
    driver = ValueObject(DriverDetails)
    estimated_delivery_time = DateTime()
    seller_notes = Text()

    # Courier linkage, set at most once
    courier_provider = String(max_length=50)
    courier_order_id = String(max_length=100)
    courier_quotation_id = String(max_length=100)
    courier_status = String(max_length=50)
    courier_tracking_url = String(max_length=500)
    courier_fare = Float()
    courier_currency = String(max_length=10)

    cancellation_reason = String(max_length=500)
    upstream_cancel_error = String(max_length=500)
    timeline = HasMany(TimelineEntry)

    assigned_at = DateTime()
    picked_up_at = DateTime()
    in_transit_at = DateTime()
    actual_delivery_time = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id: str,
        buyer_id: str,
        seller_id: str,
        pickup_address: dict,
        delivery_address: dict,
        tracking_number: str | None = None,
    ):
        """Create a pending delivery for a paid order."""
        now = datetime.now(UTC)
        dlv = cls(
            order_id=order_id,
            tracking_number=tracking_number or cls.generate_tracking_number(now),
            buyer_id=buyer_id,
            seller_id=seller_id,
            pickup_address=Address(**pickup_address),
            delivery_address=Address(**delivery_address),
            status=DeliveryStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        dlv._add_timeline_entry(DeliveryStatus.PENDING, TransitionSource.SYSTEM, "Delivery created", now)
        dlv.raise_(
            DeliveryCreated(
                delivery_id=str(dlv.id),
                order_id=order_id,
                buyer_id=buyer_id,
                seller_id=seller_id,
                tracking_number=dlv.tracking_number,
                pickup_city=dlv.pickup_address.city,
                delivery_city=dlv.delivery_address.city,
                created_at=now,
            )
        )
        return dlv

    @staticmethod
    def generate_tracking_number(now: datetime | None = None) -> str:
        """``AGR-YYYYMMDD-XXXXX`` with five random uppercase alphanumerics."""
        now = now or datetime.now(UTC)
        suffix = "".join(secrets.choice(_TRACKING_ALPHABET) for _ in range(5))
        return f"{TRACKING_PREFIX}-{now:%Y%m%d}-{suffix}"

    # -------------------------------------------------------------------
    # Queries and guards
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return DeliveryStatus(self.status) in _TERMINAL_STATUSES

    @property
    def has_courier_order(self) -> bool:
        return bool(self.courier_order_id)

    @property
    def past_pickup(self) -> bool:
        """True once the parcel is known to have left the seller."""
        return self.picked_up_at is not None or self.status in _PAST_PICKUP_VALUES

    @property
    def order_status(self) -> str:
        """The Order.status this delivery requires."""
        return ORDER_STATUS_FOR_DELIVERY[DeliveryStatus(self.status)]

    def ensure_seller(self, user_id: str) -> None:
        if str(user_id) != str(self.seller_id):
            raise ForbiddenError("Only the seller of this order can manage its delivery")

    def ensure_party(self, user_id: str) -> None:
        if str(user_id) not in (str(self.buyer_id), str(self.seller_id)):
            raise ForbiddenError("Only the buyer or seller of this order can view its delivery")

    @property
    def cancellation_needs_courier_ack(self) -> bool:
        """Past pickup, only the courier's answer decides a cancellation."""
        return self.has_courier_order and (
            self.past_pickup or self.status == DeliveryStatus.IN_TRANSIT.value
        )

    def assert_can_cancel(self) -> None:
        self._assert_mutable()

    def _assert_mutable(self) -> None:
        if self.is_terminal:
            raise ValidationError({"status": [f"Delivery is {self.status} and can no longer change"]})

    def _assert_can_transition(self, target_status: DeliveryStatus) -> None:
        current = DeliveryStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _ref(self) -> dict:
        return {
            "delivery_id": str(self.id),
            "order_id": str(self.order_id),
            "buyer_id": str(self.buyer_id),
            "tracking_number": self.tracking_number,
        }

    def _add_timeline_entry(self, status: DeliveryStatus, source: TransitionSource, notes, at: datetime) -> None:
        self.add_timeline(
            TimelineEntry(
                status=status.value,
                source=source.value,
                notes=notes or "",
                occurred_at=at,
            )
        )

    # -------------------------------------------------------------------
    # Manual path
    # -------------------------------------------------------------------
    def assign_driver(
        self,
        name: str,
        phone: str,
        vehicle_type: str | None = None,
        plate_number: str | None = None,
        email: str | None = None,
        vehicle_description: str | None = None,
        estimated_delivery_time: datetime | None = None,
        seller_notes: str | None = None,
    ) -> None:
        """Assign an internal driver, bypassing the courier."""
        self._assert_mutable()
        if DeliveryStatus(self.status) != DeliveryStatus.PENDING:
            raise AlreadyAssigned(f"Delivery is already {self.status}; a driver can only be assigned while pending")

        now = datetime.now(UTC)
        self.driver = DriverDetails(
            name=name,
            phone=phone,
            email=email,
            vehicle_type=vehicle_type,
            plate_number=plate_number,
            vehicle_description=vehicle_description,
        )
        self.status = DeliveryStatus.ASSIGNED.value
        self.assigned_at = now
        self.estimated_delivery_time = estimated_delivery_time
        self.seller_notes = seller_notes
        self.updated_at = now
        self._add_timeline_entry(DeliveryStatus.ASSIGNED, TransitionSource.MANUAL, f"Driver {name} assigned", now)
        self.raise_(
            DriverAssigned(
                **self._ref(),
                driver_name=name,
                driver_phone=phone,
                vehicle_type=vehicle_type,
                plate_number=plate_number,
                estimated_delivery_time=estimated_delivery_time,
                assigned_at=now,
            )
        )

    def advance_manually(self, target_status: DeliveryStatus, notes: str | None = None) -> None:
        """Seller-reported progress for deliveries without a courier order."""
        self._assert_mutable()
        if self.has_courier_order:
            raise ValidationError({"status": ["Courier deliveries are updated by the courier"]})
        if target_status not in (DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED):
            raise ValidationError({"status": [f"Cannot set status to {target_status.value} manually"]})
        self._assert_can_transition(target_status)
        self._advance(target_status, TransitionSource.MANUAL, notes, datetime.now(UTC))

    def confirm_pickup(self, notes: str | None = None) -> None:
        """Seller confirms the driver collected the parcel."""
        self.advance_manually(DeliveryStatus.PICKED_UP, notes)

    # -------------------------------------------------------------------
    # Courier path
    # -------------------------------------------------------------------
    def assert_can_place_courier_order(self) -> None:
        """Checked before calling out, so conflicts never reach the courier."""
        self._assert_mutable()
        if self.has_courier_order:
            raise AlreadyPlaced(
                "Delivery already has a courier order",
                courier_order_id=self.courier_order_id,
            )
        if DeliveryStatus(self.status) != DeliveryStatus.PENDING:
            raise AlreadyAssigned(f"Delivery is already {self.status}; a courier order can only be placed while pending")

    def record_courier_placement(
        self,
        provider: str,
        courier_order_id: str,
        quotation_id: str,
        courier_status: str | None = None,
        tracking_url: str | None = None,
        fare: float | None = None,
        currency: str | None = None,
        driver_matched: bool = False,
    ) -> None:
        """Link the placed courier order and move to ASSIGNED."""
        self.assert_can_place_courier_order()
        self._assert_can_transition(DeliveryStatus.ASSIGNED)

        now = datetime.now(UTC)
        self.courier_provider = provider
        self.courier_order_id = courier_order_id
        self.courier_quotation_id = quotation_id
        self.courier_status = courier_status
        self.courier_tracking_url = tracking_url
        self.courier_fare = fare
        self.courier_currency = currency
        self.status = DeliveryStatus.ASSIGNED.value
        self.assigned_at = now
        self.updated_at = now
        self._add_timeline_entry(
            DeliveryStatus.ASSIGNED,
            TransitionSource.COURIER,
            f"Courier order {courier_order_id} placed",
            now,
        )
        self.raise_(
            CourierOrderPlaced(
                **self._ref(),
                courier_provider=provider,
                courier_order_id=courier_order_id,
                quotation_id=quotation_id,
                courier_status=courier_status,
                tracking_url=tracking_url,
                driver_matched=driver_matched,
                assigned_at=now,
            )
        )

    def match_courier_driver(
        self,
        courier_driver_id: str,
        name: str,
        phone: str,
        vehicle_type: str | None = None,
        plate_number: str | None = None,
    ) -> bool:
        """Record the courier's driver. Returns False when nothing changed."""
        if self.is_terminal:
            return False
        if self.driver and self.driver.courier_driver_id == courier_driver_id:
            return False

        now = datetime.now(UTC)
        self.driver = DriverDetails(
            name=name or "Courier driver",
            phone=phone or "Not provided",
            vehicle_type=vehicle_type,
            plate_number=plate_number,
            courier_driver_id=courier_driver_id,
        )
        self.updated_at = now
        self.raise_(
            CourierDriverMatched(
                **self._ref(),
                courier_driver_id=courier_driver_id,
                driver_name=self.driver.name,
                driver_phone=self.driver.phone,
                vehicle_type=vehicle_type,
                plate_number=plate_number,
                matched_at=now,
            )
        )
        return True

    def assert_can_edit_courier_order(self, courier_stage: str | None = None) -> None:
        """Edits are allowed until the parcel has been picked up.

        ``courier_stage`` is the last-known courier status translated into a
        DeliveryStatus value.
        """
        if DeliveryStatus(self.status) == DeliveryStatus.CANCELLED:
            raise ValidationError({"status": ["Delivery is cancelled and can no longer change"]})
        if not self.has_courier_order:
            raise ValidationError({"courier_order_id": ["Delivery has no courier order to edit"]})
        if self.past_pickup or courier_stage in _PAST_PICKUP_VALUES:
            raise TooLateToEdit(
                f"Courier order can no longer be edited once the delivery is {self.status}",
                courier_status=self.courier_status,
            )

    def record_courier_edit(
        self,
        tracking_url: str | None = None,
        delivery_address: dict | None = None,
        courier_stage: str | None = None,
    ) -> None:
        self.assert_can_edit_courier_order(courier_stage)

        now = datetime.now(UTC)
        if tracking_url:
            self.courier_tracking_url = tracking_url
        if delivery_address:
            self.delivery_address = Address(**delivery_address)
        self.updated_at = now
        self.raise_(
            CourierOrderEdited(
                **self._ref(),
                tracking_url=self.courier_tracking_url,
                delivery_city=self.delivery_address.city if self.delivery_address else None,
                edited_at=now,
            )
        )

    def record_share_link(self, tracking_url: str) -> bool:
        """Courier pushed a new share link after an edit on its side."""
        if self.is_terminal or not tracking_url or tracking_url == self.courier_tracking_url:
            return False
        now = datetime.now(UTC)
        self.courier_tracking_url = tracking_url
        self.updated_at = now
        self.raise_(
            CourierOrderEdited(
                **self._ref(),
                tracking_url=tracking_url,
                delivery_city=self.delivery_address.city if self.delivery_address else None,
                edited_at=now,
            )
        )
        return True

    def record_fare_change(self, amount: float | None, currency: str | None = None) -> bool:
        if self.is_terminal:
            return False
        now = datetime.now(UTC)
        self.courier_fare = amount
        if currency:
            self.courier_currency = currency
        self.updated_at = now
        self.raise_(
            CourierFareChanged(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                seller_id=str(self.seller_id),
                tracking_number=self.tracking_number,
                amount=amount,
                currency=self.courier_currency,
                changed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------
    def reconcile(self, target_status: str | None, courier_status: str) -> ReconcileOutcome:
        """Apply a courier-reported status, forward moves only.

        ``target_status`` is the courier status already translated into a
        DeliveryStatus value (None when the courier status is unknown).
        """
        if target_status is None or self.is_terminal:
            return ReconcileOutcome.IGNORED

        target = DeliveryStatus(target_status)
        current = DeliveryStatus(self.status)
        now = datetime.now(UTC)

        if target == DeliveryStatus.CANCELLED:
            self.courier_status = courier_status
            self._cancel(f"Courier reported {courier_status}", TransitionSource.COURIER, None, now)
            return ReconcileOutcome.APPLIED

        if _PROGRESS_RANK[target] < _PROGRESS_RANK[current]:
            # A late pickup report still closes the edit window
            if target == DeliveryStatus.PICKED_UP and self.picked_up_at is None:
                self.picked_up_at = now
            return ReconcileOutcome.IGNORED

        if target == current:
            if self.courier_status != courier_status:
                self.courier_status = courier_status
                self.updated_at = now
            return ReconcileOutcome.UNCHANGED

        path = forward_path(current, target)
        if not path:
            return ReconcileOutcome.IGNORED

        self.courier_status = courier_status
        for step in path:
            self._advance(step, TransitionSource.COURIER, f"Courier status {courier_status}", now)
        return ReconcileOutcome.APPLIED

    def _advance(self, target: DeliveryStatus, source: TransitionSource, notes: str | None, at: datetime) -> None:
        self._assert_can_transition(target)
        self.status = target.value
        self.updated_at = at
        self._add_timeline_entry(target, source, notes, at)

        if target == DeliveryStatus.ASSIGNED:
            self.assigned_at = at
        elif target == DeliveryStatus.PICKED_UP:
            self.picked_up_at = at
            self.raise_(DeliveryPickedUp(**self._ref(), source=source.value, notes=notes, picked_up_at=at))
        elif target == DeliveryStatus.IN_TRANSIT:
            self.in_transit_at = at
            self.raise_(DeliveryInTransit(**self._ref(), source=source.value, notes=notes, in_transit_at=at))
        elif target == DeliveryStatus.DELIVERED:
            self.actual_delivery_time = at
            self.raise_(DeliveryCompleted(**self._ref(), source=source.value, notes=notes, delivered_at=at))

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(
        self,
        reason: str | None = None,
        source: TransitionSource = TransitionSource.MANUAL,
        upstream_error: str | None = None,
    ) -> None:
        """Cancel a non-terminal delivery."""
        self._assert_mutable()
        self._cancel(reason, source, upstream_error, datetime.now(UTC))

    def _cancel(self, reason, source: TransitionSource, upstream_error, at: datetime) -> None:
        self._assert_can_transition(DeliveryStatus.CANCELLED)
        self.status = DeliveryStatus.CANCELLED.value
        self.cancelled_at = at
        self.cancellation_reason = reason
        if upstream_error:
            self.upstream_cancel_error = upstream_error
        self.updated_at = at
        self._add_timeline_entry(DeliveryStatus.CANCELLED, source, reason, at)
        self.raise_(
            DeliveryCancelled(
                **self._ref(),
                seller_id=str(self.seller_id),
                source=source.value,
                reason=reason,
                upstream_error=upstream_error,
                cancelled_at=at,
            )
        )

    def record_cancellation_rejected(self, reason: str) -> None:
        """The courier refused to cancel; the delivery keeps its status."""
        self._assert_mutable()
        now = datetime.now(UTC)
        self.upstream_cancel_error = reason
        self.updated_at = now
        self.raise_(
            CourierCancellationRejected(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                seller_id=str(self.seller_id),
                tracking_number=self.tracking_number,
                status=self.status,
                reason=reason,
                rejected_at=now,
            )
        )
