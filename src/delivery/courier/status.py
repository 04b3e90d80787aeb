"""Courier status vocabularies mapped onto internal delivery statuses.

One table per courier. The state machine only ever sees the internal
values, so adding a courier means adding a table here.
"""

from enum import Enum

LALAMOVE_STATUS_MAP = {
    "ASSIGNING_DRIVER": "assigned",
    "REJECTED": "assigned",  # driver declined; courier is re-matching
    "ON_GOING": "in_transit",
    "PICKED_UP": "picked_up",
    "COMPLETED": "delivered",
    "CANCELLED": "cancelled",
    "EXPIRED": "cancelled",  # no driver matched before the order timed out
}


def translate(status_map: dict[str, str], courier_status: str | None) -> str | None:
    if not courier_status:
        return None
    return status_map.get(courier_status.strip().upper())


class CourierMessageType(Enum):
    """Kinds of update a courier pushes (webhook) or we derive (poll)."""

    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    ORDER_EDITED = "ORDER_EDITED"
    ORDER_AMOUNT_CHANGED = "ORDER_AMOUNT_CHANGED"
    ORDER_REPLACED = "ORDER_REPLACED"
