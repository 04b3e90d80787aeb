"""Manual driver assignment — command and handler.

The seller hands the parcel to one of the directory's drivers (or names a
driver of their own), bypassing the courier entirely.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.delivery.delivery import Delivery
from delivery.drivers.directory import driver_directory
from delivery.order.order import sync_order_status

logger = structlog.get_logger(__name__)


@delivery.command(part_of="Delivery")
class AssignDriver:
    """Assign a driver to a pending delivery."""

    delivery_id = Identifier(required=True)
    requested_by = Identifier(required=True)
    driver_id = String(max_length=50)  # directory driver; overrides the fields below
    driver_name = String(max_length=150)
    driver_phone = String(max_length=50)
    driver_email = String(max_length=254)
    vehicle_type = String(max_length=50)
    plate_number = String(max_length=30)
    vehicle_description = String(max_length=255)
    estimated_delivery_time = DateTime()
    seller_notes = Text()


def _driver_fields(command) -> dict:
    if command.driver_id:
        driver = driver_directory.get(command.driver_id)
        if driver is None:
            raise ValidationError({"driver_id": [f"Unknown driver {command.driver_id}"]})
        return {
            "name": driver.name,
            "phone": driver.phone,
            "email": driver.email,
            "vehicle_type": driver.vehicle_type,
            "plate_number": driver.plate_number,
            "vehicle_description": driver.vehicle_description,
        }

    if not command.driver_name or not command.driver_phone:
        raise ValidationError({"driver": ["Provide a driver_id or the driver's name and phone"]})
    return {
        "name": command.driver_name,
        "phone": command.driver_phone,
        "email": command.driver_email,
        "vehicle_type": command.vehicle_type,
        "plate_number": command.plate_number,
        "vehicle_description": command.vehicle_description,
    }


@delivery.command_handler(part_of=Delivery)
class AssignDriverHandler:
    @handle(AssignDriver)
    def assign_driver(self, command):
        repo = current_domain.repository_for(Delivery)
        dlv = repo.get(command.delivery_id)
        dlv.ensure_seller(command.requested_by)

        dlv.assign_driver(
            **_driver_fields(command),
            estimated_delivery_time=command.estimated_delivery_time,
            seller_notes=command.seller_notes,
        )
        repo.add(dlv)
        sync_order_status(dlv)

        logger.info(
            "Driver assigned manually",
            delivery_id=str(dlv.id),
            driver_name=dlv.driver.name,
        )
