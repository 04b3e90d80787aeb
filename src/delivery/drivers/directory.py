"""Driver directory — reference data for the manual assignment path."""

from dataclasses import asdict, dataclass
from enum import Enum


class VehicleType(Enum):
    MOTORCYCLE = "motorcycle"
    CAR = "car"
    MINI_TRUCK = "mini_truck"
    TRUCK = "truck"


@dataclass(frozen=True)
class DirectoryDriver:
    driver_id: str
    name: str
    phone: str
    email: str
    vehicle_type: str
    plate_number: str
    vehicle_description: str

    def as_dict(self) -> dict:
        return asdict(self)


DEFAULT_DRIVERS = (
    DirectoryDriver(
        driver_id="driver_1",
        name="Juan Dela Cruz",
        phone="+63 912 345 6789",
        email="juan.delacruz@agrireach.com",
        vehicle_type=VehicleType.MOTORCYCLE.value,
        plate_number="ABC-1234",
        vehicle_description="Red Honda Click 125i",
    ),
    DirectoryDriver(
        driver_id="driver_2",
        name="Maria Santos",
        phone="+63 923 456 7890",
        email="maria.santos@agrireach.com",
        vehicle_type=VehicleType.CAR.value,
        plate_number="XYZ-5678",
        vehicle_description="White Toyota Vios",
    ),
    DirectoryDriver(
        driver_id="driver_3",
        name="Pedro Garcia",
        phone="+63 934 567 8901",
        email="pedro.garcia@agrireach.com",
        vehicle_type=VehicleType.MINI_TRUCK.value,
        plate_number="DEF-9012",
        vehicle_description="Blue Suzuki Multicab",
    ),
    DirectoryDriver(
        driver_id="driver_4",
        name="Ana Rodriguez",
        phone="+63 945 678 9012",
        email="ana.rodriguez@agrireach.com",
        vehicle_type=VehicleType.TRUCK.value,
        plate_number="GHI-3456",
        vehicle_description="Isuzu Elf Closed Van",
    ),
)


class DriverDirectory:
    """Read-only lookup over a fixed set of drivers."""

    def __init__(self, drivers: tuple[DirectoryDriver, ...] = DEFAULT_DRIVERS) -> None:
        self._drivers = {d.driver_id: d for d in drivers}

    def get(self, driver_id: str) -> DirectoryDriver | None:
        return self._drivers.get(driver_id)

    def available(self, vehicle_type: str | None = None) -> list[DirectoryDriver]:
        drivers = list(self._drivers.values())
        if vehicle_type:
            drivers = [d for d in drivers if d.vehicle_type == vehicle_type]
        return drivers


driver_directory = DriverDirectory()
