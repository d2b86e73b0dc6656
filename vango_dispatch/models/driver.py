"""Driver models."""

from enum import Enum
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, Field

from vango_dispatch.models.geo import Coordinate


class DriverStatus(str, Enum):
    """Driver availability states."""

    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


class VehicleType(str, Enum):
    """Vehicles with a known capacity profile."""

    TOYOTA_HILUX = "Toyota Hilux"
    ISUZU_TRUCK = "Isuzu Truck"
    FORD_RANGER = "Ford Ranger"
    NISSAN_NP200 = "Nissan NP200"
    MERCEDES_SPRINTER = "Mercedes Sprinter"


class MaterialType(str, Enum):
    """Kinds of load a customer can ship."""

    CEMENT = "cement"
    BRICKS = "bricks"
    TIMBER = "timber"
    METAL = "metal"
    TOOLS = "tools"
    OTHER = "other"


class Driver(BaseModel):
    """Delivery driver profile."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = ""
    phone: str | None = None
    rating: float = Field(default=5.0, ge=0, le=5)
    # Free text so unregistered vehicles can still be scored
    vehicle_type: str = VehicleType.TOYOTA_HILUX.value
    status: DriverStatus = DriverStatus.OFFLINE
    is_verified: bool = True
    current_jobs: int = Field(default=0, ge=0)
    experience_years: int = Field(default=0, ge=0)
    completed_deliveries: int = Field(default=0, ge=0)
    specializations: set[MaterialType] = Field(default_factory=set)
    last_delivery_time: AwareDatetime | None = None
    location: Coordinate | None = None


class DriverFilter(BaseModel):
    """Selection applied when loading a driver pool."""

    status: DriverStatus | None = None
    verified_only: bool = True
    with_location: bool = False

    def matches(self, driver: Driver) -> bool:
        """Check whether a driver passes this filter."""
        if self.status is not None and driver.status != self.status:
            return False
        if self.verified_only and not driver.is_verified:
            return False
        if self.with_location and driver.location is None:
            return False
        return True


class DriverJobUpdate(BaseModel):
    """Counter changes applied to a driver together with a delivery transition."""

    driver_id: str
    jobs_delta: int = 0
    completed_delta: int = 0
    last_delivery_time: AwareDatetime | None = None

    def apply(self, driver: Driver) -> Driver:
        """Return a copy of the driver with this update applied."""
        changes: dict = {
            "current_jobs": max(0, driver.current_jobs + self.jobs_delta),
            "completed_deliveries": driver.completed_deliveries + self.completed_delta,
        }
        if self.last_delivery_time is not None:
            changes["last_delivery_time"] = self.last_delivery_time
        return driver.model_copy(update=changes)
