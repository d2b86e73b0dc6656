"""Shared test data builders."""

import math
from datetime import datetime, timedelta, timezone

from vango_dispatch.matching.geo import EARTH_RADIUS_KM
from vango_dispatch.models.driver import Driver, DriverStatus, VehicleType
from vango_dispatch.models.geo import Coordinate

FIXED_NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

# Johannesburg CBD
PICKUP = Coordinate(latitude=-26.2041, longitude=28.0473)

KM_PER_DEGREE_LATITUDE = EARTH_RADIUS_KM * math.pi / 180


def north_of(origin: Coordinate, km: float) -> Coordinate:
    """Point ``km`` kilometres due north of ``origin``."""
    return Coordinate(
        latitude=origin.latitude + km / KM_PER_DEGREE_LATITUDE,
        longitude=origin.longitude,
    )


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_driver(driver_id: str, km_away: float | None = 5.0, **overrides) -> Driver:
    """Available, verified Hilux driver ``km_away`` north of the pickup."""
    fields = {
        "id": driver_id,
        "name": f"Driver {driver_id}",
        "phone": "+27820000000",
        "rating": 4.5,
        "vehicle_type": VehicleType.TOYOTA_HILUX.value,
        "status": DriverStatus.AVAILABLE,
        "experience_years": 2,
        "completed_deliveries": 10,
        "last_delivery_time": FIXED_NOW - timedelta(hours=5),
        "location": north_of(PICKUP, km_away) if km_away is not None else None,
    }
    fields.update(overrides)
    return Driver(**fields)
