"""Seed a driver pool around Johannesburg for local development."""

import asyncio

from vango_dispatch.models.driver import Driver, DriverStatus, MaterialType, VehicleType
from vango_dispatch.models.geo import Coordinate
from vango_dispatch.state.redis_store import RedisStore


async def seed_drivers() -> None:
    """Seed driver pool."""
    print("Seeding drivers...")

    store = RedisStore()
    await store.connect()

    drivers = [
        Driver(
            name="Sipho Dlamini",
            phone="+27821234567",
            status=DriverStatus.AVAILABLE,
            location=Coordinate(latitude=-26.2041, longitude=28.0473),
            vehicle_type=VehicleType.ISUZU_TRUCK.value,
            rating=4.9,
            experience_years=8,
            completed_deliveries=640,
            specializations={MaterialType.BRICKS, MaterialType.CEMENT},
        ),
        Driver(
            name="Thandi Nkosi",
            phone="+27829876543",
            status=DriverStatus.AVAILABLE,
            location=Coordinate(latitude=-26.1952, longitude=28.0340),
            vehicle_type=VehicleType.TOYOTA_HILUX.value,
            rating=4.7,
            experience_years=3,
            completed_deliveries=120,
        ),
        Driver(
            name="Pieter van Wyk",
            phone="+27825550101",
            status=DriverStatus.AVAILABLE,
            location=Coordinate(latitude=-26.1076, longitude=28.0567),
            vehicle_type=VehicleType.MERCEDES_SPRINTER.value,
            rating=4.6,
            experience_years=5,
            completed_deliveries=310,
            specializations={MaterialType.TIMBER},
        ),
        Driver(
            name="Lerato Mokoena",
            phone="+27825550202",
            status=DriverStatus.AVAILABLE,
            location=Coordinate(latitude=-26.2708, longitude=27.8585),
            vehicle_type=VehicleType.NISSAN_NP200.value,
            rating=4.8,
            experience_years=1,
            completed_deliveries=40,
            specializations={MaterialType.TOOLS},
        ),
        Driver(
            name="Johan Botha",
            phone="+27825550303",
            status=DriverStatus.OFFLINE,
            vehicle_type=VehicleType.FORD_RANGER.value,
            rating=4.4,
            experience_years=12,
            completed_deliveries=980,
        ),
    ]

    for driver in drivers:
        await store.save_driver(driver)
        print(f"  ✓ Added {driver.name} ({driver.vehicle_type}, rating: {driver.rating})")

    await store.disconnect()
    print("✓ Drivers seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Vango Dispatch Data")
    print("=" * 50 + "\n")

    await seed_drivers()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
