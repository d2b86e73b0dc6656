"""Persistence port for drivers and deliveries, with an in-process implementation."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from vango_dispatch.errors import DeliveryNotFound, DriverNotFound
from vango_dispatch.models.delivery import Delivery, DeliveryStatus
from vango_dispatch.models.driver import Driver, DriverFilter, DriverJobUpdate
from vango_dispatch.utils.logging import get_logger

logger = get_logger(__name__)


class Store(ABC):
    """
    Durable delivery and driver records.

    The lifecycle relies on ``conditional_update_delivery_status`` being
    atomic: the status check, the delivery write and the optional driver
    counter update either all happen or none do.
    """

    @abstractmethod
    async def get_drivers(self, driver_filter: DriverFilter | None = None) -> list[Driver]:
        """Load every driver passing the filter."""

    @abstractmethod
    async def get_driver(self, driver_id: str) -> Driver | None:
        """Load one driver."""

    @abstractmethod
    async def save_driver(self, driver: Driver) -> None:
        """Insert or replace a driver."""

    @abstractmethod
    async def update_driver(self, driver_id: str, **changes: Any) -> Driver:
        """Apply field changes to a driver and return the result."""

    @abstractmethod
    async def get_delivery(self, delivery_id: str) -> Delivery | None:
        """Load one delivery."""

    @abstractmethod
    async def create_delivery(self, delivery: Delivery) -> None:
        """Persist a new delivery."""

    @abstractmethod
    async def conditional_update_delivery_status(
        self,
        delivery_id: str,
        expected_status: DeliveryStatus,
        new_status: DeliveryStatus,
        patch: dict[str, Any] | None = None,
        driver_update: DriverJobUpdate | None = None,
    ) -> bool:
        """
        Move a delivery to ``new_status`` only if it is still ``expected_status``.

        Args:
            delivery_id: Delivery to update
            expected_status: Status the delivery must currently have
            new_status: Status to set
            patch: Extra delivery fields to set in the same write
            driver_update: Driver counters to change in the same write

        Returns:
            True if the update was applied, False if the status had changed
        """

    @abstractmethod
    async def update_driver_job_count(self, driver_id: str, delta: int) -> int:
        """Adjust a driver's active job count and return the new value."""

    @abstractmethod
    async def add_driver_rating(self, driver_id: str, rating: float) -> list[float]:
        """Record a rating for a driver and return all of their ratings."""

    @abstractmethod
    async def list_deliveries(
        self,
        customer_id: str | None = None,
        driver_id: str | None = None,
    ) -> list[Delivery]:
        """Deliveries for a customer and/or driver, newest first."""


def merge_driver_changes(driver: Driver, changes: dict[str, Any]) -> Driver:
    """Validated copy of a driver with field changes applied."""
    unknown = set(changes) - set(Driver.model_fields)
    if unknown:
        raise ValueError(f"Unknown driver fields: {sorted(unknown)}")
    return Driver.model_validate({**driver.model_dump(), **changes})


def newest_first(deliveries: list[Delivery]) -> list[Delivery]:
    return sorted(deliveries, key=lambda d: (d.created_at, d.id), reverse=True)


class InMemoryStore(Store):
    """Process-local store guarded by a single asyncio lock."""

    def __init__(self) -> None:
        self._drivers: dict[str, Driver] = {}
        self._deliveries: dict[str, Delivery] = {}
        self._ratings: dict[str, list[float]] = {}
        self._lock = asyncio.Lock()

    async def get_drivers(self, driver_filter: DriverFilter | None = None) -> list[Driver]:
        driver_filter = driver_filter or DriverFilter(verified_only=False)
        return [
            driver.model_copy(deep=True)
            for driver in self._drivers.values()
            if driver_filter.matches(driver)
        ]

    async def get_driver(self, driver_id: str) -> Driver | None:
        driver = self._drivers.get(driver_id)
        return driver.model_copy(deep=True) if driver else None

    async def save_driver(self, driver: Driver) -> None:
        async with self._lock:
            self._drivers[driver.id] = driver.model_copy(deep=True)

    async def update_driver(self, driver_id: str, **changes: Any) -> Driver:
        async with self._lock:
            driver = self._drivers.get(driver_id)
            if driver is None:
                raise DriverNotFound(driver_id)
            updated = merge_driver_changes(driver, changes)
            self._drivers[driver_id] = updated
            return updated.model_copy(deep=True)

    async def get_delivery(self, delivery_id: str) -> Delivery | None:
        delivery = self._deliveries.get(delivery_id)
        return delivery.model_copy(deep=True) if delivery else None

    async def create_delivery(self, delivery: Delivery) -> None:
        async with self._lock:
            if delivery.id in self._deliveries:
                raise ValueError(f"Delivery {delivery.id} already exists")
            self._deliveries[delivery.id] = delivery.model_copy(deep=True)

    async def conditional_update_delivery_status(
        self,
        delivery_id: str,
        expected_status: DeliveryStatus,
        new_status: DeliveryStatus,
        patch: dict[str, Any] | None = None,
        driver_update: DriverJobUpdate | None = None,
    ) -> bool:
        async with self._lock:
            delivery = self._deliveries.get(delivery_id)
            if delivery is None:
                raise DeliveryNotFound(delivery_id)

            if delivery.status != expected_status:
                logger.debug(
                    "conditional_update_skipped",
                    delivery_id=delivery_id,
                    expected=expected_status.value,
                    actual=delivery.status.value,
                )
                return False

            updated_driver = None
            if driver_update is not None:
                driver = self._drivers.get(driver_update.driver_id)
                if driver is None:
                    raise DriverNotFound(driver_update.driver_id)
                updated_driver = driver_update.apply(driver)

            self._deliveries[delivery_id] = delivery.model_copy(
                update={**(patch or {}), "status": new_status}
            )
            if updated_driver is not None:
                self._drivers[updated_driver.id] = updated_driver
            return True

    async def update_driver_job_count(self, driver_id: str, delta: int) -> int:
        async with self._lock:
            driver = self._drivers.get(driver_id)
            if driver is None:
                raise DriverNotFound(driver_id)
            updated = DriverJobUpdate(driver_id=driver_id, jobs_delta=delta).apply(driver)
            self._drivers[driver_id] = updated
            return updated.current_jobs

    async def add_driver_rating(self, driver_id: str, rating: float) -> list[float]:
        async with self._lock:
            ratings = self._ratings.setdefault(driver_id, [])
            ratings.append(rating)
            return list(ratings)

    async def list_deliveries(
        self,
        customer_id: str | None = None,
        driver_id: str | None = None,
    ) -> list[Delivery]:
        matches = [
            delivery.model_copy(deep=True)
            for delivery in self._deliveries.values()
            if (customer_id is None or delivery.customer_id == customer_id)
            and (driver_id is None or delivery.driver_id == driver_id)
        ]
        return newest_first(matches)
