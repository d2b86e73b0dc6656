"""Redis-backed store for drivers and deliveries."""

from typing import Any

import redis.asyncio as redis
from redis.exceptions import WatchError

from vango_dispatch.config import get_settings
from vango_dispatch.errors import DeliveryNotFound, DriverNotFound, StoreConflictError
from vango_dispatch.models.delivery import Delivery, DeliveryStatus
from vango_dispatch.models.driver import Driver, DriverFilter, DriverJobUpdate
from vango_dispatch.state.store import Store, merge_driver_changes, newest_first
from vango_dispatch.utils.logging import get_logger

logger = get_logger(__name__)

DRIVERS_KEY = "drivers"
DELIVERIES_KEY = "deliveries"


class RedisStore(Store):
    """
    Store that keeps each record as a JSON string.

    Conditional updates use optimistic locking: the delivery key (and the
    driver key when counters change) are WATCHed, checked, and rewritten in
    a MULTI/EXEC block. A concurrent write aborts the block and the check is
    repeated against fresh data.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        client: redis.Redis | None = None,
        max_retries: int = 10,
    ) -> None:
        self.redis_url = redis_url or get_settings().redis_url
        self.redis_client: redis.Redis | None = client
        self.max_retries = max_retries

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def _client(self) -> redis.Redis:
        if not self.redis_client:
            await self.connect()
        return self.redis_client

    @staticmethod
    def _driver_key(driver_id: str) -> str:
        return f"driver:{driver_id}"

    @staticmethod
    def _delivery_key(delivery_id: str) -> str:
        return f"delivery:{delivery_id}"

    @staticmethod
    def _customer_index_key(customer_id: str) -> str:
        return f"customer:{customer_id}:deliveries"

    @staticmethod
    def _driver_index_key(driver_id: str) -> str:
        return f"driver:{driver_id}:deliveries"

    @staticmethod
    def _ratings_key(driver_id: str) -> str:
        return f"driver:{driver_id}:ratings"

    # Drivers

    async def get_drivers(self, driver_filter: DriverFilter | None = None) -> list[Driver]:
        client = await self._client()
        driver_ids = sorted(await client.smembers(DRIVERS_KEY))
        if not driver_ids:
            return []

        raw_drivers = await client.mget([self._driver_key(i) for i in driver_ids])
        drivers = [Driver.model_validate_json(raw) for raw in raw_drivers if raw]

        if driver_filter is None:
            return drivers
        return [driver for driver in drivers if driver_filter.matches(driver)]

    async def get_driver(self, driver_id: str) -> Driver | None:
        client = await self._client()
        raw = await client.get(self._driver_key(driver_id))
        return Driver.model_validate_json(raw) if raw else None

    async def save_driver(self, driver: Driver) -> None:
        client = await self._client()
        async with client.pipeline(transaction=True) as pipe:
            pipe.set(self._driver_key(driver.id), driver.model_dump_json())
            pipe.sadd(DRIVERS_KEY, driver.id)
            await pipe.execute()
        logger.debug("driver_saved", driver_id=driver.id)

    async def update_driver(self, driver_id: str, **changes: Any) -> Driver:
        return await self._rewrite_driver(
            driver_id, lambda driver: merge_driver_changes(driver, changes)
        )

    async def update_driver_job_count(self, driver_id: str, delta: int) -> int:
        job_update = DriverJobUpdate(driver_id=driver_id, jobs_delta=delta)
        driver = await self._rewrite_driver(driver_id, job_update.apply)
        return driver.current_jobs

    async def _rewrite_driver(self, driver_id: str, change) -> Driver:
        client = await self._client()
        key = self._driver_key(driver_id)

        for _ in range(self.max_retries):
            async with client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        raise DriverNotFound(driver_id)

                    updated = change(Driver.model_validate_json(raw))

                    pipe.multi()
                    pipe.set(key, updated.model_dump_json())
                    await pipe.execute()
                    return updated
                except WatchError:
                    logger.debug("driver_update_retry", driver_id=driver_id)

        raise StoreConflictError(f"Driver {driver_id} kept changing during update")

    async def add_driver_rating(self, driver_id: str, rating: float) -> list[float]:
        client = await self._client()
        key = self._ratings_key(driver_id)
        async with client.pipeline(transaction=True) as pipe:
            pipe.rpush(key, rating)
            pipe.lrange(key, 0, -1)
            _, ratings = await pipe.execute()
        return [float(value) for value in ratings]

    # Deliveries

    async def get_delivery(self, delivery_id: str) -> Delivery | None:
        client = await self._client()
        raw = await client.get(self._delivery_key(delivery_id))
        return Delivery.model_validate_json(raw) if raw else None

    async def create_delivery(self, delivery: Delivery) -> None:
        client = await self._client()
        created = await client.set(
            self._delivery_key(delivery.id), delivery.model_dump_json(), nx=True
        )
        if not created:
            raise ValueError(f"Delivery {delivery.id} already exists")

        async with client.pipeline(transaction=True) as pipe:
            pipe.sadd(DELIVERIES_KEY, delivery.id)
            pipe.sadd(self._customer_index_key(delivery.customer_id), delivery.id)
            if delivery.driver_id:
                pipe.sadd(self._driver_index_key(delivery.driver_id), delivery.id)
            await pipe.execute()

        logger.debug("delivery_created", delivery_id=delivery.id)

    async def conditional_update_delivery_status(
        self,
        delivery_id: str,
        expected_status: DeliveryStatus,
        new_status: DeliveryStatus,
        patch: dict[str, Any] | None = None,
        driver_update: DriverJobUpdate | None = None,
    ) -> bool:
        client = await self._client()
        delivery_key = self._delivery_key(delivery_id)
        watched = [delivery_key]
        if driver_update is not None:
            watched.append(self._driver_key(driver_update.driver_id))

        for _ in range(self.max_retries):
            async with client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(*watched)

                    raw = await pipe.get(delivery_key)
                    if raw is None:
                        raise DeliveryNotFound(delivery_id)

                    delivery = Delivery.model_validate_json(raw)
                    if delivery.status != expected_status:
                        return False

                    updated = delivery.model_copy(
                        update={**(patch or {}), "status": new_status}
                    )

                    updated_driver = None
                    if driver_update is not None:
                        raw_driver = await pipe.get(self._driver_key(driver_update.driver_id))
                        if raw_driver is None:
                            raise DriverNotFound(driver_update.driver_id)
                        updated_driver = driver_update.apply(
                            Driver.model_validate_json(raw_driver)
                        )

                    pipe.multi()
                    pipe.set(delivery_key, updated.model_dump_json())
                    if updated_driver is not None:
                        pipe.set(
                            self._driver_key(updated_driver.id),
                            updated_driver.model_dump_json(),
                        )
                    if updated.driver_id and updated.driver_id != delivery.driver_id:
                        pipe.sadd(self._driver_index_key(updated.driver_id), delivery_id)
                    await pipe.execute()
                    return True
                except WatchError:
                    logger.debug("delivery_update_retry", delivery_id=delivery_id)

        raise StoreConflictError(f"Delivery {delivery_id} kept changing during update")

    async def list_deliveries(
        self,
        customer_id: str | None = None,
        driver_id: str | None = None,
    ) -> list[Delivery]:
        client = await self._client()

        if customer_id is not None and driver_id is not None:
            ids = await client.sinter(
                [self._customer_index_key(customer_id), self._driver_index_key(driver_id)]
            )
        elif customer_id is not None:
            ids = await client.smembers(self._customer_index_key(customer_id))
        elif driver_id is not None:
            ids = await client.smembers(self._driver_index_key(driver_id))
        else:
            ids = await client.smembers(DELIVERIES_KEY)

        if not ids:
            return []

        raw_deliveries = await client.mget([self._delivery_key(i) for i in ids])
        return newest_first(
            [Delivery.model_validate_json(raw) for raw in raw_deliveries if raw]
        )

    async def flush(self) -> None:
        """Delete every key in the current database."""
        client = await self._client()
        await client.flushdb()
        logger.warning("redis_flushed", url=self.redis_url)
