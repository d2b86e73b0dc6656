"""Tests for the Redis-backed store."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import fakeredis
import pytest
import pytest_asyncio

from vango_dispatch.errors import DeliveryAlreadyAssigned, DeliveryNotFound, DriverNotFound
from vango_dispatch.gateways.billing import RedisBillingSink
from vango_dispatch.gateways.notifications import InMemoryNotificationGateway
from vango_dispatch.gateways.realtime import InMemoryRealtimePublisher
from vango_dispatch.lifecycle.manager import DeliveryLifecycle
from vango_dispatch.lifecycle.payout import PayoutCalculator
from vango_dispatch.matching.engine import MatchingEngine
from vango_dispatch.models.delivery import (
    Delivery,
    DeliveryStatus,
    ItemSize,
    ItemWeight,
    PaymentMethod,
    TransitionResult,
)
from vango_dispatch.models.driver import DriverFilter, DriverJobUpdate, DriverStatus, MaterialType
from vango_dispatch.models.payout import PayoutRecord
from vango_dispatch.state.redis_store import RedisStore

from helpers import FIXED_NOW, PICKUP, fixed_clock, make_driver, north_of


@pytest_asyncio.fixture
async def redis_store() -> AsyncGenerator[RedisStore, None]:
    """Create a store on an in-process fake Redis."""
    store = RedisStore(client=fakeredis.FakeAsyncRedis(decode_responses=True))
    yield store
    await store.flush()
    await store.disconnect()


def make_delivery(delivery_id: str, customer_id: str = "customer-1", **overrides) -> Delivery:
    fields = {
        "id": delivery_id,
        "customer_id": customer_id,
        "pickup_address": "Builders Warehouse",
        "delivery_address": "12 Site Road",
        "pickup_location": PICKUP,
        "delivery_location": north_of(PICKUP, 4.0),
        "distance_km": 4.0,
        "item_description": "Bricks",
        "item_size": ItemSize.LARGE,
        "item_weight": ItemWeight.HEAVY,
        "material_type": MaterialType.BRICKS,
        "delivery_fee": Decimal("197.00"),
        "payment_method": PaymentMethod.EFT,
        "created_at": FIXED_NOW,
        "updated_at": FIXED_NOW,
    }
    fields.update(overrides)
    return Delivery(**fields)


# Drivers


@pytest.mark.asyncio
async def test_driver_round_trip(redis_store: RedisStore) -> None:
    """Test that a saved driver reads back unchanged."""
    driver = make_driver("driver-1", specializations={MaterialType.CEMENT})

    await redis_store.save_driver(driver)

    assert await redis_store.get_driver("driver-1") == driver
    assert await redis_store.get_driver("missing") is None


@pytest.mark.asyncio
async def test_get_drivers_with_filter(redis_store: RedisStore) -> None:
    await redis_store.save_driver(make_driver("driver-1"))
    await redis_store.save_driver(make_driver("driver-2", status=DriverStatus.OFFLINE))
    await redis_store.save_driver(make_driver("driver-3", is_verified=False))

    everyone = await redis_store.get_drivers()
    available = await redis_store.get_drivers(DriverFilter(status=DriverStatus.AVAILABLE))

    assert [d.id for d in everyone] == ["driver-1", "driver-2", "driver-3"]
    assert [d.id for d in available] == ["driver-1"]


@pytest.mark.asyncio
async def test_update_driver(redis_store: RedisStore) -> None:
    await redis_store.save_driver(make_driver("driver-1"))

    updated = await redis_store.update_driver("driver-1", status=DriverStatus.BUSY, rating=4.2)

    assert updated.status == DriverStatus.BUSY
    assert (await redis_store.get_driver("driver-1")).rating == 4.2

    with pytest.raises(DriverNotFound):
        await redis_store.update_driver("missing", rating=1.0)
    with pytest.raises(ValueError):
        await redis_store.update_driver("driver-1", favourite_colour="red")


@pytest.mark.asyncio
async def test_job_count_never_negative(redis_store: RedisStore) -> None:
    await redis_store.save_driver(make_driver("driver-1"))

    assert await redis_store.update_driver_job_count("driver-1", 2) == 2
    assert await redis_store.update_driver_job_count("driver-1", -5) == 0


@pytest.mark.asyncio
async def test_ratings_accumulate(redis_store: RedisStore) -> None:
    assert await redis_store.add_driver_rating("driver-1", 5) == [5.0]
    assert await redis_store.add_driver_rating("driver-1", 3) == [5.0, 3.0]


# Deliveries


@pytest.mark.asyncio
async def test_delivery_round_trip(redis_store: RedisStore) -> None:
    delivery = make_delivery("delivery-1")

    await redis_store.create_delivery(delivery)

    assert await redis_store.get_delivery("delivery-1") == delivery
    with pytest.raises(ValueError):
        await redis_store.create_delivery(delivery)


@pytest.mark.asyncio
async def test_conditional_update_applies_patch_and_driver_update(redis_store: RedisStore) -> None:
    """Test that status, patch and driver counters change together."""
    await redis_store.save_driver(make_driver("driver-1"))
    await redis_store.create_delivery(make_delivery("delivery-1"))

    applied = await redis_store.conditional_update_delivery_status(
        "delivery-1",
        expected_status=DeliveryStatus.PENDING,
        new_status=DeliveryStatus.ACCEPTED,
        patch={"driver_id": "driver-1", "accepted_at": FIXED_NOW},
        driver_update=DriverJobUpdate(driver_id="driver-1", jobs_delta=1),
    )

    assert applied is True
    stored = await redis_store.get_delivery("delivery-1")
    assert stored.status == DeliveryStatus.ACCEPTED
    assert stored.driver_id == "driver-1"
    assert stored.accepted_at == FIXED_NOW
    assert (await redis_store.get_driver("driver-1")).current_jobs == 1
    assert [d.id for d in await redis_store.list_deliveries(driver_id="driver-1")] == [
        "delivery-1"
    ]


@pytest.mark.asyncio
async def test_conditional_update_rejects_stale_status(redis_store: RedisStore) -> None:
    """Test that nothing is written when the expected status no longer holds."""
    await redis_store.save_driver(make_driver("driver-1"))
    await redis_store.create_delivery(make_delivery("delivery-1", status=DeliveryStatus.CANCELLED))

    applied = await redis_store.conditional_update_delivery_status(
        "delivery-1",
        expected_status=DeliveryStatus.PENDING,
        new_status=DeliveryStatus.ACCEPTED,
        patch={"driver_id": "driver-1"},
        driver_update=DriverJobUpdate(driver_id="driver-1", jobs_delta=1),
    )

    assert applied is False
    assert (await redis_store.get_delivery("delivery-1")).status == DeliveryStatus.CANCELLED
    assert (await redis_store.get_driver("driver-1")).current_jobs == 0


@pytest.mark.asyncio
async def test_conditional_update_missing_records(redis_store: RedisStore) -> None:
    with pytest.raises(DeliveryNotFound):
        await redis_store.conditional_update_delivery_status(
            "missing", DeliveryStatus.PENDING, DeliveryStatus.ACCEPTED
        )

    await redis_store.create_delivery(make_delivery("delivery-1"))
    with pytest.raises(DriverNotFound):
        await redis_store.conditional_update_delivery_status(
            "delivery-1",
            DeliveryStatus.PENDING,
            DeliveryStatus.ACCEPTED,
            driver_update=DriverJobUpdate(driver_id="ghost", jobs_delta=1),
        )
    assert (await redis_store.get_delivery("delivery-1")).status == DeliveryStatus.PENDING


@pytest.mark.asyncio
async def test_list_deliveries_newest_first(redis_store: RedisStore) -> None:
    await redis_store.create_delivery(make_delivery("old", created_at=FIXED_NOW - timedelta(days=1)))
    await redis_store.create_delivery(make_delivery("new"))
    await redis_store.create_delivery(make_delivery("other", customer_id="customer-2"))

    mine = await redis_store.list_deliveries(customer_id="customer-1")

    assert [d.id for d in mine] == ["new", "old"]
    assert await redis_store.list_deliveries(customer_id="nobody") == []


# Integration


@pytest.mark.asyncio
async def test_lifecycle_on_redis(redis_store: RedisStore, matching: MatchingEngine, sample_request) -> None:
    """Test a full delivery against the Redis store and payout queue."""
    await redis_store.save_driver(make_driver("driver-1"))
    client = redis_store.redis_client
    lifecycle = DeliveryLifecycle(
        store=redis_store,
        matching=matching,
        notifications=InMemoryNotificationGateway(),
        realtime=InMemoryRealtimePublisher(),
        billing=RedisBillingSink(client),
        payout_calculator=PayoutCalculator(clock=fixed_clock),
        clock=fixed_clock,
    )

    delivery = await lifecycle.create(sample_request)
    assert delivery.offered_driver_ids == ["driver-1"]

    await lifecycle.accept(delivery.id, "driver-1")
    await lifecycle.pickup(delivery.id, "driver-1")
    await lifecycle.transit(delivery.id, "driver-1")
    result = await lifecycle.deliver(delivery.id, "driver-1")

    assert result.delivery.status == DeliveryStatus.DELIVERED
    driver = await redis_store.get_driver("driver-1")
    assert driver.current_jobs == 0
    assert driver.completed_deliveries == 11

    queued = await client.lrange("payouts:pending", 0, -1)
    assert [PayoutRecord.model_validate_json(raw) for raw in queued] == [result.payout]


@pytest.mark.asyncio
async def test_simultaneous_accepts_on_redis(
    redis_store: RedisStore, matching: MatchingEngine, sample_request
) -> None:
    """Test that only one of many simultaneous accepts claims the delivery."""
    driver_ids = [f"driver-{n}" for n in range(8)]
    for driver_id in driver_ids:
        await redis_store.save_driver(make_driver(driver_id))
    lifecycle = DeliveryLifecycle(
        store=redis_store,
        matching=matching,
        notifications=InMemoryNotificationGateway(),
        realtime=InMemoryRealtimePublisher(),
        billing=RedisBillingSink(redis_store.redis_client),
        payout_calculator=PayoutCalculator(clock=fixed_clock),
        clock=fixed_clock,
    )
    delivery = await lifecycle.create(sample_request)

    results = await asyncio.gather(
        *(lifecycle.accept(delivery.id, driver_id) for driver_id in driver_ids),
        return_exceptions=True,
    )

    wins = [r for r in results if isinstance(r, TransitionResult)]
    losses = [r for r in results if isinstance(r, DeliveryAlreadyAssigned)]
    assert len(wins) == 1
    assert len(losses) == len(driver_ids) - 1

    stored = await redis_store.get_delivery(delivery.id)
    assert stored.status == DeliveryStatus.ACCEPTED
    assert stored.driver_id == wins[0].delivery.driver_id

    drivers = await redis_store.get_drivers()
    assert sum(driver.current_jobs for driver in drivers) == 1


@pytest.mark.asyncio
async def test_simultaneous_conditional_updates_on_redis(redis_store: RedisStore) -> None:
    """Test that racing compare-and-set calls on one delivery succeed exactly once."""
    await redis_store.create_delivery(make_delivery("delivery-1"))
    for n in range(8):
        await redis_store.save_driver(make_driver(f"driver-{n}"))

    outcomes = await asyncio.gather(
        *(
            redis_store.conditional_update_delivery_status(
                "delivery-1",
                expected_status=DeliveryStatus.PENDING,
                new_status=DeliveryStatus.ACCEPTED,
                patch={"driver_id": f"driver-{n}"},
                driver_update=DriverJobUpdate(driver_id=f"driver-{n}", jobs_delta=1),
            )
            for n in range(8)
        )
    )

    assert outcomes.count(True) == 1
    winner = f"driver-{outcomes.index(True)}"
    assert (await redis_store.get_delivery("delivery-1")).driver_id == winner
    for n in range(8):
        expected = 1 if f"driver-{n}" == winner else 0
        assert (await redis_store.get_driver(f"driver-{n}")).current_jobs == expected
