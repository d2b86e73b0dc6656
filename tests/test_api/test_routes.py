"""Tests for the HTTP routes."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from vango_dispatch.models.driver import DriverStatus
from vango_dispatch.state.store import InMemoryStore

from helpers import PICKUP, make_driver, north_of

API = "/api/v1"


def delivery_body(**overrides) -> dict:
    body = {
        "customer_id": "customer-1",
        "pickup_address": "Builders Warehouse",
        "delivery_address": "12 Site Road",
        "pickup_location": PICKUP.model_dump(),
        "delivery_location": north_of(PICKUP, 10.0).model_dump(),
        "item_description": "20 bags of cement",
        "item_size": "medium",
        "item_weight": "medium",
        "material_type": "cement",
        "weight_kg": 500,
    }
    body.update(overrides)
    return body


async def create_delivery(client: AsyncClient) -> dict:
    response = await client.post(f"{API}/deliveries", json=delivery_body())
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_and_get_delivery(
    test_client: AsyncClient, seeded_store: InMemoryStore
) -> None:
    """Test creating a delivery and reading it back."""
    created = await create_delivery(test_client)

    assert created["status"] == "pending"
    assert Decimal(created["delivery_fee"]) == Decimal("203.00")
    assert created["offered_driver_ids"] == ["driver-a", "driver-b", "driver-c"]

    response = await test_client.get(f"{API}/deliveries/{created['id']}")

    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_get_unknown_delivery(test_client: AsyncClient) -> None:
    response = await test_client.get(f"{API}/deliveries/missing")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invalid_request_body(test_client: AsyncClient) -> None:
    body = delivery_body(pickup_location={"latitude": 123, "longitude": 0})

    response = await test_client.post(f"{API}/deliveries", json=body)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_accept_race_loser_gets_conflict(
    test_client: AsyncClient, seeded_store: InMemoryStore
) -> None:
    """Test that the second driver is told the delivery is gone."""
    created = await create_delivery(test_client)
    url = f"{API}/deliveries/{created['id']}/accept"

    first = await test_client.post(url, json={"driver_id": "driver-a"})
    second = await test_client.post(url, json={"driver_id": "driver-b"})

    assert first.status_code == 200
    assert first.json()["delivery"]["status"] == "accepted"
    assert second.status_code == 409
    assert "no longer available" in second.json()["detail"]


@pytest.mark.asyncio
async def test_transitions_through_delivery(
    test_client: AsyncClient, seeded_store: InMemoryStore
) -> None:
    """Test driving a delivery to completion over HTTP."""
    created = await create_delivery(test_client)
    delivery_url = f"{API}/deliveries/{created['id']}"
    await test_client.post(f"{delivery_url}/accept", json={"driver_id": "driver-a"})

    for action in ("pickup", "transit"):
        response = await test_client.post(
            f"{delivery_url}/transitions", json={"action": action, "actor_id": "driver-a"}
        )
        assert response.status_code == 200

    response = await test_client.post(
        f"{delivery_url}/transitions", json={"action": "deliver", "actor_id": "driver-a"}
    )
    assert response.status_code == 200
    assert Decimal(response.json()["payout"]["amount"]) == Decimal("121.80")

    response = await test_client.post(
        f"{delivery_url}/transitions",
        json={"action": "rate", "actor_id": "customer-1", "rating": 5},
    )
    assert response.status_code == 200
    assert response.json()["delivery"]["status"] == "rated"


@pytest.mark.asyncio
async def test_transition_errors(test_client: AsyncClient, seeded_store: InMemoryStore) -> None:
    """Test the status codes for refused transitions."""
    created = await create_delivery(test_client)
    url = f"{API}/deliveries/{created['id']}/transitions"

    illegal = await test_client.post(url, json={"action": "deliver", "actor_id": "driver-a"})
    assert illegal.status_code == 409

    await test_client.post(
        f"{API}/deliveries/{created['id']}/accept", json={"driver_id": "driver-a"}
    )

    wrong_driver = await test_client.post(url, json={"action": "pickup", "actor_id": "driver-b"})
    assert wrong_driver.status_code == 403

    unknown_action = await test_client.post(url, json={"action": "teleport", "actor_id": "x"})
    assert unknown_action.status_code == 422


@pytest.mark.asyncio
async def test_rank_drivers(test_client: AsyncClient, seeded_store: InMemoryStore) -> None:
    criteria = {
        "customer_location": PICKUP.model_dump(),
        "delivery_location": north_of(PICKUP, 10.0).model_dump(),
        "material_type": "cement",
        "weight_kg": 500,
        "max_distance_km": 6,
    }

    response = await test_client.post(f"{API}/matching/rank?limit=1", json=criteria)

    assert response.status_code == 200
    matches = response.json()
    assert [m["driver_id"] for m in matches] == ["driver-a"]
    assert 0 <= matches[0]["score"] <= 1


@pytest.mark.asyncio
async def test_update_availability(test_client: AsyncClient, store: InMemoryStore) -> None:
    await store.save_driver(make_driver("driver-1", status=DriverStatus.OFFLINE))

    response = await test_client.post(
        f"{API}/drivers/driver-1/availability",
        json={"status": "available", "location": PICKUP.model_dump()},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "available"

    missing = await test_client.post(
        f"{API}/drivers/ghost/availability", json={"status": "available"}
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_list_deliveries(test_client: AsyncClient, seeded_store: InMemoryStore) -> None:
    created = await create_delivery(test_client)
    await test_client.post(
        f"{API}/deliveries/{created['id']}/accept", json={"driver_id": "driver-b"}
    )

    customer = await test_client.get(f"{API}/customers/customer-1/deliveries")
    driver = await test_client.get(f"{API}/drivers/driver-b/deliveries")

    assert [d["id"] for d in customer.json()] == [created["id"]]
    assert [d["id"] for d in driver.json()] == [created["id"]]
