"""Pytest configuration and fixtures."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from vango_dispatch.api.routes import get_delivery_service
from vango_dispatch.gateways.billing import InMemoryBillingSink
from vango_dispatch.gateways.notifications import InMemoryNotificationGateway
from vango_dispatch.gateways.realtime import InMemoryRealtimePublisher
from vango_dispatch.lifecycle.manager import DeliveryLifecycle
from vango_dispatch.lifecycle.payout import PayoutCalculator
from vango_dispatch.main import app
from vango_dispatch.matching.engine import MatchingEngine
from vango_dispatch.matching.scoring import ScoringEngine
from vango_dispatch.models.delivery import DeliveryRequest, ItemSize, ItemWeight
from vango_dispatch.models.driver import Driver, MaterialType, VehicleType
from vango_dispatch.service import DeliveryService
from vango_dispatch.state.store import InMemoryStore

from helpers import PICKUP, fixed_clock, make_driver, north_of


# Core fixtures


@pytest.fixture
def store() -> InMemoryStore:
    """Create an empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def notifications() -> InMemoryNotificationGateway:
    return InMemoryNotificationGateway()


@pytest.fixture
def realtime() -> InMemoryRealtimePublisher:
    return InMemoryRealtimePublisher()


@pytest.fixture
def billing() -> InMemoryBillingSink:
    return InMemoryBillingSink()


@pytest.fixture
def scoring() -> ScoringEngine:
    """Scoring engine with default tuning and a frozen clock."""
    return ScoringEngine(clock=fixed_clock)


@pytest.fixture
def matching(scoring: ScoringEngine) -> MatchingEngine:
    return MatchingEngine(scoring)


@pytest.fixture
def lifecycle(
    store: InMemoryStore,
    matching: MatchingEngine,
    notifications: InMemoryNotificationGateway,
    realtime: InMemoryRealtimePublisher,
    billing: InMemoryBillingSink,
) -> DeliveryLifecycle:
    """Create a lifecycle manager wired to in-memory adapters."""
    return DeliveryLifecycle(
        store=store,
        matching=matching,
        notifications=notifications,
        realtime=realtime,
        billing=billing,
        payout_calculator=PayoutCalculator(clock=fixed_clock),
        clock=fixed_clock,
    )


@pytest.fixture
def service(
    store: InMemoryStore,
    matching: MatchingEngine,
    lifecycle: DeliveryLifecycle,
) -> DeliveryService:
    return DeliveryService(store, matching, lifecycle)


@pytest_asyncio.fixture
async def test_client(service: DeliveryService) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by the in-memory service."""
    app.dependency_overrides[get_delivery_service] = lambda: service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# Sample data fixtures


@pytest.fixture
def sample_drivers() -> list[Driver]:
    """Three available drivers at 2, 5 and 12 km from the pickup."""
    return [
        make_driver("driver-a", km_away=2.0, vehicle_type=VehicleType.ISUZU_TRUCK.value),
        make_driver("driver-b", km_away=5.0),
        make_driver("driver-c", km_away=12.0, rating=3.5),
    ]


@pytest_asyncio.fixture
async def seeded_store(store: InMemoryStore, sample_drivers: list[Driver]) -> InMemoryStore:
    """Store with the sample drivers saved."""
    for driver in sample_drivers:
        await store.save_driver(driver)
    return store


@pytest.fixture
def sample_request() -> DeliveryRequest:
    """Cement delivery over 10 km."""
    return DeliveryRequest(
        customer_id="customer-1",
        pickup_address="Builders Warehouse, Johannesburg",
        delivery_address="12 Site Road, Randburg",
        pickup_location=PICKUP,
        delivery_location=north_of(PICKUP, 10.0),
        item_description="20 bags of cement",
        item_size=ItemSize.MEDIUM,
        item_weight=ItemWeight.MEDIUM,
        material_type=MaterialType.CEMENT,
        weight_kg=500,
    )
