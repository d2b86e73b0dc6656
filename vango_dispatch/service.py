"""Public entry points of the dispatch core."""

from typing import Any, Sequence

import pydantic

from vango_dispatch.clock import Clock, utc_now
from vango_dispatch.config import Settings, get_settings
from vango_dispatch.errors import DriverNotFound, RequestValidationError
from vango_dispatch.gateways.billing import InMemoryBillingSink, RedisBillingSink
from vango_dispatch.gateways.notifications import (
    InMemoryNotificationGateway,
    RedisNotificationGateway,
)
from vango_dispatch.gateways.realtime import InMemoryRealtimePublisher, RedisRealtimePublisher
from vango_dispatch.lifecycle.manager import DeliveryLifecycle
from vango_dispatch.lifecycle.payout import PayoutCalculator
from vango_dispatch.matching.engine import MatchingEngine
from vango_dispatch.matching.scoring import ScoringEngine
from vango_dispatch.models.delivery import (
    Delivery,
    DeliveryAction,
    DeliveryRequest,
    TransitionResult,
)
from vango_dispatch.models.driver import Driver, DriverFilter, DriverStatus
from vango_dispatch.models.geo import Coordinate
from vango_dispatch.models.matching import DriverScore, MatchingCriteria
from vango_dispatch.models.notification import NotificationCategory, NotificationIntent
from vango_dispatch.state.redis_store import RedisStore
from vango_dispatch.state.store import InMemoryStore, Store
from vango_dispatch.utils.logging import get_logger
from vango_dispatch.utils.tracing import DispatchTracer

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


def parse_request(data: DeliveryRequest | dict[str, Any]) -> DeliveryRequest:
    """Validate raw request data, raising RequestValidationError on bad input."""
    if isinstance(data, DeliveryRequest):
        return data
    try:
        return DeliveryRequest.model_validate(data)
    except pydantic.ValidationError as e:
        raise RequestValidationError(str(e)) from e


def parse_criteria(data: MatchingCriteria | dict[str, Any]) -> MatchingCriteria:
    """Validate raw matching criteria, raising RequestValidationError on bad input."""
    if isinstance(data, MatchingCriteria):
        return data
    try:
        return MatchingCriteria.model_validate(data)
    except pydantic.ValidationError as e:
        raise RequestValidationError(str(e)) from e


class DeliveryService:
    """Facade used by the HTTP layer and background workers."""

    def __init__(
        self,
        store: Store,
        matching: MatchingEngine,
        lifecycle: DeliveryLifecycle,
        match_limit: int = 5,
    ):
        self.store = store
        self.matching = matching
        self.lifecycle = lifecycle
        self.match_limit = match_limit

    async def request_delivery(self, request: DeliveryRequest | dict[str, Any]) -> Delivery:
        """Create a delivery from a customer request."""
        request = parse_request(request)
        tracer = DispatchTracer(request.customer_id)
        with tracer.trace_operation("request_delivery", "delivery_service"):
            return await self.lifecycle.create(request)

    async def accept_delivery(self, delivery_id: str, driver_id: str) -> TransitionResult:
        """Claim a pending delivery for a driver."""
        return await self.lifecycle.accept(delivery_id, driver_id)

    async def transition_delivery(
        self,
        delivery_id: str,
        action: DeliveryAction | str,
        actor_id: str | None,
        rating: int | None = None,
        review: str | None = None,
        reason: str | None = None,
    ) -> TransitionResult:
        """
        Apply a lifecycle action on behalf of a driver, customer or the system.

        Args:
            delivery_id: Target delivery
            action: Action name (accept, pickup, transit, deliver, rate, cancel)
            actor_id: Driver or customer id; ``None`` or "system" for system cancels
            rating: Required for ``rate``
            review: Optional text for ``rate``
            reason: Optional text for ``cancel``
        """
        try:
            action = DeliveryAction(action)
        except ValueError:
            raise RequestValidationError(f"Unknown action {action!r}") from None

        if action == DeliveryAction.CANCEL:
            actor = None if actor_id in (None, SYSTEM_ACTOR) else actor_id
            return await self.lifecycle.cancel(delivery_id, actor, reason=reason)

        if actor_id is None:
            raise RequestValidationError(f"{action.value} requires an actor")

        if action == DeliveryAction.ACCEPT:
            return await self.lifecycle.accept(delivery_id, actor_id)
        if action == DeliveryAction.PICKUP:
            return await self.lifecycle.pickup(delivery_id, actor_id)
        if action == DeliveryAction.TRANSIT:
            return await self.lifecycle.transit(delivery_id, actor_id)
        if action == DeliveryAction.DELIVER:
            return await self.lifecycle.deliver(delivery_id, actor_id)

        if rating is None:
            raise RequestValidationError("rate requires a rating")
        return await self.lifecycle.rate(delivery_id, actor_id, rating, review=review)

    async def rank_drivers(
        self,
        criteria: MatchingCriteria | dict[str, Any],
        pool: Sequence[Driver] | None = None,
        limit: int | None = None,
    ) -> list[DriverScore]:
        """
        Rank drivers for a request.

        When no pool is given, every available verified driver is considered.
        """
        criteria = parse_criteria(criteria)
        if pool is None:
            pool = await self.store.get_drivers(DriverFilter(status=DriverStatus.AVAILABLE))

        tracer = DispatchTracer("rank_drivers")
        with tracer.trace_operation("rank_drivers", "matching_engine", pool_size=len(pool)):
            return self.matching.find_best_matches(
                pool, criteria, limit=limit or self.match_limit
            )

    async def auto_assign_driver(
        self,
        criteria: MatchingCriteria | dict[str, Any],
        pool: Sequence[Driver] | None = None,
    ) -> DriverScore | None:
        """Best single driver for a request, or None. Does not claim anything."""
        matches = await self.rank_drivers(criteria, pool, limit=1)
        return matches[0] if matches else None

    async def get_delivery(self, delivery_id: str) -> Delivery:
        return await self.lifecycle.load(delivery_id)

    async def list_customer_deliveries(self, customer_id: str) -> list[Delivery]:
        return await self.store.list_deliveries(customer_id=customer_id)

    async def list_driver_deliveries(self, driver_id: str) -> list[Delivery]:
        return await self.store.list_deliveries(driver_id=driver_id)

    async def update_driver_availability(
        self,
        driver_id: str,
        status: DriverStatus | str,
        location: Coordinate | None = None,
    ) -> Driver:
        """Driver goes online/offline/busy and optionally reports a position."""
        try:
            status = DriverStatus(status)
        except ValueError:
            raise RequestValidationError(f"Unknown driver status {status!r}") from None

        previous = await self.store.get_driver(driver_id)
        if previous is None:
            raise DriverNotFound(driver_id)

        changes: dict[str, Any] = {"status": status}
        if location is not None:
            changes["location"] = location
        driver = await self.store.update_driver(driver_id, **changes)

        logger.info(
            "driver_availability_updated",
            driver_id=driver_id,
            status=status.value,
            has_location=driver.location is not None,
        )

        if status == DriverStatus.AVAILABLE and previous.status != DriverStatus.AVAILABLE:
            await self.lifecycle.notify(
                NotificationIntent(
                    user_id=driver_id,
                    title="You're Online",
                    message="You are now visible to customers and can receive delivery requests",
                    category=NotificationCategory.STATUS_CHANGE,
                )
            )

        return driver


async def build_service(settings: Settings | None = None, clock: Clock = utc_now) -> DeliveryService:
    """Wire a DeliveryService from settings."""
    settings = settings or get_settings()

    if settings.store_backend == "redis":
        store = RedisStore(settings.redis_url)
        await store.connect()
        notifications = RedisNotificationGateway(store.redis_client)
        realtime = RedisRealtimePublisher(store.redis_client)
        billing = RedisBillingSink(store.redis_client)
    else:
        store = InMemoryStore()
        notifications = InMemoryNotificationGateway()
        realtime = InMemoryRealtimePublisher()
        billing = InMemoryBillingSink()

    scoring = ScoringEngine(
        default_max_distance_km=settings.default_max_distance_km,
        max_concurrent_jobs=settings.max_concurrent_jobs,
        average_speed_kmh=settings.average_speed_kmh,
        traffic_factor=settings.traffic_factor,
        clock=clock,
    )
    matching = MatchingEngine(scoring, max_workers=settings.scoring_workers)
    lifecycle = DeliveryLifecycle(
        store=store,
        matching=matching,
        notifications=notifications,
        realtime=realtime,
        billing=billing,
        payout_calculator=PayoutCalculator(
            driver_share=settings.driver_payout_share,
            currency=settings.currency,
            clock=clock,
        ),
        clock=clock,
        dispatch_strategy=settings.dispatch_strategy,
        notify_top_n=settings.notify_top_n,
    )

    logger.info(
        "delivery_service_built",
        store_backend=settings.store_backend,
        dispatch_strategy=settings.dispatch_strategy,
    )
    return DeliveryService(store, matching, lifecycle, match_limit=settings.match_limit)
