"""API routes for deliveries, matching and driver availability."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from vango_dispatch.errors import (
    ActorNotPermitted,
    DeliveryNotFound,
    DispatchError,
    DriverNotFound,
    DriverUnavailable,
    IllegalTransition,
    PayoutComputationError,
    RequestValidationError,
    StoreConflictError,
)
from vango_dispatch.models.delivery import (
    Delivery,
    DeliveryAction,
    DeliveryRequest,
    TransitionResult,
)
from vango_dispatch.models.driver import Driver, DriverStatus
from vango_dispatch.models.geo import Coordinate
from vango_dispatch.models.matching import DriverScore, MatchingCriteria
from vango_dispatch.service import DeliveryService
from vango_dispatch.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


# Request/Response Models


class AcceptDeliveryRequest(BaseModel):
    """Driver claiming a pending delivery."""

    driver_id: str


class TransitionRequest(BaseModel):
    """Lifecycle action on an existing delivery."""

    action: DeliveryAction
    actor_id: str | None = None
    rating: int | None = None
    review: str | None = None
    reason: str | None = None


class AvailabilityRequest(BaseModel):
    """Driver going online, offline or busy."""

    status: DriverStatus
    location: Coordinate | None = None


# Dependency to get the delivery service


async def get_delivery_service(request: Request) -> DeliveryService:
    """Get the service built during application startup."""
    return request.app.state.delivery_service


# Error mapping

_STATUS_BY_ERROR: list[tuple[type[DispatchError], int]] = [
    (RequestValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (DeliveryNotFound, status.HTTP_404_NOT_FOUND),
    (DriverNotFound, status.HTTP_404_NOT_FOUND),
    (ActorNotPermitted, status.HTTP_403_FORBIDDEN),
    (IllegalTransition, status.HTTP_409_CONFLICT),
    (DriverUnavailable, status.HTTP_409_CONFLICT),
    (StoreConflictError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PayoutComputationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def to_http_error(error: DispatchError) -> HTTPException:
    """Translate a core error into an HTTP response."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if status_code >= 500:
        logger.error("request_failed", error=str(error), error_type=type(error).__name__)
    return HTTPException(status_code=status_code, detail=str(error))


# Delivery routes


@router.post(
    "/deliveries",
    response_model=Delivery,
    status_code=status.HTTP_201_CREATED,
)
async def create_delivery(
    request: DeliveryRequest,
    service: DeliveryService = Depends(get_delivery_service),
) -> Delivery:
    """
    Create a delivery request.

    The fee is quoted from the pickup/drop-off distance and the request is
    offered to the best matching drivers.
    """
    try:
        delivery = await service.request_delivery(request)
    except DispatchError as e:
        raise to_http_error(e) from e

    logger.info(
        "delivery_created_via_api",
        delivery_id=delivery.id,
        customer_id=delivery.customer_id,
    )
    return delivery


@router.get("/deliveries/{delivery_id}", response_model=Delivery)
async def get_delivery(
    delivery_id: str,
    service: DeliveryService = Depends(get_delivery_service),
) -> Delivery:
    """Get a delivery by id."""
    try:
        return await service.get_delivery(delivery_id)
    except DispatchError as e:
        raise to_http_error(e) from e


@router.post("/deliveries/{delivery_id}/accept", response_model=TransitionResult)
async def accept_delivery(
    delivery_id: str,
    request: AcceptDeliveryRequest,
    service: DeliveryService = Depends(get_delivery_service),
) -> TransitionResult:
    """Claim a pending delivery. Only the first driver succeeds."""
    try:
        return await service.accept_delivery(delivery_id, request.driver_id)
    except DispatchError as e:
        raise to_http_error(e) from e


@router.post("/deliveries/{delivery_id}/transitions", response_model=TransitionResult)
async def transition_delivery(
    delivery_id: str,
    request: TransitionRequest,
    service: DeliveryService = Depends(get_delivery_service),
) -> TransitionResult:
    """Apply pickup, transit, deliver, rate or cancel to a delivery."""
    try:
        return await service.transition_delivery(
            delivery_id,
            request.action,
            request.actor_id,
            rating=request.rating,
            review=request.review,
            reason=request.reason,
        )
    except DispatchError as e:
        raise to_http_error(e) from e


@router.get("/customers/{customer_id}/deliveries", response_model=list[Delivery])
async def list_customer_deliveries(
    customer_id: str,
    service: DeliveryService = Depends(get_delivery_service),
) -> list[Delivery]:
    """List a customer's deliveries, newest first."""
    return await service.list_customer_deliveries(customer_id)


@router.get("/drivers/{driver_id}/deliveries", response_model=list[Delivery])
async def list_driver_deliveries(
    driver_id: str,
    service: DeliveryService = Depends(get_delivery_service),
) -> list[Delivery]:
    """List deliveries assigned to a driver, newest first."""
    return await service.list_driver_deliveries(driver_id)


# Matching and driver routes


@router.post("/matching/rank", response_model=list[DriverScore])
async def rank_drivers(
    criteria: MatchingCriteria,
    limit: int = Query(default=5, ge=1, le=50),
    service: DeliveryService = Depends(get_delivery_service),
) -> list[DriverScore]:
    """Rank available drivers for the given criteria."""
    try:
        return await service.rank_drivers(criteria, limit=limit)
    except DispatchError as e:
        raise to_http_error(e) from e


@router.post("/drivers/{driver_id}/availability", response_model=Driver)
async def update_availability(
    driver_id: str,
    request: AvailabilityRequest,
    service: DeliveryService = Depends(get_delivery_service),
) -> Driver:
    """Update a driver's availability and optionally their position."""
    try:
        return await service.update_driver_availability(
            driver_id, request.status, location=request.location
        )
    except DispatchError as e:
        raise to_http_error(e) from e
