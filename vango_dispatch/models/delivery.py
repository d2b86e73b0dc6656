"""Delivery-related data models."""

from decimal import Decimal
from enum import Enum
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, Field

from vango_dispatch.clock import utc_now
from vango_dispatch.models.driver import MaterialType
from vango_dispatch.models.geo import Coordinate
from vango_dispatch.models.matching import MatchingCriteria, Urgency
from vango_dispatch.models.payout import PayoutRecord


class DeliveryStatus(str, Enum):
    """Delivery status progression."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RATED = "rated"
    CANCELLED = "cancelled"


class DeliveryAction(str, Enum):
    """Actions that move a delivery between statuses."""

    ACCEPT = "accept"
    PICKUP = "pickup"
    TRANSIT = "transit"
    DELIVER = "deliver"
    RATE = "rate"
    CANCEL = "cancel"


class ItemSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class ItemWeight(str, Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


class PaymentMethod(str, Enum):
    PAYPAL = "paypal"
    EFT = "eft"


class PaymentStatus(str, Enum):
    """Customer payment progress for a delivery."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


class PayoutStatus(str, Enum):
    """Progress of the driver payout for a delivery."""

    NOT_DUE = "not_due"
    ISSUED = "issued"
    REQUIRES_RECONCILIATION = "requires_reconciliation"


# Statuses in which a driver holds the job
ACTIVE_STATUSES = frozenset(
    {DeliveryStatus.ACCEPTED, DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT}
)


class DeliveryRequest(BaseModel):
    """A customer's request for a new delivery."""

    customer_id: str
    pickup_address: str
    delivery_address: str
    pickup_location: Coordinate
    delivery_location: Coordinate
    item_description: str
    item_size: ItemSize = ItemSize.MEDIUM
    item_weight: ItemWeight = ItemWeight.MEDIUM
    material_type: MaterialType = MaterialType.OTHER
    weight_kg: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    urgency: Urgency = Urgency.LOW
    payment_method: PaymentMethod = PaymentMethod.EFT

    # Optional matching knobs
    max_distance_km: float | None = Field(default=None, gt=0)
    min_rating: float | None = Field(default=None, ge=0, le=5)
    preferred_vehicle_types: frozenset[str] = frozenset()

    def to_criteria(self) -> MatchingCriteria:
        """Build the matching criteria for this request."""
        return MatchingCriteria(
            customer_location=self.pickup_location,
            delivery_location=self.delivery_location,
            material_type=self.material_type,
            weight_kg=self.weight_kg,
            urgency=self.urgency,
            max_distance_km=self.max_distance_km,
            min_rating=self.min_rating,
            preferred_vehicle_types=self.preferred_vehicle_types,
        )


class Delivery(BaseModel):
    """A delivery record and its lifecycle state."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    customer_id: str
    driver_id: str | None = None
    status: DeliveryStatus = DeliveryStatus.PENDING

    # Route
    pickup_address: str
    delivery_address: str
    pickup_location: Coordinate
    delivery_location: Coordinate
    distance_km: float = Field(ge=0)

    # Load
    item_description: str
    item_size: ItemSize
    item_weight: ItemWeight
    material_type: MaterialType = MaterialType.OTHER
    weight_kg: float = Field(default=0.0, ge=0)
    urgency: Urgency = Urgency.LOW

    # Payment
    delivery_fee: Decimal = Field(ge=0)
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payout_status: PayoutStatus = PayoutStatus.NOT_DUE

    # Dispatch
    offered_driver_ids: list[str] = Field(default_factory=list)

    # Feedback
    customer_rating: int | None = Field(default=None, ge=1, le=5)
    review: str | None = None
    cancellation_reason: str | None = None

    # Timing
    created_at: AwareDatetime = Field(default_factory=utc_now)
    updated_at: AwareDatetime = Field(default_factory=utc_now)
    estimated_arrival: AwareDatetime | None = None
    accepted_at: AwareDatetime | None = None
    picked_up_at: AwareDatetime | None = None
    delivered_at: AwareDatetime | None = None
    cancelled_at: AwareDatetime | None = None

    @property
    def is_active(self) -> bool:
        """Check if a driver currently holds this delivery."""
        return self.status in ACTIVE_STATUSES


class TransitionResult(BaseModel):
    """Outcome of a successful lifecycle transition."""

    delivery: Delivery
    action: DeliveryAction
    previous_status: DeliveryStatus
    payout: PayoutRecord | None = None
