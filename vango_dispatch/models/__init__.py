"""Data models for the dispatch core."""

from vango_dispatch.models.delivery import (
    ACTIVE_STATUSES,
    Delivery,
    DeliveryAction,
    DeliveryRequest,
    DeliveryStatus,
    ItemSize,
    ItemWeight,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    TransitionResult,
)
from vango_dispatch.models.driver import (
    Driver,
    DriverFilter,
    DriverJobUpdate,
    DriverStatus,
    MaterialType,
    VehicleType,
)
from vango_dispatch.models.geo import Coordinate
from vango_dispatch.models.matching import (
    DriverScore,
    MatchingCriteria,
    ScoreFactors,
    Urgency,
)
from vango_dispatch.models.notification import (
    DeliveryEvent,
    NotificationCategory,
    NotificationIntent,
)
from vango_dispatch.models.payout import PayoutRecord, PayoutSplit

__all__ = [
    # Geo
    "Coordinate",
    # Driver
    "Driver",
    "DriverFilter",
    "DriverJobUpdate",
    "DriverStatus",
    "MaterialType",
    "VehicleType",
    # Matching
    "DriverScore",
    "MatchingCriteria",
    "ScoreFactors",
    "Urgency",
    # Delivery
    "ACTIVE_STATUSES",
    "Delivery",
    "DeliveryAction",
    "DeliveryRequest",
    "DeliveryStatus",
    "ItemSize",
    "ItemWeight",
    "PaymentMethod",
    "PaymentStatus",
    "PayoutStatus",
    "TransitionResult",
    # Notification
    "DeliveryEvent",
    "NotificationCategory",
    "NotificationIntent",
    # Payout
    "PayoutRecord",
    "PayoutSplit",
]
