"""Outbound notification and realtime event models."""

from enum import Enum
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field

from vango_dispatch.clock import utc_now


class NotificationCategory(str, Enum):
    """Notification types understood by the delivery channels."""

    DELIVERY_REQUEST = "delivery_request"
    DELIVERY_ACCEPTED = "delivery_accepted"
    DELIVERY_UPDATE = "delivery_update"
    DELIVERY_COMPLETED = "delivery_completed"
    PAYMENT_RECEIVED = "payment_received"
    DELIVERY_CANCELLED = "delivery_cancelled"
    RATING_RECEIVED = "rating_received"
    STATUS_CHANGE = "status_change"


class NotificationIntent(BaseModel):
    """A notification the core wants delivered to one user."""

    user_id: str
    title: str
    message: str
    category: NotificationCategory
    metadata: dict[str, Any] = Field(default_factory=dict)


class DeliveryEvent(BaseModel):
    """Status change pushed to live subscribers of a delivery."""

    delivery_id: str
    status: str
    previous_status: str | None = None
    driver_id: str | None = None
    occurred_at: AwareDatetime = Field(default_factory=utc_now)
