"""Matching request and result models."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from vango_dispatch.models.driver import MaterialType
from vango_dispatch.models.geo import Coordinate


class Urgency(str, Enum):
    """How time-sensitive a delivery request is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MatchingCriteria(BaseModel):
    """What a delivery needs from a driver."""

    model_config = ConfigDict(frozen=True)

    customer_location: Coordinate
    delivery_location: Coordinate
    material_type: MaterialType
    weight_kg: float = Field(ge=0, allow_inf_nan=False)
    urgency: Urgency = Urgency.LOW
    max_distance_km: float | None = Field(default=None, gt=0)
    min_rating: float | None = Field(default=None, ge=0, le=5)
    preferred_vehicle_types: frozenset[str] = frozenset()


class ScoreFactors(BaseModel):
    """Per-factor suitability values, each normalised to [0, 1]."""

    distance: float
    rating: float
    vehicle_match: float
    availability: float
    experience: float
    load_balance: float


class DriverScore(BaseModel):
    """A driver's suitability for one matching request."""

    driver_id: str
    score: float = Field(ge=0, le=1)
    factors: ScoreFactors
    distance_km: float
    estimated_arrival_minutes: int
    estimated_cost: Decimal
