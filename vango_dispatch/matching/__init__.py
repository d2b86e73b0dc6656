"""Driver scoring and ranking."""

from vango_dispatch.matching.engine import MatchingEngine, ranking_key
from vango_dispatch.matching.geo import EARTH_RADIUS_KM, distance_km
from vango_dispatch.matching.scoring import (
    FACTOR_WEIGHTS,
    URGENCY_MULTIPLIERS,
    VEHICLE_CAPACITY,
    ScoringEngine,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "distance_km",
    "FACTOR_WEIGHTS",
    "URGENCY_MULTIPLIERS",
    "VEHICLE_CAPACITY",
    "ScoringEngine",
    "MatchingEngine",
    "ranking_key",
]
