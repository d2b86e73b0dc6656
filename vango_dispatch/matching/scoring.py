"""
Suitability scoring for a single (driver, request) pair.

A driver's score is the weighted sum of six factors, each normalised to
[0, 1], boosted by the request's urgency and clamped to 1.0. Drivers that
cannot serve the request at all are rejected (``None``) rather than given a
zero score so they never show up in a ranking.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from types import MappingProxyType

from vango_dispatch.clock import Clock, utc_now
from vango_dispatch.matching.geo import distance_km
from vango_dispatch.models.driver import Driver, DriverStatus, MaterialType, VehicleType
from vango_dispatch.models.matching import DriverScore, MatchingCriteria, ScoreFactors, Urgency


@dataclass(frozen=True)
class VehicleCapacity:
    """Load limits and suitable materials for one vehicle model."""

    max_weight_kg: float
    suitable_for: frozenset[MaterialType]


VEHICLE_CAPACITY: MappingProxyType[str, VehicleCapacity] = MappingProxyType({
    VehicleType.TOYOTA_HILUX.value: VehicleCapacity(
        1000, frozenset({MaterialType.CEMENT, MaterialType.BRICKS, MaterialType.TOOLS})
    ),
    VehicleType.ISUZU_TRUCK.value: VehicleCapacity(
        3000,
        frozenset({MaterialType.CEMENT, MaterialType.BRICKS, MaterialType.TIMBER, MaterialType.METAL}),
    ),
    VehicleType.FORD_RANGER.value: VehicleCapacity(
        1200,
        frozenset({MaterialType.CEMENT, MaterialType.BRICKS, MaterialType.TOOLS, MaterialType.TIMBER}),
    ),
    VehicleType.NISSAN_NP200.value: VehicleCapacity(
        800, frozenset({MaterialType.TOOLS, MaterialType.OTHER})
    ),
    VehicleType.MERCEDES_SPRINTER.value: VehicleCapacity(
        2000,
        frozenset({
            MaterialType.CEMENT,
            MaterialType.BRICKS,
            MaterialType.TIMBER,
            MaterialType.METAL,
            MaterialType.TOOLS,
        }),
    ),
})

UNKNOWN_VEHICLE_SCORE = 0.5

# Weights are in hundredths so their sum can be checked exactly
_WEIGHT_HUNDREDTHS = {
    "distance": 25,
    "rating": 15,
    "vehicle_match": 20,
    "availability": 20,
    "experience": 10,
    "load_balance": 10,
}
if sum(_WEIGHT_HUNDREDTHS.values()) != 100:
    raise RuntimeError("Scoring factor weights must sum to 1.0")

FACTOR_WEIGHTS: MappingProxyType[str, float] = MappingProxyType(
    {name: hundredths / 100 for name, hundredths in _WEIGHT_HUNDREDTHS.items()}
)

URGENCY_MULTIPLIERS: MappingProxyType[Urgency, float] = MappingProxyType({
    Urgency.LOW: 1.0,
    Urgency.MEDIUM: 1.2,
    Urgency.HIGH: 1.5,
})

# Cost estimate, ZAR
BASE_RATE = Decimal("50")
RATE_PER_KM = Decimal("8")
RATE_PER_KG = Decimal("2")

DELIVERY_HISTORY_SCALE = math.log(500)
YEARS_FOR_FULL_EXPERIENCE = 10
HOURS_FOR_FULL_REST = 4


class ScoringEngine:
    """Scores how well a driver fits a matching request."""

    def __init__(
        self,
        default_max_distance_km: float = 20.0,
        max_concurrent_jobs: int = 3,
        average_speed_kmh: float = 40.0,
        traffic_factor: float = 1.2,
        clock: Clock = utc_now,
    ):
        self.default_max_distance_km = default_max_distance_km
        self.max_concurrent_jobs = max_concurrent_jobs
        self.average_speed_kmh = average_speed_kmh
        self.traffic_factor = traffic_factor
        self.clock = clock

    def score(self, driver: Driver, criteria: MatchingCriteria) -> DriverScore | None:
        """
        Score one driver against a request.

        Args:
            driver: Candidate driver
            criteria: What the request needs

        Returns:
            DriverScore, or None when the driver is ineligible (no known
            location, beyond ``max_distance_km``, or below ``min_rating``)
        """
        if driver.location is None:
            return None

        distance = distance_km(driver.location, criteria.customer_location)

        if criteria.max_distance_km is not None and distance > criteria.max_distance_km:
            return None

        if criteria.min_rating is not None and driver.rating < criteria.min_rating:
            return None

        factors = ScoreFactors(
            distance=self.distance_score(distance, criteria.max_distance_km),
            rating=self.rating_score(driver.rating),
            vehicle_match=self.vehicle_match_score(driver, criteria),
            availability=self.availability_score(driver),
            experience=self.experience_score(driver, criteria),
            load_balance=self.load_balance_score(driver),
        )

        weighted = sum(
            getattr(factors, name) * weight for name, weight in FACTOR_WEIGHTS.items()
        )
        urgency_multiplier = URGENCY_MULTIPLIERS[criteria.urgency]

        return DriverScore(
            driver_id=driver.id,
            score=min(weighted * urgency_multiplier, 1.0),
            factors=factors,
            distance_km=distance,
            estimated_arrival_minutes=self.estimate_arrival_minutes(distance),
            estimated_cost=self.estimate_cost(distance, criteria.weight_kg, criteria.urgency),
        )

    def distance_score(self, distance: float, max_distance: float | None = None) -> float:
        max_distance = max_distance or self.default_max_distance_km
        if distance > max_distance:
            return 0.0
        return max(0.0, (max_distance - distance) / max_distance)

    @staticmethod
    def rating_score(rating: float) -> float:
        return rating / 5.0

    @staticmethod
    def vehicle_match_score(driver: Driver, criteria: MatchingCriteria) -> float:
        """Fit of the driver's vehicle to the load's weight and material."""
        capacity = VEHICLE_CAPACITY.get(driver.vehicle_type)
        if capacity is None:
            return UNKNOWN_VEHICLE_SCORE

        weight_ok = 1.0 if criteria.weight_kg <= capacity.max_weight_kg else 0.0
        material_ok = 1.0 if criteria.material_type in capacity.suitable_for else 0.3
        preference = 1.2 if driver.vehicle_type in criteria.preferred_vehicle_types else 1.0

        return min(1.0, weight_ok * 0.4 + material_ok * 0.4 + preference * 0.2)

    def availability_score(self, driver: Driver) -> float:
        if driver.status != DriverStatus.AVAILABLE:
            return 0.0
        remaining = self.max_concurrent_jobs - driver.current_jobs
        return max(0.0, remaining / self.max_concurrent_jobs)

    @staticmethod
    def experience_score(driver: Driver, criteria: MatchingCriteria) -> float:
        years_score = min(driver.experience_years / YEARS_FOR_FULL_EXPERIENCE, 1.0)
        delivery_score = min(
            math.log(driver.completed_deliveries + 1) / DELIVERY_HISTORY_SCALE, 1.0
        )
        spec_bonus = 1.2 if criteria.material_type in driver.specializations else 1.0

        # The specialisation bonus can push a veteran past 1.0
        return min(1.0, years_score * 0.4 + delivery_score * 0.4 + spec_bonus * 0.2)

    def load_balance_score(self, driver: Driver) -> float:
        """Favour drivers who have been idle longest."""
        if driver.last_delivery_time is None:
            return 1.0
        idle_hours = (self.clock() - driver.last_delivery_time).total_seconds() / 3600
        return min(max(idle_hours, 0.0) / HOURS_FOR_FULL_REST, 1.0)

    def estimate_arrival_minutes(self, distance: float) -> int:
        adjusted_speed = self.average_speed_kmh / self.traffic_factor
        return math.ceil(distance / adjusted_speed * 60)

    @staticmethod
    def estimate_cost(distance: float, weight_kg: float, urgency: Urgency) -> Decimal:
        """Quoted price in whole rands, rounded up."""
        base = BASE_RATE + RATE_PER_KM * Decimal(str(distance)) + RATE_PER_KG * Decimal(str(weight_kg))
        multiplier = Decimal(str(URGENCY_MULTIPLIERS[urgency]))
        return (base * multiplier).to_integral_value(rounding=ROUND_CEILING)
