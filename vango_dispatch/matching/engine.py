"""Ranking of driver pools for a matching request."""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Sequence

from vango_dispatch.matching.scoring import ScoringEngine
from vango_dispatch.models.driver import Driver
from vango_dispatch.models.matching import DriverScore, MatchingCriteria
from vango_dispatch.utils.logging import LifecycleLogger


def ranking_key(score: DriverScore) -> tuple[float, int, str]:
    """Sort key: best score first, then soonest arrival, then driver id."""
    return (-score.score, score.estimated_arrival_minutes, score.driver_id)


class MatchingEngine:
    """
    Ranks candidate drivers for a request.

    Scoring is pure, so a large pool can be scored on a thread pool and
    merged before sorting. The engine never changes driver or delivery state.
    """

    def __init__(self, scoring: ScoringEngine, max_workers: int = 1):
        self.scoring = scoring
        self.max_workers = max_workers
        self.logger = LifecycleLogger("matching_engine")

    def find_best_matches(
        self,
        drivers: Sequence[Driver],
        criteria: MatchingCriteria,
        limit: int = 5,
    ) -> list[DriverScore]:
        """
        Rank drivers for a request.

        Args:
            drivers: Candidate pool
            criteria: Request requirements
            limit: Maximum number of results

        Returns:
            Up to ``limit`` scores, best first. Empty when nobody is eligible.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")

        start_time = time.perf_counter()

        scores = [score for score in self._score_all(drivers, criteria) if score is not None]
        scores.sort(key=ranking_key)

        self.logger.log_match(
            candidates=len(drivers),
            matched=len(scores),
            duration_ms=(time.perf_counter() - start_time) * 1000,
            urgency=criteria.urgency.value,
        )

        return scores[:limit]

    def auto_assign_driver(
        self,
        drivers: Sequence[Driver],
        criteria: MatchingCriteria,
    ) -> DriverScore | None:
        """Pick the single best driver without claiming the delivery."""
        matches = self.find_best_matches(drivers, criteria, limit=1)
        return matches[0] if matches else None

    def _score_all(
        self,
        drivers: Sequence[Driver],
        criteria: MatchingCriteria,
    ) -> Iterable[DriverScore | None]:
        if self.max_workers > 1 and len(drivers) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                return list(executor.map(lambda d: self._safe_score(d, criteria), drivers))
        return [self._safe_score(driver, criteria) for driver in drivers]

    def _safe_score(self, driver: Driver, criteria: MatchingCriteria) -> DriverScore | None:
        """Score one driver; a failure skips the driver instead of the whole ranking."""
        try:
            return self.scoring.score(driver, criteria)
        except (ArithmeticError, ValueError, TypeError) as e:
            self.logger.logger.warning(
                "driver_scoring_failed",
                driver_id=driver.id,
                error=str(e),
            )
            return None
