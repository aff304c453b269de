"""Tunable thresholds for immediate driver matching.

No logic here beyond validation: radii, speeds, weights, tier thresholds and
tie-break distances, so they can be tuned without touching the scorer or selector.
"""

from __future__ import annotations

from dataclasses import dataclass

from ...config import settings
from ...models.domain import DriverTier, TripCategory


@dataclass(frozen=True)
class MatchingPolicy:
    # Search radius
    standard_radius_km: float = 3.0
    emergency_radius_km: float = 5.0

    # Assumed average speed for ETA
    standard_speed_kmh: float = 30.0
    emergency_speed_kmh: float = 40.0
    max_eta_minutes: float = 30.0

    # Composite weights, summing to 1.0
    proximity_weight: float = 0.40
    tier_weight: float = 0.25
    rating_weight: float = 0.20
    acceptance_weight: float = 0.10
    eta_weight: float = 0.05

    # Driver defaults
    default_rating: float = 4.0
    default_acceptance_rate: float = 0.90
    max_rating: float = 5.0

    # Tier thresholds: (distance km, trips, reviews), any one qualifies
    diamond_thresholds: tuple[float, int, int] = (500.0, 200, 100)
    gold_thresholds: tuple[float, int, int] = (100.0, 50, 25)
    diamond_bonus: float = 0.15
    gold_bonus: float = 0.08

    # Tie-break rules
    emergency_close_km: float = 1.0
    standard_close_km: float = 1.5
    standard_close_min_rating: float = 4.5
    diamond_distance_factor: float = 1.5
    diamond_rating_slack: float = 0.2
    gold_distance_factor: float = 1.3
    gold_rating_margin: float = 0.3

    max_alternatives: int = 3
    location_max_age_seconds: int | None = None

    def radius_for(self, category: TripCategory) -> float:
        if category is TripCategory.EMERGENCY:
            return self.emergency_radius_km
        return self.standard_radius_km

    def speed_for(self, category: TripCategory) -> float:
        if category is TripCategory.EMERGENCY:
            return self.emergency_speed_kmh
        return self.standard_speed_kmh

    def tier_bonus(self, tier: DriverTier) -> float:
        if tier is DriverTier.DIAMOND:
            return self.diamond_bonus
        if tier is DriverTier.GOLD:
            return self.gold_bonus
        return 0.0

    def validate(self) -> None:
        if self.standard_radius_km <= 0 or self.emergency_radius_km <= 0:
            raise ValueError("search radii must be > 0")
        if self.standard_speed_kmh <= 0 or self.emergency_speed_kmh <= 0:
            raise ValueError("speeds must be > 0")
        weights = (
            self.proximity_weight,
            self.tier_weight,
            self.rating_weight,
            self.acceptance_weight,
            self.eta_weight,
        )
        if abs(sum(weights) - 1.0) > 1e-9:
            raise ValueError("composite weights must sum to 1.0")
        if self.max_alternatives < 0:
            raise ValueError("max_alternatives must be >= 0")


def default_matching_policy() -> MatchingPolicy:
    """Policy with radii and staleness taken from settings."""
    policy = MatchingPolicy(
        standard_radius_km=settings.standard_radius_km,
        emergency_radius_km=settings.emergency_radius_km,
        location_max_age_seconds=settings.location_max_age_seconds,
    )
    policy.validate()
    return policy
