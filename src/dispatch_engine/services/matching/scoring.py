"""Composite scoring of match candidates.

Each candidate gets five sub-scores normalized to [0, 1]:

    proximity   1 - distance / radius
    tier        tier score / 3   (Silver 1, Gold 2, Diamond 3)
    rating      rating / 5
    acceptance  accepted trips / total trips
    eta         1 - minutes to pickup / 30

blended with the policy weights. The tier bonus is added on top of the composite
and is not normalized into it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from ...models.domain import Driver, DriverTier, TripCategory
from .candidates import Candidate
from .policy import MatchingPolicy

TIER_SCORES = {DriverTier.SILVER: 1.0, DriverTier.GOLD: 2.0, DriverTier.DIAMOND: 3.0}


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def classify_tier(driver: Driver, policy: MatchingPolicy) -> DriverTier:
    def meets(thresholds: tuple[float, int, int]) -> bool:
        distance_km, trips, reviews = thresholds
        return (
            driver.total_distance_km >= distance_km
            or driver.total_trips >= trips
            or driver.total_reviews >= reviews
        )

    if meets(policy.diamond_thresholds):
        return DriverTier.DIAMOND
    if meets(policy.gold_thresholds):
        return DriverTier.GOLD
    return DriverTier.SILVER


def acceptance_rate(driver: Driver, policy: MatchingPolicy) -> float:
    """Share of trips not cancelled or declined; new drivers get the default rate."""
    if driver.total_trips <= 0:
        return policy.default_acceptance_rate
    return min(1.0, max(0.0, driver.accepted_trips / driver.total_trips))


def driver_rating(driver: Driver, policy: MatchingPolicy) -> float:
    if driver.rating is None:
        return policy.default_rating
    return min(policy.max_rating, max(0.0, driver.rating))


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    driver: Driver
    distance_km: float
    estimated_minutes: float
    tier: DriverTier
    rating: float
    acceptance_rate: float
    composite: float
    tier_bonus: float

    @property
    def score(self) -> float:
        return self.composite + self.tier_bonus

    @property
    def display_distance_km(self) -> float:
        return round_half_up(self.distance_km, 1)

    @property
    def display_minutes(self) -> int:
        return int(round_half_up(self.estimated_minutes))

    @property
    def acceptance_percent(self) -> int:
        return int(round_half_up(self.acceptance_rate * 100))


class DriverScorer:
    def __init__(self, policy: MatchingPolicy) -> None:
        self.policy = policy

    def score(self, candidate: Candidate, category: TripCategory, radius_km: float) -> ScoredCandidate:
        policy = self.policy
        driver = candidate.driver
        tier = classify_tier(driver, policy)
        rating = driver_rating(driver, policy)
        acceptance = acceptance_rate(driver, policy)
        minutes = candidate.distance_km / policy.speed_for(category) * 60

        proximity_score = max(0.0, 1 - candidate.distance_km / radius_km)
        tier_score = TIER_SCORES[tier] / 3.0
        rating_score = rating / policy.max_rating
        eta_score = max(0.0, 1 - minutes / policy.max_eta_minutes)

        composite = (
            proximity_score * policy.proximity_weight
            + tier_score * policy.tier_weight
            + rating_score * policy.rating_weight
            + acceptance * policy.acceptance_weight
            + eta_score * policy.eta_weight
        )
        return ScoredCandidate(
            driver=driver,
            distance_km=candidate.distance_km,
            estimated_minutes=minutes,
            tier=tier,
            rating=rating,
            acceptance_rate=acceptance,
            composite=composite,
            tier_bonus=policy.tier_bonus(tier),
        )

    def score_all(
        self, candidates: Iterable[Candidate], category: TripCategory, radius_km: float
    ) -> list[ScoredCandidate]:
        return [self.score(candidate, category, radius_km) for candidate in candidates]
