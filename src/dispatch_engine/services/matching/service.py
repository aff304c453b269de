"""Immediate matching orchestration: find, score, select."""

from __future__ import annotations

import logging
from typing import Optional

from ...models.domain import TripCategory
from ...persistence.base import DispatchStore
from ...schemas.matching import (
    AlternativeDriverModel,
    BestDriverModel,
    CandidateModel,
    MatchFoundResponse,
    MatchRequest,
    NoMatchResponse,
)
from .candidates import GeoCandidateFinder
from .policy import MatchingPolicy, default_matching_policy
from .scoring import DriverScorer, ScoredCandidate
from .selector import ImmediateMatchSelector

logger = logging.getLogger(__name__)


def _alternative(candidate: ScoredCandidate) -> AlternativeDriverModel:
    return AlternativeDriverModel(
        id=candidate.driver.driver_id,
        name=candidate.driver.name,
        rating=candidate.rating,
        level=candidate.tier.value,
        distance=candidate.display_distance_km,
        estimatedTime=candidate.display_minutes,
    )


def _candidate(candidate: ScoredCandidate) -> CandidateModel:
    return CandidateModel(**_alternative(candidate).model_dump(), score=round(candidate.score, 4))


def find_best_driver(
    store: DispatchStore,
    payload: MatchRequest,
    policy: Optional[MatchingPolicy] = None,
) -> MatchFoundResponse | NoMatchResponse:
    policy = policy or default_matching_policy()
    category = TripCategory.parse(payload.tripType)
    radius_km = policy.radius_for(category)

    finder = GeoCandidateFinder(store, location_max_age_seconds=policy.location_max_age_seconds)
    found = finder.find(payload.pickupLat, payload.pickupLng, radius_km)
    if found.degraded:
        return NoMatchResponse(
            message="Driver availability is temporarily unavailable; no candidates could be evaluated",
            degraded=True,
        )
    if not found.candidates:
        logger.info(
            f"No available drivers within {radius_km} km of ({payload.pickupLat}, {payload.pickupLng})"
        )
        return NoMatchResponse(message=f"No available drivers found within {radius_km:g} km")

    scored = DriverScorer(policy).score_all(found.candidates, category, radius_km)
    outcome = ImmediateMatchSelector(policy).select(scored, category)
    best = outcome.best
    logger.info(
        f"Matched driver {best.driver.driver_id} ({best.tier.value}, {best.display_distance_km} km) "
        f"for {category.value} trip out of {len(outcome.ranked)} candidates"
    )
    return MatchFoundResponse(
        tripType=category.value,
        radiusKm=radius_km,
        bestDriver=BestDriverModel(
            id=best.driver.driver_id,
            name=best.driver.name,
            phone=best.driver.phone,
            rating=best.rating,
            level=best.tier.value,
            distance=best.display_distance_km,
            estimatedTime=best.display_minutes,
            acceptanceRate=best.acceptance_percent,
        ),
        alternatives=[_alternative(candidate) for candidate in outcome.alternatives],
        allCandidates=[_candidate(candidate) for candidate in outcome.ranked],
    )
