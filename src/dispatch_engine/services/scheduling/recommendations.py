"""Claim recommendations shown next to pending claims in the admin trip view.

Claims are ranked on the claimant alone (tier, rating, acceptance, VIP flag);
location is not considered because the trip is hours away.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from ...models.domain import Claim, ClaimStatus, Driver, DriverTier
from ..matching.policy import MatchingPolicy
from ..matching.scoring import TIER_SCORES, acceptance_rate, classify_tier, driver_rating

TIER_WEIGHT = 0.40
RATING_WEIGHT = 0.35
ACCEPTANCE_WEIGHT = 0.25
VIP_BONUS = 0.05
HIGH_RATING = 4.5
HIGH_ACCEPTANCE = 0.9


@dataclass(slots=True)
class ClaimRecommendation:
    recommended: bool
    score: float
    reasons: list[str] = field(default_factory=list)


def _score_claimant(driver: Driver, policy: MatchingPolicy) -> tuple[float, list[str]]:
    tier = classify_tier(driver, policy)
    rating = driver_rating(driver, policy)
    acceptance = acceptance_rate(driver, policy)

    score = (
        TIER_SCORES[tier] / 3.0 * TIER_WEIGHT
        + rating / policy.max_rating * RATING_WEIGHT
        + acceptance * ACCEPTANCE_WEIGHT
    )
    reasons: list[str] = []
    if tier is not DriverTier.SILVER:
        reasons.append(f"{tier.value} tier")
    if rating >= HIGH_RATING:
        reasons.append(f"Rating {rating:.1f}")
    if acceptance >= HIGH_ACCEPTANCE:
        reasons.append(f"Acceptance {round(acceptance * 100)}%")
    if driver.is_vip:
        score += VIP_BONUS
        reasons.append("VIP driver")
    return score, reasons


def recommend_claims(
    claims: Sequence[Claim],
    drivers: Mapping[int, Driver],
    policy: MatchingPolicy,
) -> dict[int, ClaimRecommendation]:
    """Score every pending claim whose driver is known; flag the single best one."""

    recommendations: dict[int, ClaimRecommendation] = {}
    for claim in claims:
        driver = drivers.get(claim.driver_id)
        if claim.status is not ClaimStatus.PENDING or driver is None:
            continue
        score, reasons = _score_claimant(driver, policy)
        recommendations[claim.claim_id] = ClaimRecommendation(
            recommended=False, score=round(score, 4), reasons=reasons
        )

    if recommendations:
        # earliest claim wins a tie
        best_claim_id = max(recommendations, key=lambda claim_id: recommendations[claim_id].score)
        recommendations[best_claim_id].recommended = True
    return recommendations
