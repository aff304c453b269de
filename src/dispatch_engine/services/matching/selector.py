"""Best-driver selection on top of the scored candidate list."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from ...models.domain import DriverTier, TripCategory
from .policy import MatchingPolicy
from .scoring import ScoredCandidate


@dataclass(slots=True)
class MatchOutcome:
    best: Optional[ScoredCandidate]
    alternatives: list[ScoredCandidate] = field(default_factory=list)
    ranked: list[ScoredCandidate] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.best is not None


class ImmediateMatchSelector:
    """Pure function of the scored list; holds no state between requests.

    Tie-break rules compare the reported (0.1 km rounded) distances.
    """

    def __init__(self, policy: MatchingPolicy) -> None:
        self.policy = policy

    def select(self, scored: Sequence[ScoredCandidate], category: TripCategory) -> MatchOutcome:
        # stable sort: equal scores keep input order
        ranked = sorted(scored, key=lambda candidate: candidate.score, reverse=True)
        if not ranked:
            return MatchOutcome(best=None, ranked=[])

        if category is TripCategory.EMERGENCY:
            best = self._select_emergency(ranked)
        else:
            best = self._select_standard(ranked)

        alternatives = [
            candidate for candidate in ranked if candidate.driver.driver_id != best.driver.driver_id
        ][: self.policy.max_alternatives]
        return MatchOutcome(best=best, alternatives=alternatives, ranked=ranked)

    def _select_emergency(self, ranked: list[ScoredCandidate]) -> ScoredCandidate:
        very_close = [c for c in ranked if c.display_distance_km <= self.policy.emergency_close_km]
        if not very_close:
            return ranked[0]
        # max() returns the first of equal tiers, i.e. the better scored one
        return max(very_close, key=lambda candidate: candidate.tier.rank)

    def _select_standard(self, ranked: list[ScoredCandidate]) -> ScoredCandidate:
        policy = self.policy
        top = ranked[0]
        top_distance = top.display_distance_km
        if top_distance < policy.standard_close_km and top.rating >= policy.standard_close_min_rating:
            return top

        # first match wins; order matters
        for candidate in ranked:
            distance = candidate.display_distance_km
            if (
                candidate.tier is DriverTier.DIAMOND
                and distance <= top_distance * policy.diamond_distance_factor
                and candidate.rating >= top.rating - policy.diamond_rating_slack
            ):
                return candidate
            if (
                candidate.tier is DriverTier.GOLD
                and distance <= top_distance * policy.gold_distance_factor
                and candidate.rating >= top.rating + policy.gold_rating_margin
            ):
                return candidate
        return top
