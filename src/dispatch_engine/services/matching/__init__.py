"""Immediate matching helpers."""

from .candidates import Candidate, CandidateSet, GeoCandidateFinder
from .policy import MatchingPolicy, default_matching_policy
from .scoring import DriverScorer, ScoredCandidate, acceptance_rate, classify_tier
from .selector import ImmediateMatchSelector, MatchOutcome
from .service import find_best_driver

__all__ = [
    "Candidate",
    "CandidateSet",
    "GeoCandidateFinder",
    "MatchingPolicy",
    "default_matching_policy",
    "DriverScorer",
    "ScoredCandidate",
    "acceptance_rate",
    "classify_tier",
    "ImmediateMatchSelector",
    "MatchOutcome",
    "find_best_driver",
]
