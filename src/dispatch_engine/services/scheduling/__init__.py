"""Scheduled-trip claim window and admin read models."""

from .claim_window import ClaimWindowScheduler, ClaimWindowState, claims_remaining
from .recommendations import ClaimRecommendation, recommend_claims
from .service import (
    audit_to_model,
    get_scheduled_trip_detail,
    list_scheduled_trips,
    parse_stage,
    trip_to_model,
)

__all__ = [
    "ClaimWindowScheduler",
    "ClaimWindowState",
    "claims_remaining",
    "ClaimRecommendation",
    "recommend_claims",
    "audit_to_model",
    "get_scheduled_trip_detail",
    "list_scheduled_trips",
    "parse_stage",
    "trip_to_model",
]
