"""Scheduled-trip admin API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class LocationModel(BaseModel):
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class ScheduledTripModel(BaseModel):
    id: int
    tripCode: str | None = None
    driverId: int | None = None
    pickup: LocationModel
    dropoff: LocationModel
    scheduledAt: datetime
    vehicleType: str | None = None
    amount: float | None = None
    currency: str | None = None
    status: str
    paymentStatus: str
    stage: str
    claimWindowHours: int
    claimOpensAt: datetime
    canClaimNow: bool
    claimCount: int
    claimLimit: int
    claimsRemaining: int
    createdAt: datetime | None = None


class ScheduledTripListResponse(BaseModel):
    items: List[ScheduledTripModel]
    total: int
    page: int
    pageSize: int
    hasNextPage: bool


class ClaimDriverModel(BaseModel):
    id: int
    name: str | None = None
    phone: str | None = None
    rating: float | None = None
    level: str | None = None
    isVip: bool = False


class ClaimRecommendationModel(BaseModel):
    recommended: bool
    score: float
    reasons: List[str] = Field(default_factory=list)


class ClaimModel(BaseModel):
    id: int
    driverId: int
    status: str
    createdAt: datetime
    reviewedAt: datetime | None = None
    reviewedBy: int | None = None
    driver: ClaimDriverModel | None = None
    recommendation: ClaimRecommendationModel | None = None


class AssignmentAuditModel(BaseModel):
    id: int
    kind: str
    driverId: int | None = None
    previousDriverId: int | None = None
    claimId: int | None = None
    reason: str
    actorId: int
    createdAt: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScheduledTripDetailResponse(BaseModel):
    booking: ScheduledTripModel
    claims: List[ClaimModel]
    assignmentAudit: Optional[AssignmentAuditModel] = None
    assignmentAudits: List[AssignmentAuditModel]


class AwardRequest(BaseModel):
    claimId: int = Field(..., description="Claim whose driver receives the trip.")
    reason: str = Field(..., description="Human-entered justification; must not be blank.")


class UnassignRequest(BaseModel):
    reason: str = Field(..., description="Human-entered justification; must not be blank.")


class AssignmentActionResponse(BaseModel):
    booking: Optional[ScheduledTripModel] = None
    audit: AssignmentAuditModel
