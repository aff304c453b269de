"""Immediate matching request/response schemas."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class MatchRequest(BaseModel):
    pickupLat: float = Field(..., ge=-90.0, le=90.0)
    pickupLng: float = Field(..., ge=-180.0, le=180.0)
    tripType: Optional[str] = Field(default="Standard", description="'Standard' or 'Emergency'.")


class BestDriverModel(BaseModel):
    id: int
    name: str | None = None
    phone: str | None = None
    rating: float
    level: str
    distance: float
    estimatedTime: int
    acceptanceRate: int


class AlternativeDriverModel(BaseModel):
    id: int
    name: str | None = None
    rating: float
    level: str
    distance: float
    estimatedTime: int


class CandidateModel(AlternativeDriverModel):
    score: float


class MatchFoundResponse(BaseModel):
    matched: Literal[True] = True
    tripType: str
    radiusKm: float
    bestDriver: BestDriverModel
    alternatives: List[AlternativeDriverModel]
    allCandidates: List[CandidateModel]


class NoMatchResponse(BaseModel):
    matched: Literal[False] = False
    message: str
    drivers: List[CandidateModel] = Field(default_factory=list)
    degraded: bool = False
