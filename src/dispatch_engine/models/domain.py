"""Domain models for drivers, scheduled trips, claims and assignment audits."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class DriverTier(str, Enum):
    SILVER = "Silver"
    GOLD = "Gold"
    DIAMOND = "Diamond"

    @property
    def rank(self) -> int:
        return {DriverTier.SILVER: 1, DriverTier.GOLD: 2, DriverTier.DIAMOND: 3}[self]


class TripCategory(str, Enum):
    STANDARD = "standard"
    EMERGENCY = "emergency"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TripCategory":
        """Any trip type mentioning 'emergency' is an emergency; everything else is standard."""
        if value and "emergency" in value.strip().lower():
            return cls.EMERGENCY
        return cls.STANDARD


class TripStatus(str, Enum):
    PENDING_ASSIGNMENT = "PENDING_ASSIGNMENT"
    ASSIGNED = "ASSIGNED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class ClaimStatus(str, Enum):
    PENDING = "PENDING"
    AWARDED = "AWARDED"
    REJECTED = "REJECTED"


class AuditKind(str, Enum):
    ASSIGN = "ASSIGN"
    UNASSIGN = "UNASSIGN"


class Stage(str, Enum):
    """Derived allocation phase of a scheduled trip. Never stored."""

    WAITING = "waiting"
    CLAIM_OPEN = "claim_open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WINDOW_PASSED = "window_passed"


@dataclass(slots=True)
class Driver:
    """A driver with last known location and lifetime metrics."""

    driver_id: int
    name: Optional[str]
    phone: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    available: bool
    active: bool = True
    location_updated_at: Optional[datetime] = None
    rating: Optional[float] = None
    total_trips: int = 0
    accepted_trips: int = 0
    total_distance_km: float = 0.0
    total_reviews: int = 0
    is_vip: bool = False

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class ScheduledTrip:
    """A pre-booked trip whose driver is allocated through claims."""

    trip_id: int
    scheduled_at: datetime
    status: TripStatus
    payment_status: str
    claim_window_hours: int
    claim_limit: int
    claim_count: int
    assigned_driver_id: Optional[int] = None
    trip_code: Optional[str] = None
    vehicle_type: Optional[str] = None
    pickup_address: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    dropoff_address: Optional[str] = None
    dropoff_latitude: Optional[float] = None
    dropoff_longitude: Optional[float] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class Claim:
    """A driver's offer to take a scheduled trip."""

    claim_id: int
    trip_id: int
    driver_id: int
    status: ClaimStatus
    created_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None


@dataclass(slots=True, frozen=True)
class AssignmentAudit:
    """Immutable ledger entry for one assignment mutation."""

    audit_id: int
    trip_id: int
    driver_id: Optional[int]
    claim_id: Optional[int]
    kind: AuditKind
    reason: str
    actor_id: int
    created_at: datetime
    previous_driver_id: Optional[int] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Actor:
    """Authenticated caller as forwarded by the identity gateway."""

    actor_id: int
    role: str
