"""Claim-window stage derivation for scheduled trips.

Everything here is computed at read time from the trip record and the wall clock;
nothing is written and no timer advances a trip between stages.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...models.domain import ScheduledTrip, Stage, TripStatus


@dataclass(frozen=True, slots=True)
class ClaimWindowState:
    stage: Stage
    claim_opens_at: datetime
    claims_remaining: int
    can_claim_now: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def claim_opens_at(trip: ScheduledTrip) -> datetime:
    return _aware(trip.scheduled_at) - timedelta(hours=trip.claim_window_hours)


def claims_remaining(trip: ScheduledTrip) -> int:
    return max(0, trip.claim_limit - trip.claim_count)


def assigned_stage(status: TripStatus) -> Stage:
    if status is TripStatus.IN_PROGRESS:
        return Stage.IN_PROGRESS
    if status is TripStatus.COMPLETED:
        return Stage.COMPLETED
    return Stage.ASSIGNED


class ClaimWindowScheduler:
    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self.clock = clock

    def evaluate(self, trip: ScheduledTrip, now: Optional[datetime] = None) -> ClaimWindowState:
        now = _aware(now or self.clock())
        opens_at = claim_opens_at(trip)
        scheduled_at = _aware(trip.scheduled_at)

        if trip.assigned_driver_id is not None:
            stage = assigned_stage(trip.status)
        elif now < opens_at:
            stage = Stage.WAITING
        elif now <= scheduled_at:
            stage = Stage.CLAIM_OPEN
        else:
            # unassigned after pickup time; needs manual intervention
            stage = Stage.WINDOW_PASSED

        remaining = claims_remaining(trip)
        return ClaimWindowState(
            stage=stage,
            claim_opens_at=opens_at,
            claims_remaining=remaining,
            can_claim_now=stage is Stage.CLAIM_OPEN and remaining > 0,
        )
