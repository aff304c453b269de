"""Award, reassign and unassign scheduled trips.

The arbiter is the only writer of trip assignments. Each operation validates its
input, checks preconditions against a fresh read so callers get a precise error,
then hands the store one compare-and-set (``AssignmentChange``) that re-verifies
the same preconditions atomically with the write. A concurrent change between the
read and the commit surfaces as ``ConcurrencyConflict``; nothing is overwritten.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ...errors import ConcurrencyConflict, DispatchError, NotFoundError, ValidationError
from ...models.domain import (
    Actor,
    AssignmentAudit,
    AuditKind,
    Claim,
    ClaimStatus,
    ScheduledTrip,
    TripStatus,
)
from ...persistence.base import AssignmentChange, DispatchStore
from ..notifications import DriverNotifier, LoggingNotifier

logger = logging.getLogger(__name__)

REASSIGN_BLOCKED_STATUSES = (TripStatus.IN_PROGRESS, TripStatus.COMPLETED, TripStatus.CANCELED)
UNASSIGN_RESETS_STATUSES = (TripStatus.ASSIGNED, TripStatus.CONFIRMED)
ASSIGN_ADVANCES_STATUSES = (TripStatus.PENDING_ASSIGNMENT,)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_reason(reason: Any) -> str:
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("A non-empty reason is required")
    return reason.strip()


def require_id(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"Malformed {label}: {value!r}")
    return value


class AssignmentArbiter:
    def __init__(
        self,
        store: DispatchStore,
        notifier: Optional[DriverNotifier] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock

    def award(self, trip_id: int, claim_id: int, reason: str, actor: Actor) -> AssignmentAudit:
        """Give an unassigned trip to the driver behind a PENDING claim.

        Other pending claims on the trip are left untouched.
        """
        reason = require_reason(reason)
        trip_id = require_id(trip_id, "trip id")
        claim_id = require_id(claim_id, "claim id")

        trip = self._load_trip(trip_id)
        claim = self._load_claim(trip_id, claim_id)
        if trip.assigned_driver_id is not None:
            raise ConcurrencyConflict(
                f"Trip {trip_id} already has driver {trip.assigned_driver_id}; use reassign instead"
            )
        if claim.status is not ClaimStatus.PENDING:
            raise ConcurrencyConflict(f"Claim {claim_id} is already {claim.status.value}")

        change = AssignmentChange(
            trip_id=trip_id,
            expected_driver_id=None,
            new_driver_id=claim.driver_id,
            claim_id=claim_id,
            kind=AuditKind.ASSIGN,
            reason=reason,
            actor_id=actor.actor_id,
            at=self.clock(),
            award_claim=True,
            transition_from=ASSIGN_ADVANCES_STATUSES,
            transition_to=TripStatus.ASSIGNED,
            metadata={"action": "award"},
        )
        audit = self._commit(change, "award")
        self._notify_assigned(trip, claim.driver_id, audit)
        return audit

    def reassign(self, trip_id: int, claim_id: int, reason: str, actor: Actor) -> AssignmentAudit:
        """Move an assigned trip to another claimant.

        An administrative override: the backing claim's own status is not changed.
        """
        reason = require_reason(reason)
        trip_id = require_id(trip_id, "trip id")
        claim_id = require_id(claim_id, "claim id")

        trip = self._load_trip(trip_id)
        claim = self._load_claim(trip_id, claim_id)
        if trip.status in REASSIGN_BLOCKED_STATUSES:
            raise ConcurrencyConflict(f"Trip {trip_id} is {trip.status.value} and cannot be reassigned")
        current_driver_id = trip.assigned_driver_id
        if current_driver_id is None:
            raise ConcurrencyConflict(f"Trip {trip_id} has no assigned driver; use award instead")
        if claim.driver_id == current_driver_id:
            raise ValidationError(f"Driver {claim.driver_id} is already assigned to trip {trip_id}")

        change = AssignmentChange(
            trip_id=trip_id,
            expected_driver_id=current_driver_id,
            new_driver_id=claim.driver_id,
            claim_id=claim_id,
            kind=AuditKind.ASSIGN,
            reason=reason,
            actor_id=actor.actor_id,
            at=self.clock(),
            transition_from=ASSIGN_ADVANCES_STATUSES,
            transition_to=TripStatus.ASSIGNED,
            blocked_statuses=REASSIGN_BLOCKED_STATUSES,
            metadata={"action": "reassign", "displaced_driver_id": current_driver_id},
        )
        audit = self._commit(change, "reassign")
        self._notify_unassigned(trip, current_driver_id, audit)
        self._notify_assigned(trip, claim.driver_id, audit)
        return audit

    def unassign(self, trip_id: int, reason: str, actor: Actor) -> AssignmentAudit:
        reason = require_reason(reason)
        trip_id = require_id(trip_id, "trip id")

        trip = self._load_trip(trip_id)
        current_driver_id = trip.assigned_driver_id
        if current_driver_id is None:
            raise ConcurrencyConflict(f"Trip {trip_id} has no assigned driver")

        change = AssignmentChange(
            trip_id=trip_id,
            expected_driver_id=current_driver_id,
            new_driver_id=None,
            claim_id=None,
            kind=AuditKind.UNASSIGN,
            reason=reason,
            actor_id=actor.actor_id,
            at=self.clock(),
            transition_from=UNASSIGN_RESETS_STATUSES,
            transition_to=TripStatus.PENDING_ASSIGNMENT,
            metadata={"action": "unassign", "displaced_driver_id": current_driver_id},
        )
        audit = self._commit(change, "unassign")
        self._notify_unassigned(trip, current_driver_id, audit)
        return audit

    def _load_trip(self, trip_id: int) -> ScheduledTrip:
        trip = self.store.get_scheduled_trip(trip_id)
        if trip is None:
            raise NotFoundError(f"Scheduled trip {trip_id} not found")
        return trip

    def _load_claim(self, trip_id: int, claim_id: int) -> Claim:
        claim = self.store.get_claim(claim_id)
        if claim is None or claim.trip_id != trip_id:
            raise NotFoundError(f"Claim {claim_id} not found for trip {trip_id}")
        return claim

    def _commit(self, change: AssignmentChange, action: str) -> AssignmentAudit:
        try:
            audit = self.store.apply_assignment(change)
        except DispatchError as exc:
            logger.info(f"Rejected {action} on trip {change.trip_id} by actor {change.actor_id}: {exc}")
            raise
        logger.info(
            f"{action.capitalize()} trip {change.trip_id}: driver {change.expected_driver_id} -> "
            f"{change.new_driver_id} (claim {change.claim_id}, actor {change.actor_id}, audit {audit.audit_id})"
        )
        return audit

    def _notify_assigned(self, trip: ScheduledTrip, driver_id: int, audit: AssignmentAudit) -> None:
        try:
            self.notifier.driver_assigned(trip, driver_id, audit)
        except Exception as exc:
            logger.warning(f"Failed to notify driver {driver_id} about trip {trip.trip_id}: {exc}")

    def _notify_unassigned(self, trip: ScheduledTrip, driver_id: int, audit: AssignmentAudit) -> None:
        try:
            self.notifier.driver_unassigned(trip, driver_id, audit)
        except Exception as exc:
            logger.warning(f"Failed to notify driver {driver_id} about trip {trip.trip_id}: {exc}")
