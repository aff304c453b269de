"""In-memory sandbox store for local runs and tests.

Never selected implicitly: production uses the Supabase store and ``store_backend``
must be set to ``memory`` explicitly.
"""

from __future__ import annotations

import itertools
import json
import logging
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from ..errors import ConcurrencyConflict, NotFoundError
from ..models.domain import (
    AssignmentAudit,
    Claim,
    ClaimStatus,
    Driver,
    ScheduledTrip,
    TripStatus,
)
from ..services.geospatial import BoundingBox
from .base import AssignmentChange

logger = logging.getLogger(__name__)


class InMemoryDispatchStore:
    """Dictionary-backed store; a single lock makes every write a compare-and-set."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._drivers: dict[int, Driver] = {}
        self._trips: dict[int, ScheduledTrip] = {}
        self._claims: dict[int, Claim] = {}
        self._audits: list[AssignmentAudit] = []
        self._audit_ids = itertools.count(1)

    # seeding

    def add_driver(self, driver: Driver) -> Driver:
        with self._lock:
            self._drivers[driver.driver_id] = replace(driver)
        return driver

    def add_trip(self, trip: ScheduledTrip) -> ScheduledTrip:
        if trip.claim_limit < 0 or trip.claim_count < 0:
            raise ValueError(f"Trip {trip.trip_id} has a negative claim limit or count")
        if trip.claim_count > trip.claim_limit:
            raise ValueError(
                f"Trip {trip.trip_id} has {trip.claim_count} claims, above its limit of {trip.claim_limit}"
            )
        with self._lock:
            self._trips[trip.trip_id] = replace(trip)
        return trip

    def add_claim(self, claim: Claim) -> Claim:
        with self._lock:
            if claim.trip_id not in self._trips:
                raise NotFoundError(f"Trip {claim.trip_id} not found")
            self._claims[claim.claim_id] = replace(claim)
        return claim

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryDispatchStore":
        """Build a sandbox store from a fixture with ``drivers``, ``trips`` and ``claims`` lists."""
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        store = cls()
        for row in payload.get("drivers", []):
            store.add_driver(Driver(**_parse_datetimes(row, "location_updated_at")))
        for row in payload.get("trips", []):
            row = _parse_datetimes(row, "scheduled_at", "created_at")
            row["status"] = TripStatus(row.get("status", TripStatus.PENDING_ASSIGNMENT.value))
            store.add_trip(ScheduledTrip(**row))
        for row in payload.get("claims", []):
            row = _parse_datetimes(row, "created_at", "reviewed_at")
            row["status"] = ClaimStatus(row.get("status", ClaimStatus.PENDING.value))
            store.add_claim(Claim(**row))
        logger.info(
            f"Loaded sandbox store from {path}: {len(store._drivers)} drivers, "
            f"{len(store._trips)} trips, {len(store._claims)} claims"
        )
        return store

    # reads

    def ping(self) -> bool:
        return True

    def find_drivers_in_box(self, area: BoundingBox) -> list[Driver]:
        with self._lock:
            return [
                replace(driver)
                for driver in self._drivers.values()
                if driver.available
                and driver.has_location
                and area.contains(driver.latitude, driver.longitude)
            ]

    def get_drivers(self, driver_ids: Sequence[int]) -> dict[int, Driver]:
        with self._lock:
            return {
                driver_id: replace(self._drivers[driver_id])
                for driver_id in driver_ids
                if driver_id in self._drivers
            }

    def list_scheduled_trips(
        self,
        *,
        vehicle_type: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> list[ScheduledTrip]:
        with self._lock:
            trips = [
                replace(trip)
                for trip in self._trips.values()
                if (vehicle_type is None or trip.vehicle_type == vehicle_type)
                and (payment_status is None or trip.payment_status == payment_status)
            ]
        return sorted(trips, key=lambda trip: (trip.scheduled_at, trip.trip_id))

    def get_scheduled_trip(self, trip_id: int) -> Optional[ScheduledTrip]:
        with self._lock:
            trip = self._trips.get(trip_id)
            return replace(trip) if trip else None

    def list_claims(self, trip_id: int) -> list[Claim]:
        with self._lock:
            claims = [replace(claim) for claim in self._claims.values() if claim.trip_id == trip_id]
        return sorted(claims, key=lambda claim: (claim.created_at, claim.claim_id))

    def get_claim(self, claim_id: int) -> Optional[Claim]:
        with self._lock:
            claim = self._claims.get(claim_id)
            return replace(claim) if claim else None

    def list_audits(self, trip_id: int) -> list[AssignmentAudit]:
        with self._lock:
            audits = [audit for audit in self._audits if audit.trip_id == trip_id]
        return sorted(audits, key=lambda audit: (audit.created_at, audit.audit_id), reverse=True)

    # writes

    def apply_assignment(self, change: AssignmentChange) -> AssignmentAudit:
        with self._lock:
            trip = self._trips.get(change.trip_id)
            if trip is None:
                raise NotFoundError(f"Trip {change.trip_id} not found")
            if trip.assigned_driver_id != change.expected_driver_id:
                raise ConcurrencyConflict(
                    f"Trip {change.trip_id} assignment changed concurrently "
                    f"(expected driver {change.expected_driver_id}, found {trip.assigned_driver_id})"
                )
            if trip.status in change.blocked_statuses:
                raise ConcurrencyConflict(f"Trip {change.trip_id} is {trip.status.value}")

            claim: Optional[Claim] = None
            if change.award_claim:
                claim = self._claims.get(change.claim_id) if change.claim_id is not None else None
                if claim is None or claim.trip_id != change.trip_id:
                    raise NotFoundError(f"Claim {change.claim_id} not found for trip {change.trip_id}")
                if claim.status is not ClaimStatus.PENDING:
                    raise ConcurrencyConflict(f"Claim {claim.claim_id} is already {claim.status.value}")

            # all checks passed; nothing below can fail
            trip.assigned_driver_id = change.new_driver_id
            if change.transition_to is not None and trip.status in change.transition_from:
                trip.status = change.transition_to
            if claim is not None:
                claim.status = ClaimStatus.AWARDED
                claim.reviewed_at = change.at
                claim.reviewed_by = change.actor_id

            audit = AssignmentAudit(
                audit_id=next(self._audit_ids),
                trip_id=change.trip_id,
                driver_id=change.new_driver_id,
                claim_id=change.claim_id,
                kind=change.kind,
                reason=change.reason,
                actor_id=change.actor_id,
                created_at=change.at,
                previous_driver_id=change.expected_driver_id,
                metadata=dict(change.metadata),
            )
            self._audits.append(audit)
            return audit


def _parse_datetimes(row: dict[str, Any], *keys: str) -> dict[str, Any]:
    parsed = dict(row)
    for key in keys:
        value = parsed.get(key)
        if isinstance(value, str):
            parsed[key] = datetime.fromisoformat(value)
    return parsed
