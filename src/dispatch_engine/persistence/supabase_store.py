"""Supabase-backed dispatch store.

Reads go through PostgREST table queries. The only write is the
``apply_trip_assignment`` Postgres function (see ``sql/dispatch_schema.sql``), which
locks the trip row and performs the check-and-set, claim update and audit insert in a
single transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..config import settings
from ..errors import ConcurrencyConflict, NotFoundError, UpstreamUnavailable
from ..models.domain import (
    AssignmentAudit,
    AuditKind,
    Claim,
    ClaimStatus,
    Driver,
    ScheduledTrip,
    TripStatus,
)
from ..services.geospatial import BoundingBox
from .base import AssignmentChange, StoreLayout

logger = logging.getLogger(__name__)

# SQLSTATE codes raised by apply_trip_assignment
SQLSTATE_CONFLICT = "40001"
SQLSTATE_NOT_FOUND = "P0002"


class SupabaseDispatchStore:
    def __init__(self, client: Optional[Client], layout: StoreLayout) -> None:
        self._client = client
        self.layout = layout

    def _require_client(self) -> Client:
        if self._client is None:
            raise UpstreamUnavailable(
                "Dispatch store not configured. Set DISPATCH_SUPABASE_URL and DISPATCH_SUPABASE_KEY."
            )
        return self._client

    def _execute(self, build: Callable[[Client], Any], action: str) -> Any:
        client = self._require_client()
        try:
            response = build(client).execute()
        except APIError as exc:
            if exc.code == SQLSTATE_CONFLICT:
                raise ConcurrencyConflict(exc.message or f"Conflict during {action}") from exc
            if exc.code == SQLSTATE_NOT_FOUND:
                raise NotFoundError(exc.message or f"Not found during {action}") from exc
            logger.warning(f"Supabase error during {action}: {exc.code} {exc.message}")
            raise UpstreamUnavailable(f"Store error during {action}: {exc.message}") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Supabase unreachable during {action}: {exc}")
            raise UpstreamUnavailable(f"Store unreachable during {action}") from exc
        return response.data

    def ping(self) -> bool:
        self._execute(lambda c: c.table(self.layout.trips_table).select("id").limit(1), "ping")
        return True

    def find_drivers_in_box(self, area: BoundingBox) -> list[Driver]:
        rows = self._execute(
            lambda c: c.table(self.layout.drivers_view)
            .select("*")
            .eq("available", True)
            .gte("latitude", area.min_lat)
            .lte("latitude", area.max_lat)
            .gte("longitude", area.min_lng)
            .lte("longitude", area.max_lng),
            "driver search",
        )
        return [driver_from_row(row) for row in rows or []]

    def get_drivers(self, driver_ids: Sequence[int]) -> dict[int, Driver]:
        if not driver_ids:
            return {}
        rows = self._execute(
            lambda c: c.table(self.layout.drivers_view).select("*").in_("driver_id", list(driver_ids)),
            "driver lookup",
        )
        drivers = [driver_from_row(row) for row in rows or []]
        return {driver.driver_id: driver for driver in drivers}

    def list_scheduled_trips(
        self,
        *,
        vehicle_type: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> list[ScheduledTrip]:
        def build(client: Client) -> Any:
            query = client.table(self.layout.trips_table).select("*")
            if vehicle_type:
                query = query.eq("vehicle_type", vehicle_type)
            if payment_status:
                query = query.eq("payment_status", payment_status)
            return query.order("scheduled_at").order("id")

        rows = self._execute(build, "scheduled trip listing")
        return [trip_from_row(row) for row in rows or []]

    def get_scheduled_trip(self, trip_id: int) -> Optional[ScheduledTrip]:
        rows = self._execute(
            lambda c: c.table(self.layout.trips_table).select("*").eq("id", trip_id).limit(1),
            "scheduled trip lookup",
        )
        return trip_from_row(rows[0]) if rows else None

    def list_claims(self, trip_id: int) -> list[Claim]:
        rows = self._execute(
            lambda c: c.table(self.layout.claims_table)
            .select("*")
            .eq("trip_id", trip_id)
            .order("created_at")
            .order("id"),
            "claim listing",
        )
        return [claim_from_row(row) for row in rows or []]

    def get_claim(self, claim_id: int) -> Optional[Claim]:
        rows = self._execute(
            lambda c: c.table(self.layout.claims_table).select("*").eq("id", claim_id).limit(1),
            "claim lookup",
        )
        return claim_from_row(rows[0]) if rows else None

    def list_audits(self, trip_id: int) -> list[AssignmentAudit]:
        rows = self._execute(
            lambda c: c.table(self.layout.audits_table)
            .select("*")
            .eq("trip_id", trip_id)
            .order("created_at", desc=True)
            .order("id", desc=True),
            "audit listing",
        )
        return [audit_from_row(row) for row in rows or []]

    def apply_assignment(self, change: AssignmentChange) -> AssignmentAudit:
        params = {
            "p_trip_id": change.trip_id,
            "p_expected_driver_id": change.expected_driver_id,
            "p_new_driver_id": change.new_driver_id,
            "p_claim_id": change.claim_id,
            "p_award_claim": change.award_claim,
            "p_kind": change.kind.value,
            "p_reason": change.reason,
            "p_actor_id": change.actor_id,
            "p_at": change.at.isoformat(),
            "p_from_statuses": [status.value for status in change.transition_from],
            "p_to_status": change.transition_to.value if change.transition_to else None,
            "p_blocked_statuses": [status.value for status in change.blocked_statuses],
            "p_metadata": change.metadata,
        }
        data = self._execute(lambda c: c.rpc(self.layout.assign_function, params), "assignment")
        row = data[0] if isinstance(data, list) else data
        if not row:
            raise UpstreamUnavailable("Assignment function returned no audit row")
        return audit_from_row(row)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _as_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def driver_from_row(row: dict[str, Any]) -> Driver:
    return Driver(
        driver_id=int(row["driver_id"]),
        name=row.get("name"),
        phone=row.get("phone"),
        latitude=_as_float(row.get("latitude")),
        longitude=_as_float(row.get("longitude")),
        available=bool(row.get("available")),
        active=bool(row.get("active", True)),
        location_updated_at=_as_datetime(row.get("location_updated_at")),
        rating=_as_float(row.get("rating")),
        total_trips=int(row.get("total_trips") or 0),
        accepted_trips=int(row.get("accepted_trips") or 0),
        total_distance_km=float(row.get("total_distance_km") or 0.0),
        total_reviews=int(row.get("total_reviews") or 0),
        is_vip=bool(row.get("is_vip")),
    )


def trip_from_row(row: dict[str, Any]) -> ScheduledTrip:
    window = row.get("claim_window_hours")
    limit = row.get("claim_limit")
    return ScheduledTrip(
        trip_id=int(row["id"]),
        trip_code=row.get("trip_code"),
        scheduled_at=_as_datetime(row["scheduled_at"]),
        status=TripStatus(row["status"]),
        payment_status=row.get("payment_status") or "UNPAID",
        claim_window_hours=int(window) if window is not None else settings.default_claim_window_hours,
        claim_limit=int(limit) if limit is not None else settings.default_claim_limit,
        claim_count=int(row.get("claim_count") or 0),
        assigned_driver_id=row.get("assigned_driver_id"),
        vehicle_type=row.get("vehicle_type"),
        pickup_address=row.get("pickup_address"),
        pickup_latitude=_as_float(row.get("pickup_latitude")),
        pickup_longitude=_as_float(row.get("pickup_longitude")),
        dropoff_address=row.get("dropoff_address"),
        dropoff_latitude=_as_float(row.get("dropoff_latitude")),
        dropoff_longitude=_as_float(row.get("dropoff_longitude")),
        amount=_as_float(row.get("amount")),
        currency=row.get("currency"),
        created_at=_as_datetime(row.get("created_at")),
    )


def claim_from_row(row: dict[str, Any]) -> Claim:
    return Claim(
        claim_id=int(row["id"]),
        trip_id=int(row["trip_id"]),
        driver_id=int(row["driver_id"]),
        status=ClaimStatus(row["status"]),
        created_at=_as_datetime(row["created_at"]),
        reviewed_at=_as_datetime(row.get("reviewed_at")),
        reviewed_by=row.get("reviewed_by"),
    )


def audit_from_row(row: dict[str, Any]) -> AssignmentAudit:
    return AssignmentAudit(
        audit_id=int(row["id"]),
        trip_id=int(row["trip_id"]),
        driver_id=row.get("driver_id"),
        claim_id=row.get("claim_id"),
        kind=AuditKind(row["kind"]),
        reason=row["reason"],
        actor_id=int(row["actor_id"]),
        created_at=_as_datetime(row["created_at"]),
        previous_driver_id=row.get("previous_driver_id"),
        metadata=row.get("metadata") or {},
    )
