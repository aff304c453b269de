"""Store contract shared by the Supabase and in-memory backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from ..models.domain import AssignmentAudit, AuditKind, Claim, Driver, ScheduledTrip, TripStatus
from ..services.geospatial import BoundingBox


@dataclass(frozen=True, slots=True)
class StoreLayout:
    """Names of the tables, views and functions the engine reads and writes.

    Resolved once per process from ``settings.store_schema_version``; the engine
    never probes the database for optional columns at request time.
    """

    version: int
    drivers_view: str
    trips_table: str
    claims_table: str
    audits_table: str
    assign_function: str


STORE_LAYOUTS: dict[int, StoreLayout] = {
    1: StoreLayout(
        version=1,
        drivers_view="driver_dispatch_profiles",
        trips_table="scheduled_trips",
        claims_table="scheduled_trip_claims",
        audits_table="trip_assignment_audits",
        assign_function="apply_trip_assignment",
    ),
}


def resolve_store_layout(version: int) -> StoreLayout:
    try:
        return STORE_LAYOUTS[version]
    except KeyError as exc:
        known = ", ".join(str(v) for v in sorted(STORE_LAYOUTS))
        raise ValueError(f"Unsupported store schema version {version}; known versions: {known}") from exc


@dataclass(frozen=True, slots=True)
class AssignmentChange:
    """One compare-and-set against a scheduled trip's assignment.

    ``expected_driver_id`` is the driver the caller observed; the store applies the
    change only if the trip still has exactly that driver (``None`` meaning unassigned),
    its status is not in ``blocked_statuses``, and, when ``award_claim`` is set, the
    claim is still PENDING and belongs to the trip.

    The lifecycle status moves to ``transition_to`` only if the locked row is still in
    one of ``transition_from``; any other status is left as the store finds it.
    """

    trip_id: int
    expected_driver_id: Optional[int]
    new_driver_id: Optional[int]
    claim_id: Optional[int]
    kind: AuditKind
    reason: str
    actor_id: int
    at: datetime
    award_claim: bool = False
    transition_from: tuple[TripStatus, ...] = ()
    transition_to: Optional[TripStatus] = None
    blocked_statuses: tuple[TripStatus, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)


class DispatchStore(Protocol):
    def ping(self) -> bool: ...

    def find_drivers_in_box(self, area: BoundingBox) -> list[Driver]: ...

    def get_drivers(self, driver_ids: Sequence[int]) -> dict[int, Driver]: ...

    def list_scheduled_trips(
        self,
        *,
        vehicle_type: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> list[ScheduledTrip]: ...

    def get_scheduled_trip(self, trip_id: int) -> Optional[ScheduledTrip]: ...

    def list_claims(self, trip_id: int) -> list[Claim]: ...

    def get_claim(self, claim_id: int) -> Optional[Claim]: ...

    def list_audits(self, trip_id: int) -> list[AssignmentAudit]: ...

    def apply_assignment(self, change: AssignmentChange) -> AssignmentAudit: ...
