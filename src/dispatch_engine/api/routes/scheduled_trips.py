"""Admin endpoints for scheduled-trip claims and assignment."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import DispatchError
from ...models.domain import Actor, AssignmentAudit
from ...persistence.base import DispatchStore
from ...persistence.factory import get_dispatch_store
from ...schemas.scheduled import (
    AssignmentActionResponse,
    AwardRequest,
    ScheduledTripDetailResponse,
    ScheduledTripListResponse,
    UnassignRequest,
)
from ...services.assignment import AssignmentArbiter
from ...services.notifications import DriverNotifier, LoggingNotifier
from ...services.scheduling import (
    ClaimWindowScheduler,
    audit_to_model,
    get_scheduled_trip_detail,
    list_scheduled_trips,
    trip_to_model,
)
from ..deps import ROLE_ADMIN, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/drivers/trips/scheduled", tags=["scheduled-trips"])

require_admin = require_roles(ROLE_ADMIN)


@lru_cache(maxsize=1)
def get_driver_notifier() -> DriverNotifier:
    return LoggingNotifier()


def _run(action: str, call: Callable[[], object]):
    try:
        return call()
    except DispatchError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error during {action}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}. Please try again.",
        ) from exc


def _action_response(store: DispatchStore, audit: AssignmentAudit) -> AssignmentActionResponse:
    """Pair the committed audit with a fresh view of the trip.

    The change is already committed, so a failed re-read still returns the audit
    with ``booking`` left empty.
    """
    booking = None
    try:
        trip = store.get_scheduled_trip(audit.trip_id)
    except DispatchError as exc:
        logger.warning(f"Could not reload trip {audit.trip_id} after audit {audit.audit_id}: {exc}")
        trip = None
    if trip is not None:
        booking = trip_to_model(trip, ClaimWindowScheduler().evaluate(trip))
    return AssignmentActionResponse(booking=booking, audit=audit_to_model(audit))


@router.get("", response_model=ScheduledTripListResponse, status_code=status.HTTP_200_OK)
def list_trips(
    stage: str | None = Query(default=None, description="Stage filter, or 'all'"),
    vehicle_type: str | None = Query(default=None, alias="vehicleType"),
    payment_status: str | None = Query(default=None, alias="paymentStatus"),
    page: int = Query(default=1, ge=1, description="1-based page index"),
    page_size: int = Query(default=20, ge=1, alias="pageSize", description="Rows per page"),
    store: DispatchStore = Depends(get_dispatch_store),
    actor: Actor = Depends(require_admin),
) -> ScheduledTripListResponse:
    return _run(
        "list scheduled trips",
        lambda: list_scheduled_trips(
            store,
            stage=stage,
            vehicle_type=vehicle_type,
            payment_status=payment_status,
            page=page,
            page_size=page_size,
        ),
    )


@router.get("/{trip_id}", response_model=ScheduledTripDetailResponse, status_code=status.HTTP_200_OK)
def get_trip(
    trip_id: int,
    store: DispatchStore = Depends(get_dispatch_store),
    actor: Actor = Depends(require_admin),
) -> ScheduledTripDetailResponse:
    return _run("load scheduled trip", lambda: get_scheduled_trip_detail(store, trip_id))


@router.post("/{trip_id}/award", response_model=AssignmentActionResponse, status_code=status.HTTP_200_OK)
def award_trip(
    trip_id: int,
    payload: AwardRequest,
    store: DispatchStore = Depends(get_dispatch_store),
    notifier: DriverNotifier = Depends(get_driver_notifier),
    actor: Actor = Depends(require_admin),
) -> AssignmentActionResponse:
    """Give an unassigned trip to a pending claimant."""
    arbiter = AssignmentArbiter(store, notifier)
    audit = _run("award trip", lambda: arbiter.award(trip_id, payload.claimId, payload.reason, actor))
    return _run("load scheduled trip", lambda: _action_response(store, audit))


@router.post("/{trip_id}/reassign", response_model=AssignmentActionResponse, status_code=status.HTTP_200_OK)
def reassign_trip(
    trip_id: int,
    payload: AwardRequest,
    store: DispatchStore = Depends(get_dispatch_store),
    notifier: DriverNotifier = Depends(get_driver_notifier),
    actor: Actor = Depends(require_admin),
) -> AssignmentActionResponse:
    """Move an assigned trip to a different claimant."""
    arbiter = AssignmentArbiter(store, notifier)
    audit = _run("reassign trip", lambda: arbiter.reassign(trip_id, payload.claimId, payload.reason, actor))
    return _run("load scheduled trip", lambda: _action_response(store, audit))


@router.post("/{trip_id}/unassign", response_model=AssignmentActionResponse, status_code=status.HTTP_200_OK)
def unassign_trip(
    trip_id: int,
    payload: UnassignRequest,
    store: DispatchStore = Depends(get_dispatch_store),
    notifier: DriverNotifier = Depends(get_driver_notifier),
    actor: Actor = Depends(require_admin),
) -> AssignmentActionResponse:
    arbiter = AssignmentArbiter(store, notifier)
    audit = _run("unassign trip", lambda: arbiter.unassign(trip_id, payload.reason, actor))
    return _run("load scheduled trip", lambda: _action_response(store, audit))
