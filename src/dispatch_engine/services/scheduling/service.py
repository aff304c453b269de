"""Admin read models for scheduled trips: paginated list and trip detail."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...config import settings
from ...errors import NotFoundError, ValidationError
from ...models.domain import AssignmentAudit, Claim, Driver, ScheduledTrip, Stage
from ...persistence.base import DispatchStore
from ...schemas.scheduled import (
    AssignmentAuditModel,
    ClaimDriverModel,
    ClaimModel,
    ClaimRecommendationModel,
    LocationModel,
    ScheduledTripDetailResponse,
    ScheduledTripListResponse,
    ScheduledTripModel,
)
from ..assignment.audit import AuditTrail
from ..matching.policy import MatchingPolicy, default_matching_policy
from ..matching.scoring import classify_tier, driver_rating
from .claim_window import ClaimWindowScheduler, ClaimWindowState
from .recommendations import ClaimRecommendation, recommend_claims

ALL_STAGES = "all"


def parse_stage(value: Optional[str]) -> Optional[Stage]:
    """Map the ``stage`` query value to a Stage; ``None``/``all`` disables the filter."""
    if value is None or value.strip().lower() in {"", ALL_STAGES}:
        return None
    try:
        return Stage(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join([ALL_STAGES, *(stage.value for stage in Stage)])
        raise ValidationError(f"Unknown stage '{value}'. Expected one of: {allowed}") from exc


def trip_to_model(trip: ScheduledTrip, window: ClaimWindowState) -> ScheduledTripModel:
    return ScheduledTripModel(
        id=trip.trip_id,
        tripCode=trip.trip_code,
        driverId=trip.assigned_driver_id,
        pickup=LocationModel(
            address=trip.pickup_address,
            latitude=trip.pickup_latitude,
            longitude=trip.pickup_longitude,
        ),
        dropoff=LocationModel(
            address=trip.dropoff_address,
            latitude=trip.dropoff_latitude,
            longitude=trip.dropoff_longitude,
        ),
        scheduledAt=trip.scheduled_at,
        vehicleType=trip.vehicle_type,
        amount=trip.amount,
        currency=trip.currency,
        status=trip.status.value,
        paymentStatus=trip.payment_status,
        stage=window.stage.value,
        claimWindowHours=trip.claim_window_hours,
        claimOpensAt=window.claim_opens_at,
        canClaimNow=window.can_claim_now,
        claimCount=trip.claim_count,
        claimLimit=trip.claim_limit,
        claimsRemaining=window.claims_remaining,
        createdAt=trip.created_at,
    )


def audit_to_model(audit: AssignmentAudit) -> AssignmentAuditModel:
    return AssignmentAuditModel(
        id=audit.audit_id,
        kind=audit.kind.value,
        driverId=audit.driver_id,
        previousDriverId=audit.previous_driver_id,
        claimId=audit.claim_id,
        reason=audit.reason,
        actorId=audit.actor_id,
        createdAt=audit.created_at,
        metadata=dict(audit.metadata),
    )


def _claim_to_model(
    claim: Claim,
    driver: Optional[Driver],
    recommendation: Optional[ClaimRecommendation],
    policy: MatchingPolicy,
) -> ClaimModel:
    driver_model = None
    if driver is not None:
        driver_model = ClaimDriverModel(
            id=driver.driver_id,
            name=driver.name,
            phone=driver.phone,
            rating=driver_rating(driver, policy),
            level=classify_tier(driver, policy).value,
            isVip=driver.is_vip,
        )
    return ClaimModel(
        id=claim.claim_id,
        driverId=claim.driver_id,
        status=claim.status.value,
        createdAt=claim.created_at,
        reviewedAt=claim.reviewed_at,
        reviewedBy=claim.reviewed_by,
        driver=driver_model,
        recommendation=ClaimRecommendationModel(
            recommended=recommendation.recommended,
            score=recommendation.score,
            reasons=list(recommendation.reasons),
        )
        if recommendation
        else None,
    )


def list_scheduled_trips(
    store: DispatchStore,
    *,
    stage: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    payment_status: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    now: Optional[datetime] = None,
    scheduler: Optional[ClaimWindowScheduler] = None,
) -> ScheduledTripListResponse:
    """Filter, derive stage and paginate. Stage is computed here, never stored."""

    if page < 1:
        raise ValidationError("page must be >= 1")
    if page_size < 1:
        raise ValidationError("pageSize must be >= 1")
    page_size = min(page_size, settings.scheduled_page_size_max)
    stage_filter = parse_stage(stage)
    scheduler = scheduler or ClaimWindowScheduler()
    now = now or scheduler.clock()

    rows: list[ScheduledTripModel] = []
    for trip in store.list_scheduled_trips(vehicle_type=vehicle_type, payment_status=payment_status):
        window = scheduler.evaluate(trip, now)
        if stage_filter is not None and window.stage is not stage_filter:
            continue
        rows.append(trip_to_model(trip, window))

    offset = (page - 1) * page_size
    items = rows[offset : offset + page_size]
    return ScheduledTripListResponse(
        items=items,
        total=len(rows),
        page=page,
        pageSize=page_size,
        hasNextPage=(offset + len(items)) < len(rows),
    )


def get_scheduled_trip_detail(
    store: DispatchStore,
    trip_id: int,
    *,
    now: Optional[datetime] = None,
    scheduler: Optional[ClaimWindowScheduler] = None,
    policy: Optional[MatchingPolicy] = None,
) -> ScheduledTripDetailResponse:
    trip = store.get_scheduled_trip(trip_id)
    if trip is None:
        raise NotFoundError(f"Scheduled trip {trip_id} not found")
    scheduler = scheduler or ClaimWindowScheduler()
    policy = policy or default_matching_policy()

    claims = store.list_claims(trip_id)
    drivers = store.get_drivers(sorted({claim.driver_id for claim in claims}))
    recommendations = recommend_claims(claims, drivers, policy)
    history = AuditTrail(store).history(trip_id)

    return ScheduledTripDetailResponse(
        booking=trip_to_model(trip, scheduler.evaluate(trip, now)),
        claims=[
            _claim_to_model(claim, drivers.get(claim.driver_id), recommendations.get(claim.claim_id), policy)
            for claim in claims
        ],
        assignmentAudit=audit_to_model(history[0]) if history else None,
        assignmentAudits=[audit_to_model(audit) for audit in history],
    )
