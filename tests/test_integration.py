import math
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from src.dispatch_engine.api.deps import ROLE_ADMIN, ensure_role
from src.dispatch_engine.api.routes.scheduled_trips import get_driver_notifier
from src.dispatch_engine.errors import AuthorizationError, UpstreamUnavailable
from src.dispatch_engine.main import create_app
from src.dispatch_engine.models.domain import Actor, Claim, ClaimStatus, Driver, ScheduledTrip, TripStatus
from src.dispatch_engine.persistence.factory import get_dispatch_store
from src.dispatch_engine.persistence.memory import InMemoryDispatchStore

KM_PER_DEGREE = math.pi * 6371.0 / 180.0
ADMIN = {"X-Actor-Id": "42", "X-Actor-Role": "ADMIN"}
DRIVER = {"X-Actor-Id": "7", "X-Actor-Role": "driver"}
SCHEDULED = "/api/admin/drivers/trips/scheduled"


def _seed_store() -> InMemoryDispatchStore:
    store = InMemoryDispatchStore()
    store.add_driver(
        Driver(
            driver_id=100,
            name="Asha",
            phone="+255700000100",
            latitude=0.5 / KM_PER_DEGREE,
            longitude=0.0,
            available=True,
            rating=4.8,
            total_trips=60,
            accepted_trips=57,
        )
    )
    store.add_driver(
        Driver(
            driver_id=101,
            name="Baraka",
            phone="+255700000101",
            latitude=2.9 / KM_PER_DEGREE,
            longitude=0.0,
            available=True,
            rating=4.2,
            total_trips=200,
            accepted_trips=180,
        )
    )
    now = datetime.now(timezone.utc)
    store.add_trip(
        ScheduledTrip(
            trip_id=1,
            trip_code="TRIP-0001",
            scheduled_at=now + timedelta(hours=6),
            status=TripStatus.PENDING_ASSIGNMENT,
            payment_status="PAID",
            claim_window_hours=24,
            claim_limit=3,
            claim_count=2,
            vehicle_type="SEDAN",
        )
    )
    store.add_trip(
        ScheduledTrip(
            trip_id=2,
            trip_code="TRIP-0002",
            scheduled_at=now + timedelta(hours=48),
            status=TripStatus.PENDING_ASSIGNMENT,
            payment_status="UNPAID",
            claim_window_hours=24,
            claim_limit=3,
            claim_count=0,
            vehicle_type="VAN",
        )
    )
    store.add_claim(Claim(claim_id=10, trip_id=1, driver_id=100, status=ClaimStatus.PENDING, created_at=now - timedelta(hours=2)))
    store.add_claim(Claim(claim_id=11, trip_id=1, driver_id=101, status=ClaimStatus.PENDING, created_at=now - timedelta(hours=1)))
    return store


class RecordingNotifier:
    def __init__(self) -> None:
        self.assigned: list[int] = []

    def driver_assigned(self, trip, driver_id, audit) -> None:
        self.assigned.append(driver_id)

    def driver_unassigned(self, trip, driver_id, audit) -> None:
        pass


@pytest.fixture()
def store() -> InMemoryDispatchStore:
    return _seed_store()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def client(store: InMemoryDispatchStore, notifier: RecordingNotifier) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_dispatch_store] = lambda: store
    app.dependency_overrides[get_driver_notifier] = lambda: notifier
    return TestClient(app)


def test_health_endpoints(client: TestClient) -> None:
    assert client.get("/api/health").json() == {"status": "ok"}
    body = client.get("/api/health/store").json()
    assert body["healthy"] is True


def test_matching_requires_identity(client: TestClient) -> None:
    response = client.post("/api/driver/matching/find", json={"pickupLat": 0.0, "pickupLng": 0.0})

    assert response.status_code == 401


def test_matching_rejects_other_roles(client: TestClient) -> None:
    response = client.post(
        "/api/driver/matching/find",
        json={"pickupLat": 0.0, "pickupLng": 0.0},
        headers={"X-Actor-Id": "5", "X-Actor-Role": "CUSTOMER"},
    )

    assert response.status_code == 403


def test_matching_endpoint_returns_best_driver(client: TestClient) -> None:
    response = client.post(
        "/api/driver/matching/find",
        json={"pickupLat": 0.0, "pickupLng": 0.0, "tripType": "Standard"},
        headers=DRIVER,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["matched"] is True
    assert body["bestDriver"]["id"] == 100
    assert body["bestDriver"]["level"] == "Gold"
    assert body["bestDriver"]["acceptanceRate"] == 95
    assert [d["id"] for d in body["alternatives"]] == [101]
    assert len(body["allCandidates"]) == 2


def test_matching_endpoint_validates_coordinates(client: TestClient) -> None:
    response = client.post(
        "/api/driver/matching/find",
        json={"pickupLat": 123.0, "pickupLng": 0.0},
        headers=ADMIN,
    )

    assert response.status_code == 422


def test_matching_endpoint_without_drivers(client: TestClient) -> None:
    response = client.post(
        "/api/driver/matching/find",
        json={"pickupLat": 45.0, "pickupLng": 45.0},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json() == {
        "matched": False,
        "message": "No available drivers found within 3 km",
        "drivers": [],
        "degraded": False,
    }


def test_matching_endpoint_degrades_when_store_down(store: InMemoryDispatchStore, client: TestClient, monkeypatch) -> None:
    def unavailable(area):
        raise UpstreamUnavailable("timeout")

    monkeypatch.setattr(store, "find_drivers_in_box", unavailable)

    response = client.post(
        "/api/driver/matching/find",
        json={"pickupLat": 0.0, "pickupLng": 0.0},
        headers=ADMIN,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["matched"] is False
    assert body["degraded"] is True


def test_scheduled_endpoints_are_admin_only(client: TestClient) -> None:
    assert client.get(SCHEDULED, headers=DRIVER).status_code == 403
    assert client.get(SCHEDULED).status_code == 401


def test_malformed_actor_id_is_unauthorized(client: TestClient) -> None:
    response = client.get(SCHEDULED, headers={"X-Actor-Id": "abc", "X-Actor-Role": "ADMIN"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Caller identity is malformed."


def test_wrong_role_reports_authorization_error(client: TestClient) -> None:
    response = client.get(SCHEDULED, headers=DRIVER)

    assert response.status_code == AuthorizationError.status_code
    assert response.json()["detail"] == "Role DRIVER may not perform this action."


def test_ensure_role_raises_authorization_error() -> None:
    admin = Actor(actor_id=1, role="ADMIN")
    driver = Actor(actor_id=7, role="DRIVER")

    assert ensure_role(admin, {ROLE_ADMIN}) is admin
    with pytest.raises(AuthorizationError):
        ensure_role(driver, {ROLE_ADMIN})


def test_list_scheduled_trips(client: TestClient) -> None:
    response = client.get(SCHEDULED, params={"stage": "claim_open", "pageSize": 10}, headers=ADMIN)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["hasNextPage"] is False
    row = body["items"][0]
    assert row["id"] == 1
    assert row["stage"] == "claim_open"
    assert row["claimsRemaining"] == 1
    assert row["canClaimNow"] is True
    assert row["claimWindowHours"] == 24


def test_list_rejects_unknown_stage(client: TestClient) -> None:
    response = client.get(SCHEDULED, params={"stage": "later"}, headers=ADMIN)

    assert response.status_code == 400


def test_award_then_detail(client: TestClient, notifier: RecordingNotifier) -> None:
    response = client.post(f"{SCHEDULED}/1/award", json={"claimId": 10, "reason": "Best rated"}, headers=ADMIN)

    assert response.status_code == 200
    body = response.json()
    assert body["booking"]["driverId"] == 100
    assert body["booking"]["stage"] == "assigned"
    assert body["audit"]["kind"] == "ASSIGN"
    assert body["audit"]["actorId"] == 42
    assert notifier.assigned == [100]

    detail = client.get(f"{SCHEDULED}/1", headers=ADMIN).json()
    assert detail["booking"]["status"] == "ASSIGNED"
    assert [c["status"] for c in detail["claims"]] == ["AWARDED", "PENDING"]
    assert detail["assignmentAudit"]["reason"] == "Best rated"
    assert len(detail["assignmentAudits"]) == 1


def test_second_award_conflicts(client: TestClient) -> None:
    client.post(f"{SCHEDULED}/1/award", json={"claimId": 10, "reason": "First"}, headers=ADMIN)

    response = client.post(f"{SCHEDULED}/1/award", json={"claimId": 11, "reason": "Second"}, headers=ADMIN)

    assert response.status_code == 409


def test_award_with_blank_reason_is_bad_request(client: TestClient) -> None:
    response = client.post(f"{SCHEDULED}/1/award", json={"claimId": 10, "reason": "   "}, headers=ADMIN)

    assert response.status_code == 400


def test_award_unknown_trip_is_not_found(client: TestClient) -> None:
    response = client.post(f"{SCHEDULED}/99/award", json={"claimId": 10, "reason": "Reason"}, headers=ADMIN)

    assert response.status_code == 404


def test_reassign_and_unassign_flow(client: TestClient, store: InMemoryDispatchStore) -> None:
    client.post(f"{SCHEDULED}/1/award", json={"claimId": 10, "reason": "Initial"}, headers=ADMIN)

    reassigned = client.post(f"{SCHEDULED}/1/reassign", json={"claimId": 11, "reason": "Swap driver"}, headers=ADMIN)
    assert reassigned.status_code == 200
    assert reassigned.json()["booking"]["driverId"] == 101
    assert reassigned.json()["audit"]["previousDriverId"] == 100

    unassigned = client.post(f"{SCHEDULED}/1/unassign", json={"reason": "Customer request"}, headers=ADMIN)
    assert unassigned.status_code == 200
    assert unassigned.json()["booking"]["driverId"] is None
    assert unassigned.json()["booking"]["stage"] == "claim_open"

    history = client.get(f"{SCHEDULED}/1", headers=ADMIN).json()["assignmentAudits"]
    assert [audit["kind"] for audit in history] == ["UNASSIGN", "ASSIGN", "ASSIGN"]
    assert store.get_scheduled_trip(1).status is TripStatus.PENDING_ASSIGNMENT


def test_unassign_without_driver_conflicts(client: TestClient) -> None:
    response = client.post(f"{SCHEDULED}/2/unassign", json={"reason": "Nothing to do"}, headers=ADMIN)

    assert response.status_code == 409


def _fail_after_first_read(store: InMemoryDispatchStore, monkeypatch, failure) -> None:
    original = store.get_scheduled_trip
    calls = {"count": 0}

    def get_scheduled_trip(trip_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return original(trip_id)
        return failure(trip_id)

    monkeypatch.setattr(store, "get_scheduled_trip", get_scheduled_trip)


def test_award_returns_audit_when_trip_reload_fails(
    client: TestClient, store: InMemoryDispatchStore, monkeypatch
) -> None:
    def unreachable(trip_id):
        raise UpstreamUnavailable("store offline")

    _fail_after_first_read(store, monkeypatch, unreachable)

    response = client.post(f"{SCHEDULED}/1/award", json={"claimId": 10, "reason": "Best rated"}, headers=ADMIN)

    assert response.status_code == 200
    body = response.json()
    assert body["booking"] is None
    assert body["audit"]["driverId"] == 100
    assert store.get_claim(10).status is ClaimStatus.AWARDED


def test_award_returns_audit_when_trip_disappears(
    client: TestClient, store: InMemoryDispatchStore, monkeypatch
) -> None:
    _fail_after_first_read(store, monkeypatch, lambda trip_id: None)

    response = client.post(f"{SCHEDULED}/1/award", json={"claimId": 10, "reason": "Best rated"}, headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["booking"] is None
    assert response.json()["audit"]["kind"] == "ASSIGN"
