import math
from datetime import datetime, timedelta, timezone

import pytest

from src.dispatch_engine.errors import UpstreamUnavailable
from src.dispatch_engine.models.domain import Driver, DriverTier, TripCategory
from src.dispatch_engine.persistence.memory import InMemoryDispatchStore
from src.dispatch_engine.schemas.matching import MatchRequest
from src.dispatch_engine.services.matching import (
    DriverScorer,
    GeoCandidateFinder,
    ImmediateMatchSelector,
    MatchingPolicy,
    classify_tier,
    find_best_driver,
)
from src.dispatch_engine.services.matching.candidates import Candidate

KM_PER_DEGREE = math.pi * 6371.0 / 180.0
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
POLICY = MatchingPolicy()

GOLD = {"total_trips": 60}
DIAMOND = {"total_trips": 200}


def _driver(driver_id: int, km_north: float = 0.0, *, rating: float | None = 4.5, accepted: float = 0.9, **overrides) -> Driver:
    fields = {
        "driver_id": driver_id,
        "name": f"Driver {driver_id}",
        "phone": f"+2557000000{driver_id:02d}",
        "latitude": km_north / KM_PER_DEGREE,
        "longitude": 0.0,
        "available": True,
        "rating": rating,
    }
    fields.update(overrides)
    driver = Driver(**fields)
    if driver.total_trips:
        driver.accepted_trips = round(driver.total_trips * accepted)
    return driver


def _store(*drivers: Driver) -> InMemoryDispatchStore:
    store = InMemoryDispatchStore()
    for driver in drivers:
        store.add_driver(driver)
    return store


def _score(drivers: list[Driver], category: TripCategory) -> list:
    radius = POLICY.radius_for(category)
    candidates = [
        Candidate(driver=driver, distance_km=driver.latitude * KM_PER_DEGREE) for driver in drivers
    ]
    return DriverScorer(POLICY).score_all(candidates, category, radius)


def test_tier_classification_uses_any_threshold() -> None:
    assert classify_tier(Driver(1, None, None, None, None, True), POLICY) is DriverTier.SILVER
    assert classify_tier(Driver(2, None, None, None, None, True, total_trips=50), POLICY) is DriverTier.GOLD
    assert classify_tier(Driver(3, None, None, None, None, True, total_reviews=25), POLICY) is DriverTier.GOLD
    assert classify_tier(Driver(4, None, None, None, None, True, total_distance_km=500.0), POLICY) is DriverTier.DIAMOND
    assert classify_tier(Driver(5, None, None, None, None, True, total_reviews=100), POLICY) is DriverTier.DIAMOND


def test_scenario_a_standard_clear_top_pick() -> None:
    driver_a = _driver(1, 0.5, rating=4.8, accepted=0.95, **GOLD)
    driver_b = _driver(2, 2.9, rating=4.2, accepted=0.90, **DIAMOND)

    scored = {s.driver.driver_id: s for s in _score([driver_a, driver_b], TripCategory.STANDARD)}

    assert scored[1].tier is DriverTier.GOLD
    assert scored[1].composite == pytest.approx(0.835, abs=0.001)
    assert scored[1].score == pytest.approx(0.915, abs=0.001)
    assert scored[2].tier is DriverTier.DIAMOND
    assert scored[2].composite == pytest.approx(0.562, abs=0.001)
    assert scored[2].score == pytest.approx(0.712, abs=0.001)

    outcome = ImmediateMatchSelector(POLICY).select(list(scored.values())[::-1], TripCategory.STANDARD)
    assert outcome.best.driver.driver_id == 1
    assert [c.driver.driver_id for c in outcome.alternatives] == [2]


def test_scenario_b_emergency_prefers_highest_tier_very_close() -> None:
    silver = _driver(1, 0.8, rating=4.0)
    diamond = _driver(2, 0.9, rating=4.1, **DIAMOND)

    outcome = ImmediateMatchSelector(POLICY).select(
        _score([silver, diamond], TripCategory.EMERGENCY), TripCategory.EMERGENCY
    )

    assert outcome.best.driver.driver_id == 2


def test_emergency_tier_rule_overrides_higher_score() -> None:
    gold = _driver(1, 0.3, rating=5.0, accepted=1.0, **GOLD)
    diamond = _driver(2, 0.9, rating=2.0, accepted=0.2, **DIAMOND)

    scored = _score([gold, diamond], TripCategory.EMERGENCY)
    outcome = ImmediateMatchSelector(POLICY).select(scored, TripCategory.EMERGENCY)

    assert outcome.ranked[0].driver.driver_id == 1
    assert outcome.best.driver.driver_id == 2
    assert [c.driver.driver_id for c in outcome.alternatives] == [1]


def test_emergency_close_rule_uses_rounded_distance() -> None:
    gold = _driver(1, 0.3, rating=5.0, accepted=1.0, **GOLD)
    diamond = _driver(2, 1.04, rating=2.0, accepted=0.2, **DIAMOND)

    outcome = ImmediateMatchSelector(POLICY).select(
        _score([gold, diamond], TripCategory.EMERGENCY), TripCategory.EMERGENCY
    )

    assert outcome.ranked[0].driver.driver_id == 1
    # 1.04 km is reported as 1.0 km, inside the 1 km emergency band
    assert outcome.best.display_distance_km == 1.0
    assert outcome.best.driver.driver_id == 2


def test_emergency_without_very_close_drivers_takes_top_score() -> None:
    near = _driver(1, 1.5, rating=4.9, accepted=1.0, **GOLD)
    far = _driver(2, 4.0, rating=4.0, **DIAMOND)

    outcome = ImmediateMatchSelector(POLICY).select(
        _score([far, near], TripCategory.EMERGENCY), TripCategory.EMERGENCY
    )

    assert outcome.best.driver.driver_id == 1


def test_standard_close_rule_uses_rounded_distance() -> None:
    top = _driver(1, 1.46, rating=4.8, accepted=1.0, **GOLD)
    diamond = _driver(2, 2.2, rating=4.7, accepted=0.5, **DIAMOND)

    outcome = ImmediateMatchSelector(POLICY).select(
        _score([top, diamond], TripCategory.STANDARD), TripCategory.STANDARD
    )

    assert outcome.ranked[0].driver.driver_id == 1
    # 1.46 km is reported as 1.5 km, which is not closer than 1.5 km
    assert outcome.ranked[0].display_distance_km == 1.5
    assert outcome.best.driver.driver_id == 2


def test_standard_gold_rule_picks_better_rated_gold_nearby() -> None:
    top = _driver(1, 1.6, rating=4.0, accepted=1.0, **GOLD)
    better_rated = _driver(2, 2.0, rating=4.4, accepted=0.5, **GOLD)

    outcome = ImmediateMatchSelector(POLICY).select(
        _score([top, better_rated], TripCategory.STANDARD), TripCategory.STANDARD
    )

    assert outcome.ranked[0].driver.driver_id == 1
    assert outcome.best.driver.driver_id == 2


def test_standard_diamond_rule_picks_comparable_diamond() -> None:
    top = _driver(1, 2.0, rating=5.0, accepted=1.0, **GOLD)
    diamond = _driver(2, 2.8, rating=4.9, accepted=0.5, **DIAMOND)

    outcome = ImmediateMatchSelector(POLICY).select(
        _score([top, diamond], TripCategory.STANDARD), TripCategory.STANDARD
    )

    assert outcome.ranked[0].driver.driver_id == 1
    assert outcome.best.driver.driver_id == 2


def test_alternatives_capped_at_three_and_exclude_best() -> None:
    drivers = [_driver(i, 0.2 * i, rating=4.8) for i in range(1, 7)]

    outcome = ImmediateMatchSelector(POLICY).select(
        _score(drivers, TripCategory.STANDARD), TripCategory.STANDARD
    )

    assert outcome.best.driver.driver_id == 1
    assert [c.driver.driver_id for c in outcome.alternatives] == [2, 3, 4]
    assert len(outcome.ranked) == 6


def test_composite_increases_with_rating_and_proximity() -> None:
    low, high = _score([_driver(1, 1.0, rating=4.0), _driver(2, 1.0, rating=4.5)], TripCategory.STANDARD)
    far, near = _score([_driver(3, 2.0), _driver(4, 1.0)], TripCategory.STANDARD)

    assert high.composite > low.composite
    assert near.composite > far.composite


def test_missing_rating_and_history_use_defaults() -> None:
    (scored,) = _score([_driver(1, 1.0, rating=None)], TripCategory.STANDARD)

    assert scored.rating == POLICY.default_rating
    assert scored.acceptance_rate == POLICY.default_acceptance_rate
    assert scored.acceptance_percent == 90


def test_display_values_are_rounded() -> None:
    (scored,) = _score([_driver(1, 2.26)], TripCategory.STANDARD)

    assert scored.display_distance_km == 2.3
    # 2.26 km at 30 km/h is 4.52 minutes
    assert scored.display_minutes == 5


def test_finder_excludes_drivers_outside_radius() -> None:
    inside = _driver(1, 2.9)
    outside = _driver(2, 3.2)
    # inside the search box but outside the circle
    corner = _driver(3, latitude=0.02, longitude=0.02)
    store = _store(inside, outside, corner)

    found = GeoCandidateFinder(store).find(0.0, 0.0, 3.0)

    assert [c.driver.driver_id for c in found.candidates] == [1]
    assert found.degraded is False
    assert all(c.distance_km <= 3.0 for c in found.candidates)


def test_finder_skips_unavailable_inactive_unlocated_and_stale_drivers() -> None:
    store = _store(
        _driver(1, 1.0, location_updated_at=NOW - timedelta(seconds=30)),
        _driver(2, 1.0, available=False),
        _driver(3, 1.0, active=False),
        _driver(4, latitude=None, longitude=None),
        _driver(5, 1.0, location_updated_at=NOW - timedelta(minutes=10)),
        _driver(6, 1.0, location_updated_at=(NOW - timedelta(seconds=60)).replace(tzinfo=None)),
    )

    found = GeoCandidateFinder(store, location_max_age_seconds=120, clock=lambda: NOW).find(0.0, 0.0, 3.0)

    assert sorted(c.driver.driver_id for c in found.candidates) == [1, 6]


class UnreachableStore:
    def find_drivers_in_box(self, area):
        raise UpstreamUnavailable("location store timed out")


def test_finder_degrades_when_store_unreachable() -> None:
    found = GeoCandidateFinder(UnreachableStore()).find(0.0, 0.0, 3.0)

    assert found.degraded is True
    assert found.candidates == []


def test_find_best_driver_returns_ranked_payload() -> None:
    store = _store(
        _driver(1, 0.5, rating=4.8, accepted=0.95, **GOLD),
        _driver(2, 2.9, rating=4.2, accepted=0.90, **DIAMOND),
        _driver(3, 4.0, rating=5.0),
    )

    response = find_best_driver(store, MatchRequest(pickupLat=0.0, pickupLng=0.0), POLICY)

    assert response.matched is True
    assert response.radiusKm == 3.0
    assert response.bestDriver.id == 1
    assert response.bestDriver.level == "Gold"
    assert response.bestDriver.distance == 0.5
    assert response.bestDriver.estimatedTime == 1
    assert response.bestDriver.acceptanceRate == 95
    assert [d.id for d in response.alternatives] == [2]
    assert [d.id for d in response.allCandidates] == [1, 2]
    assert response.allCandidates[0].score >= response.allCandidates[1].score


def test_find_best_driver_uses_emergency_radius() -> None:
    store = _store(_driver(1, 4.0))

    standard = find_best_driver(store, MatchRequest(pickupLat=0.0, pickupLng=0.0), POLICY)
    emergency = find_best_driver(
        store, MatchRequest(pickupLat=0.0, pickupLng=0.0, tripType="EMERGENCY"), POLICY
    )

    assert standard.matched is False
    assert standard.drivers == []
    assert standard.message == "No available drivers found within 3 km"
    assert emergency.matched is True
    assert emergency.tripType == "emergency"
    assert emergency.radiusKm == 5.0


def test_find_best_driver_reports_degraded_instead_of_failing() -> None:
    response = find_best_driver(UnreachableStore(), MatchRequest(pickupLat=0.0, pickupLng=0.0), POLICY)

    assert response.matched is False
    assert response.degraded is True
    assert response.drivers == []


def test_trip_category_parsing() -> None:
    assert TripCategory.parse(None) is TripCategory.STANDARD
    assert TripCategory.parse("Standard") is TripCategory.STANDARD
    assert TripCategory.parse("emergency") is TripCategory.EMERGENCY
    assert TripCategory.parse("Medical Emergency") is TripCategory.EMERGENCY


def test_policy_validation_rejects_bad_weights() -> None:
    with pytest.raises(ValueError):
        MatchingPolicy(proximity_weight=0.5).validate()
    MatchingPolicy().validate()
