"""Geographic candidate search for immediate matching."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...errors import UpstreamUnavailable
from ...models.domain import Driver
from ...persistence.base import DispatchStore
from ..geospatial import bounding_box, haversine_km

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Candidate:
    driver: Driver
    distance_km: float


@dataclass(slots=True)
class CandidateSet:
    candidates: list[Candidate] = field(default_factory=list)
    degraded: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeoCandidateFinder:
    """Available drivers whose last known location lies within a radius of a pickup.

    The bounding box only narrows the store scan; every driver it returns is then
    checked against the exact great-circle distance.
    """

    def __init__(
        self,
        store: DispatchStore,
        *,
        location_max_age_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.location_max_age = (
            timedelta(seconds=location_max_age_seconds) if location_max_age_seconds else None
        )
        self.clock = clock

    def find(self, pickup_lat: float, pickup_lng: float, radius_km: float) -> CandidateSet:
        area = bounding_box(pickup_lat, pickup_lng, radius_km)
        try:
            drivers = self.store.find_drivers_in_box(area)
        except UpstreamUnavailable as exc:
            logger.warning(f"Driver location store unavailable, returning no candidates: {exc}")
            return CandidateSet(degraded=True)

        now = self.clock()
        candidates: list[Candidate] = []
        for driver in drivers:
            if not self._eligible(driver, now):
                continue
            distance = haversine_km(pickup_lat, pickup_lng, driver.latitude, driver.longitude)
            if distance > radius_km:
                continue
            candidates.append(Candidate(driver=driver, distance_km=distance))
        return CandidateSet(candidates=candidates)

    def _eligible(self, driver: Driver, now: datetime) -> bool:
        if not (driver.available and driver.active and driver.has_location):
            return False
        pinged_at = driver.location_updated_at
        if self.location_max_age and pinged_at is not None:
            if pinged_at.tzinfo is None:
                pinged_at = pinged_at.replace(tzinfo=timezone.utc)
            if now - pinged_at > self.location_max_age:
                return False
        return True
