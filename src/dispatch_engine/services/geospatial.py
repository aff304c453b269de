"""Geospatial helper functions."""

from __future__ import annotations

import math
from dataclasses import dataclass

from shapely.geometry import Point, box

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned lat/lng rectangle used to pre-filter a driver scan."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        # covers() keeps points on the boundary
        return box(self.min_lng, self.min_lat, self.max_lng, self.max_lat).covers(Point(lng, lat))


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """Return the box enclosing a circle of ``radius_km`` around (lat, lng).

    Uses the flat 111 km per degree approximation, widening longitude by 1/cos(lat).
    Where the cosine collapses near the poles the box spans every longitude.
    """

    lat_delta = radius_km / KM_PER_DEGREE
    denominator = KM_PER_DEGREE * math.cos(math.radians(lat))
    if denominator <= 1e-9:
        return BoundingBox(min_lat=lat - lat_delta, max_lat=lat + lat_delta, min_lng=-180.0, max_lng=180.0)
    lng_delta = radius_km / denominator
    return BoundingBox(
        min_lat=lat - lat_delta,
        max_lat=lat + lat_delta,
        min_lng=lng - lng_delta,
        max_lng=lng + lng_delta,
    )
