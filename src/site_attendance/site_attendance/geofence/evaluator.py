"""Geofence math for attendance.

Distances are great-circle (haversine) distances on a sphere with the
Earth's mean radius, in meters.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..core.constants import EARTH_RADIUS_METERS, PROJECT_SITE_LATITUDE, PROJECT_SITE_LONGITUDE


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


PROJECT_SITE = Coordinate(latitude=PROJECT_SITE_LATITUDE, longitude=PROJECT_SITE_LONGITUDE)


@dataclass(frozen=True)
class GeofenceVerdict:
    distance_meters: float
    radius_meters: float
    within_fence: bool


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two points.

    Symmetric in its arguments and exactly 0.0 when both points are equal.
    """
    if a == b:
        return 0.0

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    # Rounding can push h marginally past 1 for antipodal points.
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_METERS * c


def is_within_fence(distance: float, radius_meters: float) -> bool:
    """A point exactly on the boundary is inside."""
    return distance <= radius_meters


def evaluate(position: Coordinate, radius_meters: float, *, site: Optional[Coordinate] = None) -> GeofenceVerdict:
    distance = distance_meters(position, site or PROJECT_SITE)
    return GeofenceVerdict(
        distance_meters=distance,
        radius_meters=float(radius_meters),
        within_fence=is_within_fence(distance, radius_meters),
    )
