from __future__ import annotations

import math

EARTH_RADIUS_M = 6_371_008.8


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(
    lat: float, lng: float, radius_m: float
) -> tuple[float, float, float | None, float | None]:
    """Latitude/longitude box enclosing the circle.

    Longitude bounds are ``None`` when the circle touches a pole or wraps
    the antimeridian; callers then filter on latitude only.
    """
    angular = radius_m / EARTH_RADIUS_M
    d_lat = math.degrees(angular)
    min_lat = lat - d_lat
    max_lat = lat + d_lat
    if min_lat <= -90 or max_lat >= 90:
        return max(min_lat, -90.0), min(max_lat, 90.0), None, None

    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1:
        return min_lat, max_lat, None, None
    d_lng = math.degrees(math.asin(ratio))
    min_lng = lng - d_lng
    max_lng = lng + d_lng
    if min_lng < -180 or max_lng > 180:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lng, max_lng
