"""
Spherical geometry helpers for the availability search.

The bounding box is the broad-phase filter used to range-query candidates;
``distance`` is the authoritative test applied afterwards.
"""

from math import asin, cos, degrees, radians, sin, sqrt

from .models import BoundingBox, GeoPoint

EARTH_RADIUS_METERS = 6_371_000

# Widening of each box edge, in degrees (about 0.1 mm), so points at exactly
# the radius survive floating-point rounding.
BOX_EDGE_PADDING_DEGREES = 1e-9


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points (haversine)."""
    lat1 = radians(a.latitude)
    lon1 = radians(a.longitude)
    lat2 = radians(b.latitude)
    lon2 = radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h marginally above 1 for antipodal points.
    return 2 * EARTH_RADIUS_METERS * asin(sqrt(min(1.0, h)))


def bounding_box(center: GeoPoint, radius_meters: float) -> BoundingBox:
    """
    Build the box enclosing every point within ``radius_meters`` of ``center``.

    The latitude span is the meridian arc; the longitude span is widened by
    the convergence of meridians at the center's latitude. When the circle
    reaches a pole or crosses the antimeridian the box spans all longitudes.

    Args:
        center: Center of the search circle
        radius_meters: Search radius; zero or negative collapses the box

    Returns:
        BoundingBox with southwest and northeast corners
    """
    if radius_meters <= 0:
        return BoundingBox(southwest=center, northeast=center)

    angular = radius_meters / EARTH_RADIUS_METERS
    lat_delta = degrees(angular) + BOX_EDGE_PADDING_DEGREES

    south = center.latitude - lat_delta
    north = center.latitude + lat_delta

    west, east = -180.0, 180.0
    if south > -90.0 and north < 90.0:
        ratio = sin(angular) / cos(radians(center.latitude))
        if ratio < 1.0:
            lon_delta = degrees(asin(ratio)) + BOX_EDGE_PADDING_DEGREES
            if center.longitude - lon_delta >= -180.0 and center.longitude + lon_delta <= 180.0:
                west = center.longitude - lon_delta
                east = center.longitude + lon_delta

    return BoundingBox(
        southwest=GeoPoint(latitude=max(south, -90.0), longitude=west),
        northeast=GeoPoint(latitude=min(north, 90.0), longitude=east),
    )
