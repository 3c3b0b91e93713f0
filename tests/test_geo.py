"""
Tests for bounding box and great-circle distance.
"""

import random
from math import asin, atan2, cos, degrees, radians, sin

import pytest

from onspot.domain.geo import EARTH_RADIUS_METERS, bounding_box, distance
from onspot.domain.models import GeoPoint


def _destination(origin: GeoPoint, bearing_degrees: float, meters: float) -> GeoPoint:
    """Point reached from ``origin`` travelling ``meters`` along a bearing."""
    angular = meters / EARTH_RADIUS_METERS
    lat1 = radians(origin.latitude)
    lon1 = radians(origin.longitude)
    theta = radians(bearing_degrees)

    lat2 = asin(sin(lat1) * cos(angular) + cos(lat1) * sin(angular) * cos(theta))
    lon2 = lon1 + atan2(sin(theta) * sin(angular) * cos(lat1), cos(angular) - sin(lat1) * sin(lat2))
    longitude = (degrees(lon2) + 540) % 360 - 180
    return GeoPoint(latitude=degrees(lat2), longitude=longitude)


class TestDistance:
    """Tests for distance()."""

    def test_same_point_is_zero(self):
        point = GeoPoint(12.9716, 77.5946)
        assert distance(point, point) == 0

    def test_one_degree_of_latitude(self):
        """One degree along a meridian is about 111.2 km."""
        d = distance(GeoPoint(0, 0), GeoPoint(1, 0))
        assert d == pytest.approx(111_195, abs=1)

    def test_symmetric(self):
        a = GeoPoint(12.9716, 77.5946)
        b = GeoPoint(-33.8688, 151.2093)
        assert distance(a, b) == distance(b, a)

    def test_antipodal_points(self):
        d = distance(GeoPoint(0, 0), GeoPoint(0, 180))
        assert d == pytest.approx(EARTH_RADIUS_METERS * 3.141592653589793, rel=1e-9)


class TestBoundingBox:
    """Tests for bounding_box()."""

    @pytest.mark.parametrize(
        "center",
        [
            GeoPoint(0, 0),
            GeoPoint(12.9716, 77.5946),
            GeoPoint(60.1699, 24.9384),
            GeoPoint(-45.0, -170.0),
            GeoPoint(0.5, 179.99),
            GeoPoint(89.99, 10.0),
        ],
    )
    @pytest.mark.parametrize("radius", [1.0, 500.0, 5_000.0, 250_000.0])
    def test_contains_every_point_within_radius(self, center, radius):
        box = bounding_box(center, radius)
        for bearing in range(0, 360, 15):
            point = _destination(center, bearing, radius * 0.999)
            assert distance(center, point) <= radius
            assert box.contains(point), f"{point} at bearing {bearing} outside {box}"

    def test_longitude_span_widens_with_latitude(self):
        equator = bounding_box(GeoPoint(0, 10), 10_000)
        north = bounding_box(GeoPoint(60, 10), 10_000)

        equator_span = equator.northeast.longitude - equator.southwest.longitude
        north_span = north.northeast.longitude - north.southwest.longitude

        # cos(60°) = 0.5, so the span roughly doubles.
        assert north_span == pytest.approx(2 * equator_span, rel=1e-3)

    def test_zero_radius_collapses_to_center(self):
        center = GeoPoint(12.9716, 77.5946)
        box = bounding_box(center, 0)

        assert box.southwest == center
        assert box.northeast == center
        assert not box.contains(GeoPoint(12.9717, 77.5946))

    def test_negative_radius_does_not_error(self):
        center = GeoPoint(1, 1)
        box = bounding_box(center, -10)
        assert box.southwest == box.northeast == center

    def test_crossing_antimeridian_spans_all_longitudes(self):
        box = bounding_box(GeoPoint(0, 179.99), 5_000)
        assert box.southwest.longitude == -180.0
        assert box.northeast.longitude == 180.0

    def test_reaching_pole_spans_all_longitudes(self):
        box = bounding_box(GeoPoint(89.99, 0), 5_000)
        assert box.northeast.latitude == 90.0
        assert box.southwest.longitude == -180.0
        assert box.northeast.longitude == 180.0

    def test_point_at_exactly_the_radius_due_north(self):
        center = GeoPoint(31.3333, -79.4476)
        radius = 40091.5
        point = _destination(center, 0, radius)

        assert distance(center, point) <= radius
        assert bounding_box(center, radius).contains(point)

    def test_points_at_exactly_the_radius_stay_inside(self):
        rng = random.Random(7)
        for _ in range(2000):
            center = GeoPoint(rng.uniform(-80, 80), rng.uniform(-170, 170))
            radius = rng.uniform(1, 100_000)
            box = bounding_box(center, radius)
            for bearing in (0, 90, 180, 270):
                point = _destination(center, bearing, radius)
                if distance(center, point) <= radius:
                    assert box.contains(point), f"{point} at bearing {bearing} outside {box}"
