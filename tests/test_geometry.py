"""Tests for geometry.py: haversine distance and point-in-polygon."""

import pytest
from shapely.geometry import Polygon

from geometry import EARTH_RADIUS, GeoPoint, build_polygon, distance, point_in_polygon

TIMES_SQUARE = GeoPoint(40.7580, -73.9855)
CENTRAL_PARK = GeoPoint(40.7829, -73.9654)
BATTERY_PARK = GeoPoint(40.7033, -74.0170)


# =============================================================================
# distance()
# =============================================================================

class TestDistance:
    def test_zero_for_same_point(self):
        assert distance(TIMES_SQUARE, TIMES_SQUARE) == 0.0

    def test_zero_for_equal_points(self):
        assert distance(GeoPoint(40.7, -74.0), GeoPoint(40.7, -74.0)) == 0.0

    def test_symmetric(self):
        for a, b in [
            (TIMES_SQUARE, CENTRAL_PARK),
            (CENTRAL_PARK, BATTERY_PARK),
            (BATTERY_PARK, TIMES_SQUARE),
        ]:
            assert distance(a, b) == distance(b, a)

    def test_positive_for_distinct_points(self):
        assert distance(TIMES_SQUARE, GeoPoint(40.7580, -73.98549)) > 0

    def test_one_degree_latitude(self):
        # One degree of arc on the mean-radius sphere
        expected = EARTH_RADIUS["kilometers"] * 3.141592653589793 / 180
        assert distance(GeoPoint(40.0, -74.0), GeoPoint(41.0, -74.0)) == pytest.approx(expected)

    def test_times_square_to_central_park(self):
        # ~3.2 km straight line up Seventh Avenue
        assert distance(TIMES_SQUARE, CENTRAL_PARK) == pytest.approx(3.25, abs=0.05)

    def test_miles(self):
        km = distance(TIMES_SQUARE, BATTERY_PARK, "kilometers")
        mi = distance(TIMES_SQUARE, BATTERY_PARK, "miles")
        assert mi == pytest.approx(km / 1.609344, rel=1e-6)

    def test_unknown_unit_raises(self):
        with pytest.raises(ValueError, match="Unsupported distance unit"):
            distance(TIMES_SQUARE, CENTRAL_PARK, "furlongs")


# =============================================================================
# point_in_polygon()
# =============================================================================

SQUARE = [(-74.0, 40.7), (-73.9, 40.7), (-73.9, 40.8), (-74.0, 40.8), (-74.0, 40.7)]

# L-shape: the notch at the upper right is outside
L_SHAPE = [
    (0.0, 0.0), (2.0, 0.0), (2.0, 1.0), (1.0, 1.0), (1.0, 2.0), (0.0, 2.0),
]


class TestPointInPolygon:
    def test_inside(self):
        assert point_in_polygon(GeoPoint(40.75, -73.95), SQUARE)

    def test_outside(self):
        assert not point_in_polygon(GeoPoint(40.85, -73.95), SQUARE)
        assert not point_in_polygon(GeoPoint(40.75, -74.05), SQUARE)

    def test_on_edge_counts_as_inside(self):
        assert point_in_polygon(GeoPoint(40.7, -73.95), SQUARE)  # bottom
        assert point_in_polygon(GeoPoint(40.75, -73.9), SQUARE)  # right
        assert point_in_polygon(GeoPoint(40.8, -73.95), SQUARE)  # top
        assert point_in_polygon(GeoPoint(40.75, -74.0), SQUARE)  # left

    def test_on_vertex_counts_as_inside(self):
        assert point_in_polygon(GeoPoint(40.7, -74.0), SQUARE)
        assert point_in_polygon(GeoPoint(40.8, -73.9), SQUARE)

    def test_implicit_closure(self):
        open_ring = SQUARE[:-1]
        assert point_in_polygon(GeoPoint(40.75, -73.95), open_ring)
        assert not point_in_polygon(GeoPoint(40.85, -73.95), open_ring)

    def test_concave_polygon(self):
        assert point_in_polygon(GeoPoint(0.5, 0.5), L_SHAPE)
        assert point_in_polygon(GeoPoint(1.5, 0.5), L_SHAPE)
        assert point_in_polygon(GeoPoint(0.5, 1.5), L_SHAPE)
        assert not point_in_polygon(GeoPoint(1.5, 1.5), L_SHAPE)

    def test_ray_through_vertex(self):
        # Horizontal ray from (y=1.0) passes exactly through the (2, 1) vertex
        assert point_in_polygon(GeoPoint(1.0, 0.5), L_SHAPE)
        assert not point_in_polygon(GeoPoint(1.0, -0.5), L_SHAPE)

    def test_degenerate_rings_contain_nothing(self):
        assert not point_in_polygon(GeoPoint(0.0, 0.0), [])
        assert not point_in_polygon(GeoPoint(0.0, 0.0), [(0.0, 0.0), (1.0, 1.0)])

    def test_closed_two_vertex_ring_contains_nothing(self):
        # Three entries but only two distinct vertices
        ring = [(0.0, 0.0), (1.0, 1.0), (0.0, 0.0)]
        assert build_polygon(ring) is None
        assert not point_in_polygon(GeoPoint(0.5, 0.5), ring)
        assert not point_in_polygon(GeoPoint(0.0, 0.0), ring)

    def test_collinear_ring_contains_nothing(self):
        ring = [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0), (0.0, 0.0)]
        assert build_polygon(ring) is None
        assert not point_in_polygon(GeoPoint(1.0, 1.0), ring)

    def test_prebuilt_polygon(self):
        polygon = build_polygon(SQUARE)
        assert isinstance(polygon, Polygon)
        assert point_in_polygon(GeoPoint(40.75, -73.95), polygon)
        assert point_in_polygon(GeoPoint(40.7, -73.95), polygon)
        assert not point_in_polygon(GeoPoint(40.85, -73.95), polygon)

    def test_missing_polygon_contains_nothing(self):
        assert not point_in_polygon(GeoPoint(0.0, 0.0), None)

    def test_lonlat_order(self):
        # Ring is (lon, lat); a point with lat/lon swapped must not match
        assert not point_in_polygon(GeoPoint(-73.95, 40.75), SQUARE)
