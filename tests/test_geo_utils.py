"""
Tests for geographic helpers.
"""

import math
import unittest

from cosmo_nav.navigation.geo_utils import (
    calculate_bearing, decode_polyline, distance_between, format_distance,
    haversine_distance, heading_difference, min_distance_to_geometry, offset_position
)
from cosmo_nav.navigation.models import Coord


class TestDistances(unittest.TestCase):
    """Test distance computations."""

    def test_one_degree_latitude(self):
        """Test a meridian degree."""
        self.assertAlmostEqual(haversine_distance(0, 0, 1, 0), 111319.49, delta=1.0)

    def test_same_point(self):
        """Test zero distance."""
        self.assertEqual(haversine_distance(40.758, -73.9855, 40.758, -73.9855), 0.0)

    def test_offset_round_trip(self):
        """Test that an offset point lies at the requested distance."""
        origin = Coord(40.7580, -73.9855)
        for bearing in (0, 90, 180, 270):
            point = offset_position(origin, bearing, 100)
            self.assertAlmostEqual(distance_between(origin, point), 100, places=3)

    def test_min_distance_to_geometry(self):
        """Test nearest vertex distance."""
        origin = Coord(40.7580, -73.9855)
        geometry = [offset_position(origin, 0, 80), offset_position(origin, 90, 25)]
        self.assertAlmostEqual(min_distance_to_geometry(origin, geometry), 25, places=3)
        self.assertEqual(min_distance_to_geometry(origin, []), math.inf)


class TestBearings(unittest.TestCase):
    """Test bearing and heading helpers."""

    def test_cardinal_bearings(self):
        """Test bearings along axes."""
        self.assertAlmostEqual(calculate_bearing(0, 0, 1, 0), 0.0)
        self.assertAlmostEqual(calculate_bearing(0, 0, 0, 1), 90.0)
        self.assertAlmostEqual(calculate_bearing(0, 0, -1, 0), 180.0)
        self.assertAlmostEqual(calculate_bearing(0, 0, 0, -1), 270.0)

    def test_heading_difference_wraps(self):
        """Test differences across north."""
        self.assertAlmostEqual(heading_difference(350, 10), 20)
        self.assertAlmostEqual(heading_difference(10, 350), 20)
        self.assertAlmostEqual(heading_difference(0, 180), 180)
        self.assertAlmostEqual(heading_difference(90, 90), 0)


class TestPolyline(unittest.TestCase):
    """Test polyline decoding."""

    def test_decode(self):
        """Test the reference polyline."""
        coords = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")

        expected = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
        self.assertEqual(len(coords), 3)
        for coord, (lat, lon) in zip(coords, expected):
            self.assertAlmostEqual(coord.lat, lat, places=5)
            self.assertAlmostEqual(coord.lon, lon, places=5)

    def test_empty(self):
        """Test an empty polyline."""
        self.assertEqual(decode_polyline(""), [])


class TestFormatDistance(unittest.TestCase):
    """Test spoken distances."""

    def test_metres_and_kilometres(self):
        """Test both units."""
        self.assertEqual(format_distance(350.4), "350 meters")
        self.assertEqual(format_distance(1530), "1.5 kilometers")


if __name__ == '__main__':
    unittest.main()
