import math
import unittest

from nomadconnect.services.geo import MIN_LAT_COSINE, bounding_box, haversine_km, is_valid_coordinate


class HaversineTests(unittest.TestCase):
    def test_known_distances(self) -> None:
        # 0.05 and 0.20 degrees of latitude due north
        self.assertAlmostEqual(haversine_km(40.0, -74.0, 40.05, -74.0), 5.56, delta=0.05)
        self.assertAlmostEqual(haversine_km(40.0, -74.0, 40.20, -74.0), 22.24, delta=0.05)

    def test_same_point_is_zero(self) -> None:
        self.assertEqual(haversine_km(12.5, 99.1, 12.5, 99.1), 0.0)

    def test_symmetric(self) -> None:
        self.assertAlmostEqual(
            haversine_km(48.85, 2.35, 51.5, -0.12),
            haversine_km(51.5, -0.12, 48.85, 2.35),
        )


class BoundingBoxTests(unittest.TestCase):
    def test_box_contains_every_point_inside_radius(self) -> None:
        for lat, lng, radius in [(40.0, -74.0, 20.0), (-33.9, 151.2, 75.0), (64.1, -21.9, 150.0)]:
            box = bounding_box(lat, lng, radius)
            step = radius / 111.0 / 10
            for i in range(-25, 26):
                for j in range(-60, 61):
                    p_lat = lat + i * step
                    p_lng = lng + j * step
                    if abs(p_lat) > 90:
                        continue
                    if haversine_km(lat, lng, p_lat, p_lng) <= radius:
                        self.assertTrue(box.contains(p_lat, p_lng), (lat, lng, radius, p_lat, p_lng))

    def test_longitude_span_stays_finite_near_pole(self) -> None:
        box = bounding_box(89.99, 10.0, 10.0)
        expected = 10.0 / (111.0 * MIN_LAT_COSINE)
        self.assertTrue(math.isfinite(box.max_lng))
        self.assertAlmostEqual(box.max_lng - 10.0, expected)
        self.assertAlmostEqual(10.0 - box.min_lng, expected)

    def test_latitude_span(self) -> None:
        box = bounding_box(0.0, 0.0, 111.0)
        self.assertAlmostEqual(box.min_lat, -1.0)
        self.assertAlmostEqual(box.max_lat, 1.0)


class CoordinateValidationTests(unittest.TestCase):
    def test_accepts_in_range_numbers(self) -> None:
        self.assertTrue(is_valid_coordinate(0, 0))
        self.assertTrue(is_valid_coordinate(-90.0, 180.0))
        self.assertTrue(is_valid_coordinate(45.5, -122.6))

    def test_rejects_bad_values(self) -> None:
        for lat, lng in [
            (float("nan"), 0.0),
            (0.0, float("inf")),
            (True, 0.0),
            ("40.0", -74.0),
            (None, 0.0),
            (90.1, 0.0),
            (0.0, -180.5),
        ]:
            self.assertFalse(is_valid_coordinate(lat, lng), (lat, lng))


if __name__ == "__main__":
    unittest.main()
