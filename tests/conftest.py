import math

import pytest

from wayfindgeometry.models.geometry import GeometryResult, GeometrySource, ShapePoint, Waypoint
from wayfindgeometry.utils.geo_utils import EARTH_RADIUS_M

METERS_PER_DEGREE = math.pi / 180 * EARTH_RADIUS_M


class FakeClock:
    """Manually advanced clock for TTL tests"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def east_of(lat: float, lon: float, meters: float) -> float:
    """Longitude `meters` east of (lat, lon)"""
    return lon + meters / (METERS_PER_DEGREE * math.cos(math.radians(lat)))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def north_shape():
    """250 points heading due north, ~111 m apart"""
    return [ShapePoint(lat=14.0 + i * 0.001, lon=121.0, sequence_index=i) for i in range(250)]


@pytest.fixture
def stop_near():
    """Waypoint `meters` east of a shape vertex"""
    def _stop_near(point: ShapePoint, meters: float = 0.0, stable_id=None) -> Waypoint:
        return Waypoint(stable_id=stable_id, lat=point.lat, lon=east_of(point.lat, point.lon, meters))
    return _stop_near


@pytest.fixture
def make_result():
    def _make_result(n_points: int = 3, source: GeometrySource = GeometrySource.EXACT_SHAPE) -> GeometryResult:
        geometry = [(121.0, 14.0 + i * 0.001) for i in range(n_points)]
        return GeometryResult(
            geometry=geometry,
            distance_meters=111.0 * (n_points - 1),
            duration_seconds=11 * (n_points - 1),
            source=source,
            from_waypoint=Waypoint(stable_id='A', lat=14.0, lon=121.0),
            to_waypoint=Waypoint(stable_id='B', lat=geometry[-1][1], lon=121.0),
        )
    return _make_result
