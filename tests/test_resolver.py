import math
import time

import pytest

from wayfindgeometry.exceptions import InsufficientInputError, PoorMatchError, ProviderUnavailableError
from wayfindgeometry.graphhopper_client import EngineRoute, RoutingEngine
from wayfindgeometry.models.geometry import GeometrySource, ResolutionRequest, ShapePoint, Waypoint
from wayfindgeometry.providers import ExactShapeProvider, RoutedFallbackProvider, StraightLineProvider
from wayfindgeometry.providers.base import GeometryProvider, ProviderOutcome
from wayfindgeometry.resolver import GeometryResolver
from wayfindgeometry.segment_extractor import SegmentExtractor
from wayfindgeometry.shapes.gtfs_repository import InMemoryShapeRepository
from wayfindgeometry.utils.geo_utils import path_length


class DownEngine(RoutingEngine):
    def __init__(self):
        self.calls = 0

    def route(self, from_waypoint, to_waypoint):
        self.calls += 1
        raise ProviderUnavailableError("engine offline")


class SlowEngine(RoutingEngine):
    def route(self, from_waypoint, to_waypoint):
        time.sleep(1.0)
        return EngineRoute(geometry=[(121.0, 14.0), (121.0, 14.1)], distance_meters=1.0, duration_seconds=1)


class FixedEngine(RoutingEngine):
    def route(self, from_waypoint, to_waypoint):
        return EngineRoute(
            geometry=[(from_waypoint.lon, from_waypoint.lat), (121.005, 14.01), (to_waypoint.lon, to_waypoint.lat)],
            distance_meters=9999.0,
            duration_seconds=42,
        )


class SinglePointProvider(GeometryProvider):
    name = "single_point"
    source = GeometrySource.ROUTED_FALLBACK
    blocking = False

    def attempt(self, request):
        return ProviderOutcome(geometry=[(121.0, 14.0)], source=self.source)


class BrokenProvider(GeometryProvider):
    name = "broken"
    source = GeometrySource.ROUTED_FALLBACK

    def attempt(self, request):
        raise RuntimeError("bug")


@pytest.fixture
def repository(north_shape):
    return InMemoryShapeRepository(
        shapes={'R1': [north_shape]},
        stops={'S45': Waypoint(stable_id='S45', name='Stop 45', lat=north_shape[45].lat, lon=121.0)},
    )


def test_exact_shape_is_preferred(repository, north_shape, stop_near):
    resolver = GeometryResolver(repository=repository, routing_engine=FixedEngine(), snap_distance_meters=50)
    request = ResolutionRequest(stop_near(north_shape[45], 12), stop_near(north_shape[170], 8), route_id='R1')

    result = resolver.resolve(request)

    assert result.source == GeometrySource.EXACT_SHAPE
    assert len(result.geometry) == 126
    assert result.num_intermediate_points == 124
    assert result.distance_meters == pytest.approx(path_length(result.geometry))
    assert result.duration_seconds == round(result.distance_meters / 10.0)
    resolver.close()


def test_unknown_route_falls_back_to_straight_line():
    engine = DownEngine()
    resolver = GeometryResolver(repository=InMemoryShapeRepository(), routing_engine=engine)
    request = ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=14.02, lon=121.01))

    result = resolver.resolve(request)

    assert engine.calls == 1
    assert result.source == GeometrySource.STRAIGHT_LINE
    assert result.geometry == ((121.0, 14.0), (121.01, 14.02))
    assert result.num_intermediate_points == 0
    resolver.close()


def test_slow_engine_times_out_into_straight_line():
    resolver = GeometryResolver(routing_engine=SlowEngine(), provider_timeout=0.1)
    request = ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=14.02, lon=121.01), route_id='R9')

    started = time.monotonic()
    result = resolver.resolve(request)

    assert time.monotonic() - started < 0.9
    assert result.source == GeometrySource.STRAIGHT_LINE
    resolver.close()


def test_exhausted_deadline_skips_blocking_providers():
    resolver = GeometryResolver(routing_engine=SlowEngine(), provider_timeout=5, resolve_deadline=0.1)
    result = resolver.resolve(ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=14.02, lon=121.01)))
    assert result.source == GeometrySource.STRAIGHT_LINE
    resolver.close()


def test_routed_fallback_keeps_engine_duration():
    resolver = GeometryResolver(repository=InMemoryShapeRepository(), routing_engine=FixedEngine())
    request = ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=14.02, lon=121.01), route_id='nope')

    result = resolver.resolve(request)

    assert result.source == GeometrySource.ROUTED_FALLBACK
    assert len(result.geometry) == 3
    assert result.duration_seconds == 42
    assert result.distance_meters == pytest.approx(path_length(result.geometry))
    resolver.close()


def test_single_point_and_broken_providers_fall_through():
    resolver = GeometryResolver(providers=[BrokenProvider(), SinglePointProvider()])
    result = resolver.resolve(ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=14.02, lon=121.01)))

    assert isinstance(resolver.providers[-1], StraightLineProvider)
    assert result.source == GeometrySource.STRAIGHT_LINE
    resolver.close()


def test_missing_coordinates_raise_insufficient_input():
    resolver = GeometryResolver(repository=InMemoryShapeRepository(), routing_engine=DownEngine())
    with pytest.raises(InsufficientInputError):
        resolver.resolve(ResolutionRequest(Waypoint(stable_id='nowhere'), Waypoint(stable_id='elsewhere')))
    resolver.close()


def test_invalid_coordinates_are_treated_as_missing():
    resolver = GeometryResolver()
    with pytest.raises(InsufficientInputError):
        resolver.resolve(ResolutionRequest(Waypoint(lat=math.nan, lon=121.0), Waypoint(lat=14.0, lon=121.0)))
    with pytest.raises(InsufficientInputError):
        resolver.resolve(ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=95.0, lon=121.0)))
    resolver.close()


def test_stop_codes_are_completed_from_repository(repository, north_shape, stop_near):
    resolver = GeometryResolver(repository=repository, snap_distance_meters=50)
    request = ResolutionRequest(Waypoint(stable_id='S45'), stop_near(north_shape[60]), route_id='R1')

    result = resolver.resolve(request)

    assert result.from_waypoint.lat == north_shape[45].lat
    assert result.from_waypoint.name == 'Stop 45'
    assert len(result.geometry) == 16
    resolver.close()


def test_second_direction_shape_is_used(north_shape, stop_near):
    southbound = [ShapePoint(lat=p.lat, lon=p.lon, sequence_index=249 - p.sequence_index) for p in north_shape]
    repo = InMemoryShapeRepository(shapes={'R1': [north_shape, southbound]})
    provider = ExactShapeProvider(repo, snap_distance_meters=50)

    outcome = provider.attempt(ResolutionRequest(stop_near(north_shape[200]), stop_near(north_shape[50]), 'R1'))

    assert outcome.geometry[0] == (121.0, north_shape[200].lat)
    assert len(outcome.geometry) == 151


def test_looping_slice_is_rejected():
    # North 20 vertices, one step east, then back south: endpoints ~320 m apart
    loop = [ShapePoint(lat=14.0 + i * 0.001, lon=121.0, sequence_index=i) for i in range(21)]
    loop += [ShapePoint(lat=14.02 - i * 0.001, lon=121.003, sequence_index=21 + i) for i in range(21)]
    provider = ExactShapeProvider(InMemoryShapeRepository(shapes={'L': [loop]}), snap_distance_meters=50)
    request = ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=14.0, lon=121.003), 'L')

    with pytest.raises(PoorMatchError):
        provider.attempt(request)

    lenient = ExactShapeProvider(InMemoryShapeRepository(shapes={'L': [loop]}), snap_distance_meters=50,
                                 max_detour_ratio=None)
    assert len(lenient.attempt(request).geometry) == 42


class CountingExtractor(SegmentExtractor):
    def __init__(self):
        self.calls = 0

    def extract(self, *args, **kwargs):
        self.calls += 1
        return super().extract(*args, **kwargs)


class CountingEngine(FixedEngine):
    def __init__(self):
        self.calls = 0

    def route(self, from_waypoint, to_waypoint):
        self.calls += 1
        return super().route(from_waypoint, to_waypoint)


def test_inverted_stops_advance_to_routing_once(north_shape, stop_near):
    extractor = CountingExtractor()
    engine = CountingEngine()
    repo = InMemoryShapeRepository(shapes={'R1': [north_shape, list(north_shape)]})
    resolver = GeometryResolver(providers=[
        ExactShapeProvider(repo, extractor=extractor, snap_distance_meters=50),
        RoutedFallbackProvider(engine),
    ])
    request = ResolutionRequest(stop_near(north_shape[170]), stop_near(north_shape[45]), route_id='R1')

    result = resolver.resolve(request)

    assert result.source == GeometrySource.ROUTED_FALLBACK
    assert engine.calls == 1
    assert extractor.calls == 2
    resolver.close()


def test_resolver_pool_reopens_after_close():
    resolver = GeometryResolver(routing_engine=FixedEngine())
    request = ResolutionRequest(Waypoint(lat=14.0, lon=121.0), Waypoint(lat=14.02, lon=121.01))
    resolver.close()
    assert resolver.resolve(request).source == GeometrySource.ROUTED_FALLBACK
    resolver.close()
