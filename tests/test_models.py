import pytest

from wayfindgeometry.config import Config
from wayfindgeometry.models.cache_entry import CacheMetrics
from wayfindgeometry.models.geometry import GeometryResult, GeometrySource, Waypoint


def test_result_normalises_geometry_and_counts_intermediates():
    result = GeometryResult(
        geometry=[[121, 14], [121.0, 14.001], [121.0, 14.002]],
        distance_meters=222.4,
        duration_seconds=22,
        source='exact_shape',
        from_waypoint=Waypoint(stable_id='A', lat=14.0, lon=121.0),
        to_waypoint=Waypoint(stable_id='B', lat=14.002, lon=121.0),
    )
    assert result.geometry[0] == (121.0, 14.0)
    assert result.source is GeometrySource.EXACT_SHAPE
    assert result.num_intermediate_points == 1

    data = result.to_dict()
    assert data['source'] == 'exact_shape'
    assert data['geometry'][-1] == [121.0, 14.002]
    assert data['from_stop'] == {'code': 'A', 'name': None, 'lat': 14.0, 'lon': 121.0}


def test_result_needs_two_points():
    with pytest.raises(ValueError):
        GeometryResult(geometry=[(121.0, 14.0)], distance_meters=0, duration_seconds=0,
                       source=GeometrySource.STRAIGHT_LINE, from_waypoint=Waypoint(), to_waypoint=Waypoint())


def test_metrics_hit_rate():
    assert CacheMetrics().hit_rate() == 0.0
    assert CacheMetrics(hits=3, misses=1).hit_rate() == 75.0


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv('CACHE_CAPACITY', '12')
    monkeypatch.setenv('SINGLE_FLIGHT', 'false')
    monkeypatch.setenv('GRAPHHOPPER_URL', 'http://gh:8989')
    config = Config()
    assert config.cache_capacity == 12
    assert config.single_flight is False
    assert config.get_graphhopper_config()['base_url'] == 'http://gh:8989'
    assert config.get_cache_config()['ttl_seconds'] == 7 * 24 * 3600
    config.validate()


def test_config_validation(monkeypatch):
    monkeypatch.setenv('CACHE_CAPACITY', '0')
    with pytest.raises(ValueError):
        Config().validate()
