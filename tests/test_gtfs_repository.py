import pytest

from wayfindgeometry.models.geometry import ShapePoint, Waypoint
from wayfindgeometry.shapes.gtfs_repository import GTFSShapeRepository, InMemoryShapeRepository


@pytest.fixture
def feed_dir(tmp_path):
    # Rows deliberately out of sequence order
    (tmp_path / 'shapes.txt').write_text(
        "shape_id,shape_pt_lat,shape_pt_lon,shape_pt_sequence\n"
        "NB,14.002,121.0,3\n"
        "NB,14.000,121.0,1\n"
        "NB,14.001,121.0,2\n"
        "SB,14.000,121.0,3\n"
        "SB,14.002,121.0,1\n"
        "SB,14.001,121.0,2\n"
    )
    (tmp_path / 'trips.txt').write_text(
        "route_id,service_id,trip_id,shape_id\n"
        "R506,WD,T1,SB\n"
        "R506,WD,T2,NB\n"
        "R506,WD,T3,NB\n"
        "R507,WD,T4,\n"
    )
    (tmp_path / 'routes.txt').write_text(
        "route_id,route_short_name,route_type\n"
        "R506,506,3\n"
        "R507,507,3\n"
    )
    (tmp_path / 'stops.txt').write_text(
        "stop_id,stop_code,stop_name,stop_lat,stop_lon\n"
        "1001,PLZ,Plaza,14.0,121.0\n"
        "1002,,Market,14.002,121.0\n"
        "1003,BAD,Broken,,\n"
    )
    return str(tmp_path)


def test_shapes_are_ordered_by_sequence(feed_dir):
    repo = GTFSShapeRepository(feed_dir)
    shape = repo.lookup_shape('R506')
    assert [p.sequence_index for p in shape] == [1, 2, 3]
    assert [p.lat for p in shape] == [14.0, 14.001, 14.002]


def test_most_used_shape_comes_first(feed_dir):
    repo = GTFSShapeRepository(feed_dir)
    candidates = repo.lookup_shape_candidates('R506')
    assert len(candidates) == 2
    assert candidates[0][0].lat == 14.0
    assert candidates[1][0].lat == 14.002


def test_short_name_and_shape_id_resolve(feed_dir):
    repo = GTFSShapeRepository(feed_dir)
    assert repo.lookup_shape('506') == repo.lookup_shape('R506')
    assert repo.lookup_shape('SB')[0].lat == 14.002
    assert repo.lookup_shape('507') is None
    assert repo.lookup_shape_candidates('unknown') == []


def test_stops_resolve_by_id_and_code(feed_dir):
    repo = GTFSShapeRepository(feed_dir)
    assert repo.lookup_stop('1001') == Waypoint(stable_id='1001', name='Plaza', lat=14.0, lon=121.0)
    assert repo.lookup_stop('PLZ').lat == 14.0
    assert repo.lookup_stop('1002').name == 'Market'
    assert repo.lookup_stop('1003') is None
    assert repo.lookup_stop('BAD') is None


def test_missing_feed_is_empty(tmp_path):
    repo = GTFSShapeRepository(str(tmp_path))
    assert repo.lookup_shape('R506') is None
    assert repo.lookup_stop('1001') is None


def test_in_memory_repository_sorts_points():
    repo = InMemoryShapeRepository()
    repo.add_shape('R1', [ShapePoint(14.1, 121.0, 2), ShapePoint(14.0, 121.0, 1)])
    repo.add_stop(Waypoint(stable_id='S', lat=14.0, lon=121.0))
    assert [p.sequence_index for p in repo.lookup_shape('R1')] == [1, 2]
    assert repo.lookup_stop('S').lat == 14.0
    with pytest.raises(ValueError):
        repo.add_stop(Waypoint(lat=1.0, lon=1.0))
