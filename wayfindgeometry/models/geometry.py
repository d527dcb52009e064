from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# (lon, lat) pair, the order used by GeoJSON and every renderer we feed
LonLat = Tuple[float, float]
GeometrySegment = Tuple[LonLat, ...]


class GeometrySource(str, Enum):
    """Which provider produced a geometry"""
    EXACT_SHAPE = "exact_shape"
    ROUTED_FALLBACK = "routed_fallback"
    STRAIGHT_LINE = "straight_line"


@dataclass(frozen=True)
class Waypoint:
    """A stop or raw point; coordinates may be filled in later from a stop code"""
    stable_id: Optional[str] = None
    name: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.stable_id, 'name': self.name, 'lat': self.lat, 'lon': self.lon}


@dataclass(frozen=True)
class ShapePoint:
    """One vertex of a reference shape"""
    lat: float
    lon: float
    sequence_index: int


@dataclass(frozen=True)
class ResolutionRequest:
    """A bus leg to resolve: optional route identifier plus two waypoints"""
    from_waypoint: Waypoint
    to_waypoint: Waypoint
    route_id: Optional[str] = None


@dataclass(frozen=True)
class GeometryResult:
    """Resolved geometry for one leg, tagged with its provenance"""
    geometry: GeometrySegment
    distance_meters: float
    duration_seconds: int
    source: GeometrySource
    from_waypoint: Waypoint
    to_waypoint: Waypoint
    num_intermediate_points: int = field(default=-1)

    def __post_init__(self):
        geometry = tuple((float(lon), float(lat)) for lon, lat in self.geometry)
        if len(geometry) < 2:
            raise ValueError(f"Geometry must have at least 2 points, got {len(geometry)}")
        object.__setattr__(self, 'geometry', geometry)
        object.__setattr__(self, 'source', GeometrySource(self.source))
        if self.num_intermediate_points < 0:
            object.__setattr__(self, 'num_intermediate_points', len(geometry) - 2)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation, geometry as [[lon, lat], ...]"""
        return {
            'geometry': [[lon, lat] for lon, lat in self.geometry],
            'distance_meters': self.distance_meters,
            'duration_seconds': self.duration_seconds,
            'source': self.source.value,
            'from_stop': self.from_waypoint.to_dict(),
            'to_stop': self.to_waypoint.to_dict(),
            'num_intermediate_points': self.num_intermediate_points,
        }
