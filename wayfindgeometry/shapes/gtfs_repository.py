"""
Shape repositories: where reference polylines and stop coordinates come from.

The resolver only needs two lookups, a shape for a route and the coordinates
of a stop code, so any backing store can sit behind ``ShapeRepository``.
``GTFSShapeRepository`` reads a static GTFS feed with pandas.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import pandas as pd

from ..models.geometry import ShapePoint, Waypoint

logger = logging.getLogger(__name__)


class ShapeRepository(ABC):
    """Read-only source of ordered shapes and stop coordinates"""

    @abstractmethod
    def lookup_shape(self, route_id: str) -> Optional[List[ShapePoint]]:
        """Return the ordered shape for a route, or None when unknown"""

    def lookup_shape_candidates(self, route_id: str) -> List[List[ShapePoint]]:
        """All shapes that may serve a route (e.g. one per direction)"""
        shape = self.lookup_shape(route_id)
        return [shape] if shape else []

    def lookup_stop(self, stable_id: str) -> Optional[Waypoint]:
        """Return a waypoint with coordinates for a stop code, or None"""
        return None


class InMemoryShapeRepository(ShapeRepository):
    """Repository backed by plain dicts, handy for tests and small feeds"""

    def __init__(self, shapes: Optional[Dict[str, List[List[ShapePoint]]]] = None,
                 stops: Optional[Dict[str, Waypoint]] = None):
        self.shapes: Dict[str, List[List[ShapePoint]]] = {}
        self.stops: Dict[str, Waypoint] = dict(stops or {})
        for route_id, shape_list in (shapes or {}).items():
            for shape in shape_list:
                self.add_shape(route_id, shape)

    def add_shape(self, route_id: str, points: Iterable[ShapePoint]):
        ordered = sorted(points, key=lambda p: p.sequence_index)
        self.shapes.setdefault(str(route_id), []).append(ordered)

    def add_stop(self, waypoint: Waypoint):
        if not waypoint.stable_id:
            raise ValueError("Stops need a stable_id")
        self.stops[waypoint.stable_id] = waypoint

    def lookup_shape(self, route_id: str) -> Optional[List[ShapePoint]]:
        candidates = self.shapes.get(str(route_id))
        return list(candidates[0]) if candidates else None

    def lookup_shape_candidates(self, route_id: str) -> List[List[ShapePoint]]:
        return [list(shape) for shape in self.shapes.get(str(route_id), [])]

    def lookup_stop(self, stable_id: str) -> Optional[Waypoint]:
        return self.stops.get(str(stable_id))


class GTFSShapeRepository(ShapeRepository):
    """
    Shape repository over a GTFS directory (shapes.txt, trips.txt, stops.txt,
    optionally routes.txt).

    A route identifier may be a GTFS ``route_id``, a ``route_short_name``
    (what riders see on the bus, e.g. "506") or a ``shape_id``.
    """

    def __init__(self, data_dir: str = "data"):
        self.data_dir = data_dir
        self.shapes: Dict[str, List[ShapePoint]] = {}
        self.route_shapes: Dict[str, List[str]] = {}
        self.short_names: Dict[str, List[str]] = {}
        self.stops: Dict[str, Waypoint] = {}

        self._load_shapes()
        self._load_trips()
        self._load_routes()
        self._load_stops()
        logger.info(f"Loaded GTFS feed from {data_dir}: {len(self.shapes)} shapes, "
                    f"{len(self.route_shapes)} routes, {len(self.stops)} stops")

    def _path(self, name: str) -> str:
        return os.path.join(self.data_dir, name)

    def _load_shapes(self):
        """Load shapes.txt into ordered ShapePoint lists keyed by shape_id"""
        path = self._path('shapes.txt')
        if not os.path.exists(path):
            logger.warning(f"No shapes.txt in {self.data_dir}")
            return
        shapes_df = pd.read_csv(path, dtype={'shape_id': str})
        shapes_df = shapes_df.dropna(subset=['shape_pt_lat', 'shape_pt_lon', 'shape_pt_sequence'])
        shapes_df = shapes_df.sort_values(['shape_id', 'shape_pt_sequence'])
        for shape_id, group in shapes_df.groupby('shape_id', sort=False):
            self.shapes[str(shape_id)] = [
                ShapePoint(lat=float(lat), lon=float(lon), sequence_index=int(seq))
                for lat, lon, seq in zip(group['shape_pt_lat'].values,
                                         group['shape_pt_lon'].values,
                                         group['shape_pt_sequence'].values)
            ]

    def _load_trips(self):
        """Map route_id to the distinct shape_ids its trips use, most used first"""
        path = self._path('trips.txt')
        if not os.path.exists(path):
            logger.warning(f"No trips.txt in {self.data_dir}")
            return
        trips_df = pd.read_csv(path, dtype={'route_id': str, 'shape_id': str})
        if 'shape_id' not in trips_df.columns:
            logger.warning("trips.txt has no shape_id column")
            return
        trips_df = trips_df.dropna(subset=['route_id', 'shape_id'])
        counts = trips_df.groupby(['route_id', 'shape_id']).size().reset_index(name='n')
        counts = counts.sort_values(['route_id', 'n', 'shape_id'], ascending=[True, False, True])
        for route_id, group in counts.groupby('route_id', sort=False):
            self.route_shapes[str(route_id)] = [str(s) for s in group['shape_id'] if str(s) in self.shapes]

    def _load_routes(self):
        path = self._path('routes.txt')
        if not os.path.exists(path):
            return
        routes_df = pd.read_csv(path, dtype={'route_id': str, 'route_short_name': str})
        if 'route_short_name' not in routes_df.columns:
            return
        for _, row in routes_df.dropna(subset=['route_short_name']).iterrows():
            self.short_names.setdefault(str(row['route_short_name']), []).append(str(row['route_id']))

    def _load_stops(self):
        path = self._path('stops.txt')
        if not os.path.exists(path):
            logger.warning(f"No stops.txt in {self.data_dir}")
            return
        stops_df = pd.read_csv(path, dtype={'stop_id': str, 'stop_code': str})
        for _, row in stops_df.iterrows():
            if pd.isnull(row['stop_lat']) or pd.isnull(row['stop_lon']):
                logger.warning(f"Invalid stop row: {row.get('stop_id')}")
                continue
            name = row.get('stop_name')
            waypoint = Waypoint(
                stable_id=str(row['stop_id']),
                name=None if pd.isnull(name) else str(name),
                lat=float(row['stop_lat']),
                lon=float(row['stop_lon']),
            )
            self.stops[waypoint.stable_id] = waypoint
            code = row.get('stop_code')
            if code is not None and not pd.isnull(code):
                # stop_code is what riders and clients know the stop by
                self.stops[str(code)] = Waypoint(stable_id=str(code), name=waypoint.name,
                                                 lat=waypoint.lat, lon=waypoint.lon)

    def _shape_ids_for(self, route_id: str) -> List[str]:
        route_id = str(route_id)
        if route_id in self.route_shapes:
            return self.route_shapes[route_id]
        shape_ids: List[str] = []
        for gtfs_route_id in self.short_names.get(route_id, []):
            for shape_id in self.route_shapes.get(gtfs_route_id, []):
                if shape_id not in shape_ids:
                    shape_ids.append(shape_id)
        if not shape_ids and route_id in self.shapes:
            shape_ids = [route_id]
        return shape_ids

    def lookup_shape(self, route_id: str) -> Optional[List[ShapePoint]]:
        shape_ids = self._shape_ids_for(route_id)
        if not shape_ids:
            return None
        return list(self.shapes[shape_ids[0]])

    def lookup_shape_candidates(self, route_id: str) -> List[List[ShapePoint]]:
        return [list(self.shapes[shape_id]) for shape_id in self._shape_ids_for(route_id)]

    def lookup_stop(self, stable_id: str) -> Optional[Waypoint]:
        return self.stops.get(str(stable_id))

