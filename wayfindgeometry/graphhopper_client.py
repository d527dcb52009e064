"""
Routing engine adapter.

Sole responsibility: talk to a routing engine over HTTP and return a
normalized route (geometry as (lon, lat) pairs, meters, seconds). It knows
nothing about shapes, fallbacks or caching.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import polyline
import requests

from .exceptions import ProviderTimeoutError, ProviderUnavailableError
from .models.geometry import LonLat, Waypoint


@dataclass(frozen=True)
class EngineRoute:
    """Normalized routing engine answer"""
    geometry: List[LonLat]
    distance_meters: float
    duration_seconds: int


class RoutingEngine(ABC):
    """Anything that can route between two coordinates"""

    @abstractmethod
    def route(self, from_waypoint: Waypoint, to_waypoint: Waypoint) -> EngineRoute:
        """Return a route or raise ProviderUnavailableError / ProviderTimeoutError"""


class GraphHopperClient(RoutingEngine):
    """
    GraphHopper adapter / client

    - Calls the GraphHopper ``/route`` endpoint
    - Converts internal waypoints to ``point=lat,lon`` query params
    - Decodes encoded or plain point lists into (lon, lat) pairs
    """

    def __init__(self, base_url: str = "http://localhost:8989", profile: str = "car",
                 timeout: float = 5.0, locale: str = "es",
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("GraphHopper base URL not set. Please set GRAPHHOPPER_URL.")
        self.base_url = base_url.rstrip('/')
        self.profile = profile  # the vehicle profile configured on the server (car, bus, foot)
        self.timeout = timeout  # seconds to wait for GraphHopper before giving up
        self.locale = locale
        self.session = session or requests.Session()

    def _params(self, points: List[Tuple[float, float]]) -> List[Tuple[str, str]]:
        """Build query params; GraphHopper wants one ``point`` param per (lat, lon)"""
        params = [('point', f"{lat},{lon}") for lat, lon in points]
        params += [
            ('profile', self.profile),
            ('locale', self.locale),
            ('points_encoded', 'true'),
            ('instructions', 'false'),
            ('calc_points', 'true'),
        ]
        return params

    @staticmethod
    def _decode_points(points: Any) -> List[LonLat]:
        """Return (lon, lat) pairs from an encoded string or a GeoJSON LineString"""
        if isinstance(points, str):
            # decode returns (lat, lon)
            return [(float(lon), float(lat)) for lat, lon in polyline.decode(points, 5)]
        if isinstance(points, dict) and 'coordinates' in points:
            return [(float(c[0]), float(c[1])) for c in points['coordinates']]
        raise ProviderUnavailableError(f"Unexpected GraphHopper points payload: {type(points).__name__}")

    def route(self, from_waypoint: Waypoint, to_waypoint: Waypoint) -> EngineRoute:
        """
        Calls GraphHopper /route between two waypoints.

        Returns:
            EngineRoute with geometry, distance in meters and duration in seconds
        """
        if not from_waypoint.has_coordinates or not to_waypoint.has_coordinates:
            raise ProviderUnavailableError("Both waypoints need coordinates for routing")

        url = f"{self.base_url}/route"
        params = self._params([(from_waypoint.lat, from_waypoint.lon), (to_waypoint.lat, to_waypoint.lon)])
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderTimeoutError(f"GraphHopper timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise ProviderUnavailableError(f"GraphHopper not reachable: {e}") from e

        if response.status_code != 200:
            raise ProviderUnavailableError(f"GraphHopper error {response.status_code}: {response.text[:200]}")

        try:
            data: Dict[str, Any] = response.json()
        except ValueError as e:
            raise ProviderUnavailableError("GraphHopper returned invalid JSON") from e

        paths = data.get('paths') or []
        if not paths:
            raise ProviderUnavailableError(f"GraphHopper found no route: {data.get('message', 'no paths')}")

        path = paths[0]  # take the best path
        geometry = self._decode_points(path.get('points'))
        if len(geometry) < 2:
            raise ProviderUnavailableError(f"GraphHopper returned {len(geometry)} points")

        return EngineRoute(
            geometry=geometry,
            distance_meters=float(path.get('distance', 0.0)),
            duration_seconds=int(round(float(path.get('time', 0)) / 1000.0)),  # time is in ms
        )

    def health_check(self) -> bool:
        """True when the GraphHopper server answers its /health endpoint"""
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
        except requests.RequestException:
            return False
        return response.status_code == 200
