import hashlib
from typing import Optional

from ..models.geometry import ResolutionRequest, Waypoint

DEFAULT_PRECISION = 4  # decimals, ~11 m: small GPS jitter still hits the cache


def _quantize(value: float, precision: int) -> str:
    # + 0.0 folds -0.0 into 0.0 so both quantize identically
    return f"{round(float(value), precision) + 0.0:.{precision}f}"


def make_cache_key(from_waypoint: Waypoint, to_waypoint: Waypoint, route_id: Optional[str] = None,
                   precision: int = DEFAULT_PRECISION) -> str:
    """
    Deterministic, direction-sensitive fingerprint of a leg.

    Origin and destination are quantized to ``precision`` decimals and
    hashed in order, so A→B and B→A never share a key. The route id is part
    of the fingerprint because two bus lines between the same stops follow
    different paths.
    """
    if not from_waypoint.has_coordinates or not to_waypoint.has_coordinates:
        raise ValueError("Cache keys need coordinates for both waypoints")
    raw = (f"{_quantize(from_waypoint.lat, precision)},{_quantize(from_waypoint.lon, precision)}"
           f"->{_quantize(to_waypoint.lat, precision)},{_quantize(to_waypoint.lon, precision)}")
    if route_id:
        raw = f"{route_id}|{raw}"
    # Hash to keep keys short; the first 16 bytes are plenty
    return hashlib.sha256(raw.encode('utf-8')).hexdigest()[:32]


def request_cache_key(request: ResolutionRequest, precision: int = DEFAULT_PRECISION) -> str:
    return make_cache_key(request.from_waypoint, request.to_waypoint, request.route_id, precision)
