import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString

EARTH_RADIUS_M = 6371000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate haversine distance between two points in meters"""
    lat1_rad = math.radians(lat1)
    lon1_rad = math.radians(lon1)
    lat2_rad = math.radians(lat2)
    lon2_rad = math.radians(lon2)
    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad
    a = (math.sin(dlat/2)**2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon/2)**2)
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return EARTH_RADIUS_M * c


def haversine_to_many(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Haversine distance in meters from one point to arrays of points"""
    lat_rad = np.radians(lat)
    lats_rad = np.radians(lats)
    dlat = lats_rad - lat_rad
    dlon = np.radians(lons) - np.radians(lon)
    a = np.sin(dlat / 2) ** 2 + np.cos(lat_rad) * np.cos(lats_rad) * np.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def path_length(coords: Sequence[Tuple[float, float]]) -> float:
    """Cumulative great-circle length in meters of a list of (lon, lat) points"""
    return sum(
        haversine_distance(lat1, lon1, lat2, lon2)
        for (lon1, lat1), (lon2, lat2) in zip(coords[:-1], coords[1:])
    )


def validate_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    """Validate coordinate bounds; NaN, infinities and None are invalid"""
    if lat is None or lon is None:
        return False
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon) or math.isinf(lat) or math.isinf(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def simplify_geometry(coords: Sequence[Tuple[float, float]], tolerance: float) -> List[Tuple[float, float]]:
    """
    Douglas-Peucker simplification of a (lon, lat) polyline.

    Args:
        coords: Polyline as (lon, lat) tuples
        tolerance: Maximum deviation in degrees; 0 or less returns the input

    Returns:
        Simplified polyline, always keeping both endpoints
    """
    points = [(float(lon), float(lat)) for lon, lat in coords]
    if tolerance <= 0 or len(points) <= 2:
        return points
    simplified = list(LineString(points).simplify(tolerance, preserve_topology=False).coords)
    if len(simplified) < 2:
        return [points[0], points[-1]]
    return [(float(lon), float(lat)) for lon, lat in simplified]
