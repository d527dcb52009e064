"""
SegmentExtractor: cut the part of a reference shape that lies between two stops
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from .exceptions import InvertedIndicesError, PoorMatchError, ShapeNotFoundError
from .models.geometry import LonLat, ShapePoint, Waypoint
from .utils.geo_utils import haversine_to_many

logger = logging.getLogger(__name__)


class SegmentExtractor:

    """
    Matches two waypoints onto an ordered shape and returns the sub-path
    between them.

    Stops rarely sit exactly on a shape vertex, so each waypoint is matched to
    its nearest vertex and the match is accepted only within the snap
    distance. The slice always follows the shape's own direction; a
    destination that matches before the origin is rejected rather than
    reversed.
    """

    def nearest_index(self, shape: Sequence[ShapePoint], waypoint: Waypoint) -> Tuple[int, float]:
        """Find the index of the closest shape point and its distance in meters"""
        if not waypoint.has_coordinates:
            raise PoorMatchError(f"Waypoint {waypoint.stable_id or waypoint.name} has no coordinates")
        lats = np.fromiter((p.lat for p in shape), dtype=float, count=len(shape))
        lons = np.fromiter((p.lon for p in shape), dtype=float, count=len(shape))
        distances = haversine_to_many(waypoint.lat, waypoint.lon, lats, lons)
        closest_idx = int(np.argmin(distances))
        return closest_idx, float(distances[closest_idx])

    def extract(self, shape: Sequence[ShapePoint], from_waypoint: Waypoint, to_waypoint: Waypoint,
                snap_distance_meters: float) -> List[LonLat]:
        """
        Slice the shape between two waypoints

        Args:
            shape: Shape points ordered by sequence_index
            from_waypoint: Boarding stop
            to_waypoint: Alighting stop
            snap_distance_meters: Max distance between a waypoint and its matched vertex

        Returns:
            (lon, lat) points from the origin match to the destination match
            inclusive, at least 2 of them

        Raises:
            ShapeNotFoundError: shape is empty or has a single point
            PoorMatchError: a waypoint is farther than snap_distance_meters from the shape
            InvertedIndicesError: the destination matches before the origin
        """
        if not shape or len(shape) < 2:
            raise ShapeNotFoundError(f"Shape has {len(shape) if shape else 0} points, need at least 2")

        start_idx, start_dist = self.nearest_index(shape, from_waypoint)
        end_idx, end_dist = self.nearest_index(shape, to_waypoint)
        logger.debug(f"Matched origin to point {start_idx} ({start_dist:.1f} m), "
                     f"destination to point {end_idx} ({end_dist:.1f} m)")

        if start_dist > snap_distance_meters or end_dist > snap_distance_meters:
            raise PoorMatchError(
                f"Match too far from shape: origin {start_dist:.1f} m, destination {end_dist:.1f} m "
                f"(snap distance {snap_distance_meters:.1f} m)"
            )

        if start_idx > end_idx:
            raise InvertedIndicesError(f"Inverted indices: start={start_idx}, end={end_idx}")

        if start_idx == end_idx:
            # Both stops snap to one vertex: widen by one point along the direction of travel
            # The added vertex may lie beyond the snap distance of either stop
            if end_idx < len(shape) - 1:
                end_idx += 1
            else:
                start_idx -= 1

        segment = [(float(p.lon), float(p.lat)) for p in shape[start_idx:end_idx + 1]]
        logger.debug(f"Extracted segment: {len(segment)} points (indices {start_idx} to {end_idx})")
        return segment
