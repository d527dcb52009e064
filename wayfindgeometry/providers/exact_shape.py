import logging
from typing import Optional

from ..exceptions import PoorMatchError, ShapeMatchError, ShapeNotFoundError
from ..models.geometry import GeometrySource, ResolutionRequest
from ..segment_extractor import SegmentExtractor
from ..shapes.gtfs_repository import ShapeRepository
from ..utils.geo_utils import haversine_distance, path_length
from .base import GeometryProvider, ProviderOutcome

logger = logging.getLogger(__name__)


class ExactShapeProvider(GeometryProvider):
    """
    Slices the route's reference shape between the two stops.

    Every shape the repository lists for the route is tried in order (routes
    usually have one shape per direction); the first one both stops match in
    travel order wins.
    """

    name = "exact_shape"
    source = GeometrySource.EXACT_SHAPE

    def __init__(self, repository: ShapeRepository, extractor: Optional[SegmentExtractor] = None,
                 snap_distance_meters: float = 100.0, max_detour_ratio: Optional[float] = 3.0):
        self.repository = repository
        self.extractor = extractor or SegmentExtractor()
        self.snap_distance_meters = snap_distance_meters
        self.max_detour_ratio = max_detour_ratio

    def attempt(self, request: ResolutionRequest) -> ProviderOutcome:
        if not request.route_id:
            raise ShapeNotFoundError("Request has no route identifier")

        candidates = self.repository.lookup_shape_candidates(request.route_id)
        if not candidates:
            raise ShapeNotFoundError(f"No shape found for route {request.route_id}")

        last_error: ShapeMatchError = ShapeNotFoundError(f"No usable shape for route {request.route_id}")
        for shape in candidates:
            try:
                segment = self.extractor.extract(shape, request.from_waypoint, request.to_waypoint,
                                                 self.snap_distance_meters)
                self._check_detour(segment, request)
                return ProviderOutcome(geometry=segment, source=self.source)
            except ShapeMatchError as e:
                logger.debug(f"Shape candidate rejected for route {request.route_id}: {e}")
                last_error = e
        raise last_error

    def _check_detour(self, segment, request: ResolutionRequest):
        """Reject slices that wander far more than the stops are apart (figure-8 loops)"""
        if not self.max_detour_ratio:
            return
        origin, destination = request.from_waypoint, request.to_waypoint
        direct = haversine_distance(origin.lat, origin.lon, destination.lat, destination.lon)
        # Below the snap distance the ratio is dominated by snapping noise
        if direct <= self.snap_distance_meters:
            return
        ratio = path_length(segment) / direct
        if ratio > self.max_detour_ratio:
            raise PoorMatchError(f"Shape slice is {ratio:.1f}x longer than the direct distance")
