from ..exceptions import InsufficientInputError
from ..models.geometry import GeometrySource, ResolutionRequest
from .base import GeometryProvider, ProviderOutcome


class StraightLineProvider(GeometryProvider):
    """Two-point segment from origin to destination; the terminal fallback"""

    name = "straight_line"
    source = GeometrySource.STRAIGHT_LINE
    blocking = False

    def attempt(self, request: ResolutionRequest) -> ProviderOutcome:
        origin, destination = request.from_waypoint, request.to_waypoint
        if not origin.has_coordinates or not destination.has_coordinates:
            raise InsufficientInputError("Straight line needs coordinates for both waypoints")
        return ProviderOutcome(
            geometry=[(float(origin.lon), float(origin.lat)), (float(destination.lon), float(destination.lat))],
            source=self.source,
        )
