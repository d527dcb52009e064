from ..exceptions import ProviderUnavailableError
from ..graphhopper_client import RoutingEngine
from ..models.geometry import GeometrySource, ResolutionRequest
from .base import GeometryProvider, ProviderOutcome


class RoutedFallbackProvider(GeometryProvider):
    """Asks an external routing engine for a road-following path"""

    name = "routed_fallback"
    source = GeometrySource.ROUTED_FALLBACK

    def __init__(self, engine: RoutingEngine):
        self.engine = engine

    def attempt(self, request: ResolutionRequest) -> ProviderOutcome:
        if not request.from_waypoint.has_coordinates or not request.to_waypoint.has_coordinates:
            raise ProviderUnavailableError("Routing needs coordinates for both waypoints")
        route = self.engine.route(request.from_waypoint, request.to_waypoint)
        if len(route.geometry) < 2:
            raise ProviderUnavailableError(f"Routing engine returned {len(route.geometry)} points")
        return ProviderOutcome(
            geometry=list(route.geometry),
            source=self.source,
            duration_seconds=int(route.duration_seconds),
        )
