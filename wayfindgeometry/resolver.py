"""
GeometryResolver: run the provider chain for one bus leg.

Preference order:

    exact GTFS shape slice → routing engine → straight line

Each provider gets one independent attempt. Blocking providers run on a
thread pool so a slow shape store or routing engine can only cost its own
timeout; the whole chain is additionally bounded by a resolve deadline. The
straight line needs nothing but two coordinates, so a resolve with valid
endpoints always produces a result.
"""

import dataclasses
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, List, Optional, Sequence

from .exceptions import InsufficientInputError, ProviderError, ProviderTimeoutError
from .graphhopper_client import RoutingEngine
from .logger import logger
from .models.geometry import GeometryResult, ResolutionRequest, Waypoint
from .providers.base import GeometryProvider, ProviderOutcome
from .providers.exact_shape import ExactShapeProvider
from .providers.routed_fallback import RoutedFallbackProvider
from .providers.straight_line import StraightLineProvider
from .shapes.gtfs_repository import ShapeRepository
from .utils.geo_utils import path_length, validate_coordinates


class GeometryResolver:
    """Orchestrates geometry providers and annotates results with provenance"""

    def __init__(self,
                 repository: Optional[ShapeRepository] = None,
                 routing_engine: Optional[RoutingEngine] = None,
                 providers: Optional[Sequence[GeometryProvider]] = None,
                 snap_distance_meters: float = 100.0,
                 max_detour_ratio: Optional[float] = 3.0,
                 provider_timeout: float = 5.0,
                 resolve_deadline: float = 12.0,
                 average_speed_mps: float = 10.0,
                 max_workers: int = 8,
                 clock: Callable[[], float] = time.monotonic):
        self.repository = repository
        self.provider_timeout = provider_timeout
        self.resolve_deadline = resolve_deadline
        self.average_speed_mps = average_speed_mps
        self.clock = clock

        if providers is None:
            chain: List[GeometryProvider] = []
            if repository is not None:
                chain.append(ExactShapeProvider(repository, snap_distance_meters=snap_distance_meters,
                                                max_detour_ratio=max_detour_ratio))
            if routing_engine is not None:
                chain.append(RoutedFallbackProvider(routing_engine))
        else:
            chain = list(providers)
        if not chain or not isinstance(chain[-1], StraightLineProvider):
            chain.append(StraightLineProvider())
        self.providers: List[GeometryProvider] = chain

        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self.open()

    # ------------------------------------------------------------------
    #  Input preparation
    # ------------------------------------------------------------------
    def _complete_waypoint(self, waypoint: Waypoint) -> Waypoint:
        """Fill in coordinates from the stop directory; drop invalid ones"""
        if waypoint.has_coordinates and validate_coordinates(waypoint.lat, waypoint.lon):
            return waypoint
        if waypoint.has_coordinates:
            logger.warning(f"Invalid coordinates for waypoint {waypoint.stable_id}: ({waypoint.lat}, {waypoint.lon})")
        waypoint = dataclasses.replace(waypoint, lat=None, lon=None)

        if waypoint.stable_id and self.repository is not None:
            stop = self.repository.lookup_stop(waypoint.stable_id)
            if stop is not None and validate_coordinates(stop.lat, stop.lon):
                return dataclasses.replace(waypoint, lat=float(stop.lat), lon=float(stop.lon),
                                           name=waypoint.name or stop.name)
            logger.debug(f"Stop {waypoint.stable_id} not found in stop directory")
        return waypoint

    def prepare(self, request: ResolutionRequest) -> ResolutionRequest:
        """
        Complete both waypoints and check they can be resolved at all.

        Raises:
            InsufficientInputError: an endpoint has neither valid coordinates
                nor a stop code the repository knows
        """
        origin = self._complete_waypoint(request.from_waypoint)
        destination = self._complete_waypoint(request.to_waypoint)
        if not origin.has_coordinates or not destination.has_coordinates:
            missing = [label for label, wp in (('from', origin), ('to', destination)) if not wp.has_coordinates]
            raise InsufficientInputError(f"No usable coordinates for endpoint(s): {', '.join(missing)}")
        return ResolutionRequest(from_waypoint=origin, to_waypoint=destination, route_id=request.route_id)

    # ------------------------------------------------------------------
    #  Resolution
    # ------------------------------------------------------------------
    def resolve(self, request: ResolutionRequest) -> GeometryResult:
        """Resolve a leg, falling through providers until one succeeds"""
        return self.resolve_prepared(self.prepare(request))

    def resolve_prepared(self, request: ResolutionRequest) -> GeometryResult:
        """Resolve a request that already went through prepare()"""
        deadline = self.clock() + self.resolve_deadline

        for provider in self.providers:
            started = time.perf_counter()
            try:
                outcome = self._attempt(provider, request, deadline)
                if len(outcome.geometry) < 2:
                    raise ProviderError(f"{provider.name} returned {len(outcome.geometry)} point(s)")
            except InsufficientInputError:
                raise
            except ProviderError as e:
                logger.log_provider_attempt(provider.name, (time.perf_counter() - started) * 1000, False,
                                            f"{type(e).__name__}: {e}")
                continue
            except Exception as e:
                # Provider bugs are treated like any other provider failure
                logger.error(f"Unexpected error in provider {provider.name}: {type(e).__name__}: {e}")
                continue

            logger.log_provider_attempt(provider.name, (time.perf_counter() - started) * 1000, True)
            return self._build_result(outcome, request)

        raise InsufficientInputError("No geometry provider could resolve the request")

    def _attempt(self, provider: GeometryProvider, request: ResolutionRequest, deadline: float) -> ProviderOutcome:
        if not provider.blocking:
            return provider.attempt(request)

        remaining = deadline - self.clock()
        if remaining <= 0:
            raise ProviderTimeoutError(f"Resolve deadline exhausted before {provider.name}")
        timeout = min(self.provider_timeout, remaining)

        future = self.open().submit(provider.attempt, request)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            # The worker thread cannot be interrupted; its late result is discarded
            future.cancel()
            raise ProviderTimeoutError(f"{provider.name} exceeded {timeout:.2f}s")

    def _build_result(self, outcome: ProviderOutcome, request: ResolutionRequest) -> GeometryResult:
        distance = path_length(outcome.geometry)
        if outcome.duration_seconds is not None:
            duration = int(outcome.duration_seconds)
        else:
            duration = int(round(distance / self.average_speed_mps))
        return GeometryResult(
            geometry=tuple(outcome.geometry),
            distance_meters=distance,
            duration_seconds=duration,
            source=outcome.source,
            from_waypoint=request.from_waypoint,
            to_waypoint=request.to_waypoint,
        )

    def open(self) -> ThreadPoolExecutor:
        """Provider thread pool, recreated after close()"""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                                    thread_name_prefix="geometry-provider")
            return self._executor

    def close(self):
        """Release the provider thread pool"""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)
