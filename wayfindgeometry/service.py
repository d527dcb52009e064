"""
GeometryService: the cached entry point for bus-leg geometry.

Ties the GeometryResolver to a RouteCache and owns their lifecycle, so an
application builds one service at startup (``from_config`` or by hand) and
shuts it down on exit instead of relying on module-level singletons.
"""

import threading
import time
from typing import Any, Dict, Optional

from .cache.keys import request_cache_key
from .cache.persistence import PickleFilePersistence
from .cache.route_cache import RouteCache
from .config import Config, config as default_config
from .graphhopper_client import GraphHopperClient
from .logger import logger
from .models.geometry import GeometryResult, ResolutionRequest
from .resolver import GeometryResolver
from .shapes.gtfs_repository import GTFSShapeRepository


class _InFlight:
    """A resolve in progress that other callers may wait on"""

    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[GeometryResult] = None
        self.error: Optional[BaseException] = None


class GeometryService:
    """
    Cached geometry resolution.

    Args:
        resolver: Provider chain used on cache misses
        cache: Cache for finished results; a private in-memory one if omitted
        key_precision: Decimals kept when fingerprinting coordinates
        single_flight: Collapse concurrent misses for the same key into one
            resolver call
        sweep_interval: Seconds between background expiry sweeps, 0 disables
    """

    def __init__(self, resolver: GeometryResolver, cache: Optional[RouteCache] = None,
                 key_precision: int = 4, single_flight: bool = True, sweep_interval: float = 300.0):
        self.resolver = resolver
        self.cache = cache if cache is not None else RouteCache()
        self.key_precision = key_precision
        self.single_flight = single_flight
        self.sweep_interval = sweep_interval

        self._inflight: Dict[str, _InFlight] = {}
        self._inflight_lock = threading.Lock()
        self._started = False

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "GeometryService":
        """Wire GTFS shapes, GraphHopper, resolver and a persistent cache (global config by default)"""
        config = config or default_config
        config.validate()
        repository = GTFSShapeRepository(config.gtfs_dir)
        engine = GraphHopperClient(**config.get_graphhopper_config())
        resolver = GeometryResolver(repository=repository, routing_engine=engine,
                                    **config.get_resolver_config())
        persistence = PickleFilePersistence(config.cache_snapshot_path,
                                            simplify_tolerance=config.cache_simplify_tolerance)
        cache = RouteCache(persistence=persistence, **config.get_cache_config())
        return cls(resolver, cache,
                   key_precision=config.cache_key_precision,
                   single_flight=config.single_flight,
                   sweep_interval=config.cache_sweep_interval)

    # ------------------------------------------------------------------
    #  Lifecycle
    # ------------------------------------------------------------------
    def init(self) -> "GeometryService":
        if self._started:
            return self
        self.resolver.open()
        self.cache.open()
        restored = self.cache.load()
        self.cache.start_sweeper(self.sweep_interval)

        for provider in self.resolver.providers:
            engine = getattr(provider, 'engine', None)
            if engine is not None and hasattr(engine, 'health_check'):
                if engine.health_check():
                    logger.info(f"Routing engine for {provider.name} is reachable")
                else:
                    logger.warning(f"Routing engine for {provider.name} is not reachable, "
                                   f"legs will fall back to straight lines")

        self._started = True
        logger.info(f"Geometry service started with {restored} cached geometries")
        return self

    def shutdown(self):
        self.cache.close()
        self.resolver.close()
        self._started = False
        logger.info("Geometry service stopped")

    def __enter__(self) -> "GeometryService":
        return self.init()

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    # ------------------------------------------------------------------
    #  Resolution
    # ------------------------------------------------------------------
    def resolve(self, request: ResolutionRequest) -> GeometryResult:
        """
        Geometry for one leg, served from cache when possible.

        Raises:
            InsufficientInputError: an endpoint has no usable coordinates;
                the cache is neither read nor written
        """
        started = time.perf_counter()
        prepared = self.resolver.prepare(request)
        key = request_cache_key(prepared, self.key_precision)

        cached = self.cache.get(key)
        if cached is not None:
            logger.log_resolution(prepared.route_id, cached.source.value, len(cached.geometry),
                                  (time.perf_counter() - started) * 1000, cache_hit=True)
            return cached

        if self.single_flight:
            result = self._resolve_shared(key, prepared)
        else:
            result = self._resolve_and_store(key, prepared)

        logger.log_resolution(prepared.route_id, result.source.value, len(result.geometry),
                              (time.perf_counter() - started) * 1000, cache_hit=False)
        return result

    def _resolve_and_store(self, key: str, request: ResolutionRequest) -> GeometryResult:
        result = self.resolver.resolve_prepared(request)
        self.cache.put(key, result)
        return result

    def _resolve_shared(self, key: str, request: ResolutionRequest) -> GeometryResult:
        with self._inflight_lock:
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _InFlight()
                self._inflight[key] = flight

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            flight.result = self._resolve_and_store(key, request)
            return flight.result
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)
            flight.done.set()

    # ------------------------------------------------------------------
    #  Introspection
    # ------------------------------------------------------------------
    def stats(self, top_n: int = 5) -> Dict[str, Any]:
        stats = self.cache.stats()
        return {
            'total_items': stats.total_items,
            'valid_items': stats.valid_items,
            'expired_items': stats.expired_items,
            'capacity': stats.capacity,
            'hits': stats.hits,
            'misses': stats.misses,
            'hit_rate': round(stats.hit_rate, 2),
            'memory_est_mb': round(stats.memory_est_mb, 3),
            'top_entries': self.cache.top_entries(top_n),
        }
