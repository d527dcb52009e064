"""
Configuration management for the WayFind geometry resolver
"""

import os
from typing import Optional


class Config:
    """Configuration class for the geometry resolver and its cache"""

    def __init__(self):
        # Data directories
        self.gtfs_dir: str = os.getenv('GTFS_DIR', 'data')

        # GraphHopper configuration
        self.graphhopper_url: str = os.getenv('GRAPHHOPPER_URL', 'http://localhost:8989')
        self.graphhopper_profile: str = os.getenv('GRAPHHOPPER_PROFILE', 'car')

        # Resolver parameters
        self.snap_distance_meters: float = float(os.getenv('SNAP_DISTANCE_METERS', '100.0'))
        self.max_detour_ratio: float = float(os.getenv('MAX_DETOUR_RATIO', '3.0'))
        self.provider_timeout: float = float(os.getenv('PROVIDER_TIMEOUT', '5.0'))
        self.resolve_deadline: float = float(os.getenv('RESOLVE_DEADLINE', '12.0'))
        self.average_speed_mps: float = float(os.getenv('AVERAGE_SPEED_MPS', '10.0'))  # ~36 km/h bus

        # Cache parameters
        self.cache_capacity: int = int(os.getenv('CACHE_CAPACITY', '50'))
        self.cache_ttl_seconds: float = float(os.getenv('CACHE_TTL_SECONDS', str(7 * 24 * 3600)))
        self.cache_snapshot_path: str = os.getenv('CACHE_SNAPSHOT_PATH', 'cache/geometry_cache.pkl')
        self.cache_flush_delay: float = float(os.getenv('CACHE_FLUSH_DELAY', '2.0'))
        self.cache_sweep_interval: float = float(os.getenv('CACHE_SWEEP_INTERVAL', '300'))
        self.cache_key_precision: int = int(os.getenv('CACHE_KEY_PRECISION', '4'))
        self.cache_simplify_tolerance: float = float(os.getenv('CACHE_SIMPLIFY_TOLERANCE', '0.0'))
        self.single_flight: bool = os.getenv('SINGLE_FLIGHT', 'True').lower() == 'true'

        # Logging
        self.log_level: str = os.getenv('LOG_LEVEL', 'INFO')
        self.log_file: Optional[str] = os.getenv('LOG_FILE')

    def validate(self):
        """Validate configuration"""
        if self.cache_capacity <= 0:
            raise ValueError("Cache capacity must be positive")

        if self.cache_ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")

        if self.snap_distance_meters <= 0:
            raise ValueError("Snap distance must be positive")

        if self.provider_timeout <= 0 or self.resolve_deadline <= 0:
            raise ValueError("Provider timeout and resolve deadline must be positive")

        if self.average_speed_mps <= 0:
            raise ValueError("Average speed must be positive")

        if not 0 <= self.cache_key_precision <= 8:
            raise ValueError("Cache key precision must be between 0 and 8 decimals")

    def get_resolver_config(self) -> dict:
        """Get configuration for GeometryResolver"""
        return {
            'snap_distance_meters': self.snap_distance_meters,
            'max_detour_ratio': self.max_detour_ratio,
            'provider_timeout': self.provider_timeout,
            'resolve_deadline': self.resolve_deadline,
            'average_speed_mps': self.average_speed_mps,
        }

    def get_cache_config(self) -> dict:
        """Get configuration for RouteCache"""
        return {
            'capacity': self.cache_capacity,
            'ttl_seconds': self.cache_ttl_seconds,
            'flush_delay': self.cache_flush_delay,
        }

    def get_graphhopper_config(self) -> dict:
        """Get configuration for GraphHopperClient"""
        return {
            'base_url': self.graphhopper_url,
            'profile': self.graphhopper_profile,
            'timeout': self.provider_timeout,
        }


# Global configuration instance
config = Config()
