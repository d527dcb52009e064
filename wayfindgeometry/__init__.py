__title__ = 'wayfindgeometry'
__version__ = '1.0.0'
__author__ = 'WayFind Team'
__license__ = 'MIT'
__copyright__ = 'Copyright 2024 WayFind Team'

__all__ = [
    'GeometryService', 'GeometryResolver', 'SegmentExtractor', 'RouteCache',
    'Waypoint', 'ShapePoint', 'GeometryResult', 'GeometrySource', 'ResolutionRequest',
    'config', 'exceptions',
]

# Set default logging handler to avoid "No handler found" warnings.
import logging
from logging import NullHandler

logging.getLogger(__name__).addHandler(NullHandler())

from .models.geometry import Waypoint, ShapePoint, GeometryResult, GeometrySource, ResolutionRequest
from .segment_extractor import SegmentExtractor
from .resolver import GeometryResolver
from .cache.route_cache import RouteCache
from .service import GeometryService
