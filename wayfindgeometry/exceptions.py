"""
Custom exceptions for the WayFind geometry resolver
"""


class GeometryError(Exception):
    """Base exception for the geometry resolver"""
    pass


class ProviderError(GeometryError):
    """Raised when a geometry provider cannot produce a segment.

    The resolver catches these and moves on to the next provider.
    """
    pass


class ShapeMatchError(ProviderError):
    """Raised when two waypoints cannot be matched onto a reference shape"""
    pass


class ShapeNotFoundError(ShapeMatchError):
    """Raised when no usable shape exists for the requested route"""
    pass


class PoorMatchError(ShapeMatchError):
    """Raised when a waypoint sits too far from every shape point"""
    pass


class InvertedIndicesError(ShapeMatchError):
    """Raised when the origin matches after the destination along the shape"""
    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a provider attempt exceeds its time budget"""
    pass


class ProviderUnavailableError(ProviderError):
    """Raised when an external routing engine cannot be reached or has no route"""
    pass


class InsufficientInputError(GeometryError):
    """Raised when the endpoints do not carry two usable coordinate pairs"""
    pass


class CachePersistenceError(GeometryError):
    """Raised when a cache snapshot cannot be read or written"""
    pass
