from .base import GeometryProvider, ProviderOutcome
from .exact_shape import ExactShapeProvider
from .routed_fallback import RoutedFallbackProvider
from .straight_line import StraightLineProvider

__all__ = [
    "GeometryProvider",
    "ProviderOutcome",
    "ExactShapeProvider",
    "RoutedFallbackProvider",
    "StraightLineProvider",
]
