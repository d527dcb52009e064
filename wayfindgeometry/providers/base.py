from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from ..models.geometry import GeometrySource, LonLat, ResolutionRequest


@dataclass(frozen=True)
class ProviderOutcome:
    """Raw provider output before the resolver computes distance and duration"""
    geometry: List[LonLat]
    source: GeometrySource
    duration_seconds: Optional[int] = None  # None: resolver applies its speed model


class GeometryProvider(ABC):
    """One step of the fallback chain"""

    name: str = "provider"
    source: GeometrySource
    # Blocking providers run on the resolver pool under a timeout
    blocking: bool = True

    @abstractmethod
    def attempt(self, request: ResolutionRequest) -> ProviderOutcome:
        """Produce a geometry or raise a ProviderError"""

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"
