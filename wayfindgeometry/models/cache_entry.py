from dataclasses import dataclass, field
from typing import Dict, List

from .geometry import GeometryResult


@dataclass
class CacheEntry:
    """A cached resolution together with its usage bookkeeping"""
    key: str
    result: GeometryResult
    inserted_at: float
    last_accessed_at: float
    expires_at: float
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheMetrics:
    """Hit/miss counters, kept across restarts"""
    hits: int = 0
    misses: int = 0
    per_key_access_count: Dict[str, int] = field(default_factory=dict)

    @property
    def requests(self) -> int:
        return self.hits + self.misses

    def hit_rate(self) -> float:
        """Hit rate as a percentage in [0, 100]; 0 before any request"""
        if self.requests == 0:
            return 0.0
        return 100.0 * self.hits / self.requests


@dataclass
class CacheStats:
    """Point-in-time cache statistics"""
    total_items: int
    valid_items: int
    expired_items: int
    capacity: int
    hits: int
    misses: int
    hit_rate: float
    memory_est_mb: float


@dataclass
class CacheSnapshot:
    """What gets written to and read from persistence"""
    entries: List[CacheEntry]
    metrics: CacheMetrics
    saved_at: float
