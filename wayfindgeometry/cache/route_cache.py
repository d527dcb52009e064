"""
RouteCache: bounded geometry cache with frequency-first eviction.

Victims are chosen by lowest access count, then least recent access, so a
route that is queried once cannot push out a route used every day. Entries
expire after a TTL, metrics survive restarts through a CachePersistence
backend, and snapshot writes happen on timer threads so ``get``/``put`` never
wait on disk.
"""

import dataclasses
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, List, Optional

from ..exceptions import CachePersistenceError
from ..models.cache_entry import CacheEntry, CacheMetrics, CacheSnapshot, CacheStats
from ..models.geometry import GeometryResult
from .persistence import CachePersistence

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50
DEFAULT_TTL_SECONDS = 7 * 24 * 3600
# Keep per-key counters for evicted keys up to this multiple of capacity
METRICS_RETENTION_FACTOR = 10


class RouteCache:
    """Thread-safe geometry cache keyed by request fingerprint"""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 persistence: Optional[CachePersistence] = None, flush_delay: float = 2.0,
                 clock: Callable[[], float] = time.time):
        if capacity <= 0:
            raise ValueError("Cache capacity must be positive")
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self.persistence = persistence
        self.flush_delay = max(0.0, flush_delay)
        self.clock = clock

        # Least recently accessed first
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._metrics = CacheMetrics()
        self._lock = threading.Lock()

        self._timer_lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._flush_timer: Optional[threading.Timer] = None
        self._closed = False

        self._sweeper: Optional[threading.Thread] = None
        self._sweeper_stop = threading.Event()

    # ------------------------------------------------------------------
    #  Core operations
    # ------------------------------------------------------------------
    def put(self, key: str, result: GeometryResult):
        """Store a result; an existing key keeps its access count"""
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.result = result
                entry.inserted_at = now
                entry.last_accessed_at = now
                entry.expires_at = now + self.ttl_seconds
                self._entries.move_to_end(key)
            else:
                if len(self._entries) >= self.capacity:
                    self._evict_one(now)
                self._entries[key] = CacheEntry(
                    key=key,
                    result=result,
                    inserted_at=now,
                    last_accessed_at=now,
                    expires_at=now + self.ttl_seconds,
                )
            size = len(self._entries)
        logger.debug(f"CACHE STORE: {key} (source={result.source.value}, total in cache: {size})")
        self._schedule_flush()

    def get(self, key: str) -> Optional[GeometryResult]:
        """Return the cached result, or None on a miss or an expired entry"""
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now):
                if entry is not None:
                    del self._entries[key]
                    self._prune_key_metrics()
                    logger.debug(f"CACHE EXPIRED: {key}")
                self._metrics.misses += 1
                result = None
            else:
                entry.access_count += 1
                entry.last_accessed_at = now
                self._entries.move_to_end(key)
                self._metrics.hits += 1
                per_key = self._metrics.per_key_access_count
                per_key[key] = per_key.get(key, 0) + 1
                result = entry.result
        self._schedule_flush()
        return result

    def _rank(self, position: int, entry: CacheEntry):
        # Lowest tuple is the eviction victim
        return (entry.access_count, entry.last_accessed_at, position)

    def _evict_one(self, now: float):
        """
        Drop one entry; caller holds the lock.

        An expired entry, when present, is evicted before any live one
        regardless of its access count; otherwise the lowest
        (access_count, last_accessed_at) entry goes.
        """
        candidates = list(enumerate(self._entries.values()))
        expired = [(pos, e) for pos, e in candidates if e.is_expired(now)]
        pool = expired or candidates
        _, victim = min(pool, key=lambda item: self._rank(*item))
        del self._entries[victim.key]
        logger.info(f"CACHE EVICT: {victim.key} (access_count={victim.access_count}, "
                    f"expired={victim.is_expired(now)})")

        self._prune_key_metrics()

    def _prune_key_metrics(self):
        """Forget counters of uncached keys once they outgrow the retention bound; caller holds the lock"""
        per_key = self._metrics.per_key_access_count
        if len(per_key) > self.capacity * METRICS_RETENTION_FACTOR:
            self._metrics.per_key_access_count = {k: v for k, v in per_key.items() if k in self._entries}

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            self._prune_key_metrics()
        if removed:
            self._schedule_flush()
        return removed

    def clear(self):
        """Drop every entry; metrics are kept"""
        with self._lock:
            self._entries.clear()
            self._prune_key_metrics()
        self._schedule_flush()

    def purge_expired(self) -> int:
        """Remove every expired entry, returns how many were removed"""
        now = self.clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._prune_key_metrics()
        if expired:
            logger.info(f"Purged {len(expired)} expired cache entries")
            self._schedule_flush()
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        """Live membership test, does not count as an access"""
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(now)

    # ------------------------------------------------------------------
    #  Metrics
    # ------------------------------------------------------------------
    def hit_rate(self) -> float:
        with self._lock:
            return self._metrics.hit_rate()

    def top_entries(self, n: int) -> List[str]:
        """Keys with the highest access count, most recently used first on ties"""
        if n <= 0:
            return []
        now = self.clock()
        with self._lock:
            live = [e for e in self._entries.values() if not e.is_expired(now)]
        live.sort(key=lambda e: (e.access_count, e.last_accessed_at), reverse=True)
        return [e.key for e in live[:n]]

    def metrics(self) -> CacheMetrics:
        with self._lock:
            return CacheMetrics(hits=self._metrics.hits, misses=self._metrics.misses,
                                per_key_access_count=dict(self._metrics.per_key_access_count))

    def reset_metrics(self):
        with self._lock:
            self._metrics = CacheMetrics()
        self._schedule_flush()

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Copy of an entry's bookkeeping, without touching it"""
        with self._lock:
            entry = self._entries.get(key)
            return dataclasses.replace(entry) if entry is not None else None

    def stats(self) -> CacheStats:
        now = self.clock()
        with self._lock:
            total = len(self._entries)
            expired = sum(1 for e in self._entries.values() if e.is_expired(now))
            metrics = self._metrics
            return CacheStats(
                total_items=total,
                valid_items=total - expired,
                expired_items=expired,
                capacity=self.capacity,
                hits=metrics.hits,
                misses=metrics.misses,
                hit_rate=metrics.hit_rate(),
                # Rough estimate: ~1KB per item
                memory_est_mb=total * 1.0 / 1024.0,
            )

    # ------------------------------------------------------------------
    #  Persistence
    # ------------------------------------------------------------------
    def snapshot(self) -> CacheSnapshot:
        with self._lock:
            entries = [dataclasses.replace(e) for e in self._entries.values()]
            metrics = CacheMetrics(hits=self._metrics.hits, misses=self._metrics.misses,
                                   per_key_access_count=dict(self._metrics.per_key_access_count))
        return CacheSnapshot(entries=entries, metrics=metrics, saved_at=self.clock())

    def load(self) -> int:
        """
        Replace the cache contents with the persisted snapshot.

        Expired entries are dropped; if the snapshot holds more entries than
        the capacity, the best-ranked ones are kept.

        Returns:
            Number of entries restored
        """
        if self.persistence is None:
            return 0
        try:
            snapshot = self.persistence.load_snapshot()
        except CachePersistenceError as e:
            logger.warning(f"Ignoring unreadable cache snapshot: {e}")
            return 0
        if snapshot is None:
            return 0

        now = self.clock()
        live = [e for e in snapshot.entries if not e.is_expired(now)]
        if len(live) > self.capacity:
            live.sort(key=lambda e: (e.access_count, e.last_accessed_at), reverse=True)
            live = live[:self.capacity]
        live.sort(key=lambda e: e.last_accessed_at)

        with self._lock:
            self._entries = OrderedDict((e.key, dataclasses.replace(e)) for e in live)
            self._metrics = CacheMetrics(
                hits=snapshot.metrics.hits,
                misses=snapshot.metrics.misses,
                per_key_access_count=dict(snapshot.metrics.per_key_access_count),
            )
        logger.info(f"Restored {len(live)} cache entries "
                    f"({len(snapshot.entries) - len(live)} dropped), hit rate {snapshot.metrics.hit_rate():.1f}%")
        return len(live)

    def flush(self) -> bool:
        """Write a snapshot now; failures are logged and reported as False"""
        if self.persistence is None:
            return False
        snapshot = self.snapshot()
        with self._save_lock:
            try:
                return bool(self.persistence.save_snapshot(snapshot))
            except CachePersistenceError as e:
                logger.warning(f"Cache snapshot not saved: {e}")
            except Exception as e:
                logger.error(f"Unexpected error saving cache snapshot: {type(e).__name__}: {e}")
        return False

    def _schedule_flush(self):
        """Debounce: one pending timer absorbs every mutation until it fires"""
        if self.persistence is None or self._closed:
            return
        with self._timer_lock:
            if self._flush_timer is not None:
                return
            timer = threading.Timer(self.flush_delay, self._flush_from_timer)
            timer.daemon = True
            self._flush_timer = timer
            timer.start()

    def _flush_from_timer(self):
        with self._timer_lock:
            self._flush_timer = None
        self.flush()

    # ------------------------------------------------------------------
    #  Background expiry sweep and lifecycle
    # ------------------------------------------------------------------
    def start_sweeper(self, interval_seconds: float):
        """Purge expired entries every interval_seconds on a daemon thread"""
        if interval_seconds <= 0 or (self._sweeper is not None and self._sweeper.is_alive()):
            return
        self._sweeper_stop.clear()

        def _run():
            while not self._sweeper_stop.wait(interval_seconds):
                self.purge_expired()

        self._sweeper = threading.Thread(target=_run, name="geometry-cache-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self):
        self._sweeper_stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def open(self):
        """Re-enable background flushes after close()"""
        with self._timer_lock:
            self._closed = False

    def close(self) -> bool:
        """Stop background work and write a final snapshot"""
        self.stop_sweeper()
        with self._timer_lock:
            self._closed = True
            if self._flush_timer is not None:
                self._flush_timer.cancel()
                self._flush_timer = None
        return self.flush()
