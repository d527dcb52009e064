"""
Durable snapshots of the geometry cache.

The cache is an optimisation layer, never a source of truth: a lost or
unreadable snapshot just means starting cold.
"""

import dataclasses
import logging
import os
import pickle
import tempfile
from abc import ABC, abstractmethod
from typing import Optional

from ..exceptions import CachePersistenceError
from ..models.cache_entry import CacheSnapshot
from ..utils.geo_utils import simplify_geometry

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class CachePersistence(ABC):
    """Where RouteCache snapshots live between restarts"""

    @abstractmethod
    def load_snapshot(self) -> Optional[CacheSnapshot]:
        """Return the last snapshot, or None when there is none"""

    @abstractmethod
    def save_snapshot(self, snapshot: CacheSnapshot) -> bool:
        """Store a snapshot; raise CachePersistenceError on failure"""


class NullPersistence(CachePersistence):
    """Keeps nothing; the cache runs purely in memory"""

    def load_snapshot(self) -> Optional[CacheSnapshot]:
        return None

    def save_snapshot(self, snapshot: CacheSnapshot) -> bool:
        return True


class PickleFilePersistence(CachePersistence):
    """
    Snapshot to a pickle file, written atomically.

    Args:
        path: Snapshot file, its directory is created on first save
        simplify_tolerance: Douglas-Peucker tolerance in degrees applied to
            stored geometries; 0 stores them untouched
    """

    def __init__(self, path: str = os.path.join('cache', 'geometry_cache.pkl'),
                 simplify_tolerance: float = 0.0):
        self.path = path
        self.simplify_tolerance = simplify_tolerance

    def load_snapshot(self) -> Optional[CacheSnapshot]:
        if not os.path.exists(self.path):
            logger.info(f"No cache snapshot at {self.path}, starting cold")
            return None
        try:
            with open(self.path, 'rb') as f:
                payload = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError, ImportError) as e:
            raise CachePersistenceError(f"Failed to read cache snapshot {self.path}: {e}") from e

        if not isinstance(payload, dict) or payload.get('version') != SNAPSHOT_VERSION:
            raise CachePersistenceError(f"Unsupported cache snapshot format in {self.path}")
        snapshot = payload.get('snapshot')
        if not isinstance(snapshot, CacheSnapshot):
            raise CachePersistenceError(f"Cache snapshot in {self.path} is malformed")
        return snapshot

    def save_snapshot(self, snapshot: CacheSnapshot) -> bool:
        if self.simplify_tolerance > 0:
            snapshot = self._simplified(snapshot)

        directory = os.path.dirname(self.path) or '.'
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.geometry_cache_', suffix='.tmp', dir=directory)
            try:
                with os.fdopen(fd, 'wb') as f:
                    pickle.dump({'version': SNAPSHOT_VERSION, 'snapshot': snapshot}, f,
                                protocol=pickle.HIGHEST_PROTOCOL)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, pickle.PicklingError) as e:
            raise CachePersistenceError(f"Failed to write cache snapshot {self.path}: {e}") from e
        logger.debug(f"Saved cache snapshot with {len(snapshot.entries)} entries to {self.path}")
        return True

    def _simplified(self, snapshot: CacheSnapshot) -> CacheSnapshot:
        entries = []
        for entry in snapshot.entries:
            geometry = simplify_geometry(entry.result.geometry, self.simplify_tolerance)
            result = dataclasses.replace(entry.result, geometry=tuple(geometry),
                                         num_intermediate_points=entry.result.num_intermediate_points)
            entries.append(dataclasses.replace(entry, result=result))
        return dataclasses.replace(snapshot, entries=entries)
