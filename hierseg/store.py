"""In-memory hierarchy cache for the interactive cut/render endpoints.

A hierarchy is built once and then cut many times while the user scrubs a
level control, so the service keeps recent builds in memory keyed by a hash
of their inputs. Nothing is written to disk: a restart forgets everything.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import astuple, dataclass

from hierseg.engine.config import SegmentationConfig
from hierseg.engine.hierarchy import Hierarchy
from hierseg.engine.pixels import PixelBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class StoredHierarchy:
    id: str
    hierarchy: Hierarchy
    pixels: PixelBuffer
    target_region_count: int
    created_at: float


class HierarchyStore:
    """Bounded LRU map of hierarchy id → StoredHierarchy. Thread-safe."""

    def __init__(self, max_entries: int = 16) -> None:
        self.max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, StoredHierarchy] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def key(pixels: PixelBuffer, target_region_count: int, config: SegmentationConfig) -> str:
        """Stable id derived from the image and every build parameter."""
        h = hashlib.sha256()
        h.update(pixels.data.tobytes())
        h.update(repr((pixels.width, pixels.height, pixels.channels, target_region_count)).encode())
        h.update(repr(astuple(config)).encode())
        return h.hexdigest()[:16]

    def get(self, hierarchy_id: str) -> StoredHierarchy | None:
        with self._lock:
            entry = self._entries.get(hierarchy_id)
            if entry is not None:
                self._entries.move_to_end(hierarchy_id)
            return entry

    def put(
        self,
        hierarchy_id: str,
        hierarchy: Hierarchy,
        pixels: PixelBuffer,
        target_region_count: int,
    ) -> StoredHierarchy:
        entry = StoredHierarchy(
            id=hierarchy_id,
            hierarchy=hierarchy,
            pixels=pixels,
            target_region_count=target_region_count,
            created_at=time.time(),
        )
        with self._lock:
            self._entries[hierarchy_id] = entry
            self._entries.move_to_end(hierarchy_id)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted hierarchy %s", evicted)
        return entry

    def delete(self, hierarchy_id: str) -> bool:
        with self._lock:
            return self._entries.pop(hierarchy_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_store: HierarchyStore | None = None


def get_hierarchy_store() -> HierarchyStore:
    """Get or create the process-wide HierarchyStore."""
    global _store
    if _store is None:
        from hierseg.config import settings

        _store = HierarchyStore(max_entries=settings.max_cached_hierarchies)
    return _store
