from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from geo.coords import BoundsPair
from layers.types import GeoFeature
from lod.config import cache_max_entries, cache_ttl_s


@dataclass
class _Entry:
    features: list[GeoFeature]
    inserted_at: float


def cache_key(layer_id: str, zoom: float, bounds: BoundsPair | None = None) -> str:
    """
    `<layer>_<floor(zoom)>` plus `_<south>_<west>_<north>_<east>` when bounds are given.
    """
    key = f"{layer_id}_{math.floor(float(zoom))}"
    if bounds is not None:
        (s, w), (n, e) = bounds
        key += f"_{s}_{w}_{n}_{e}"
    return key


@dataclass
class GeometryCache:
    """
    Memoises post-processed layer feature lists per (layer, zoom bucket, bounds).

    - Entries older than `ttl_s` are purged on read.
    - At `max_size`, inserting a new key evicts the single oldest entry.

    The cache is an explicit object with an `init()`/`dispose()` lifecycle; an
    inactive cache always misses and ignores writes. Sync FastAPI routes run on a
    threadpool, so the entry table and counters are only touched under `_lock`.
    """

    max_size: int = field(default_factory=cache_max_entries)
    ttl_s: float = field(default_factory=cache_ttl_s)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _entries: dict[str, _Entry] = field(default_factory=dict, repr=False)
    _hits: int = field(default=0, repr=False)
    _misses: int = field(default=0, repr=False)
    _active: bool = field(default=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def init(self) -> "GeometryCache":
        with self._lock:
            if not self._active:
                self._active = True
                logger.info(f"GeometryCache initialised (max size: {self.max_size}, ttl: {self.ttl_s:.0f}s)")
        return self

    def dispose(self) -> None:
        with self._lock:
            self.clear()
            self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def get(self, layer_id: str, zoom: float, bounds: BoundsPair | None = None) -> list[GeoFeature] | None:
        return self.get_key(cache_key(layer_id, zoom, bounds))

    def set(
        self,
        layer_id: str,
        zoom: float,
        features: list[GeoFeature],
        bounds: BoundsPair | None = None,
    ) -> None:
        self.set_key(cache_key(layer_id, zoom, bounds), features)

    def get_key(self, key: str) -> list[GeoFeature] | None:
        with self._lock:
            entry = self._entries.get(key) if self._active else None
            if entry is not None and self.clock() - entry.inserted_at >= self.ttl_s:
                del self._entries[key]
                logger.debug(f"Cache entry expired: {key}")
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.features

    def set_key(self, key: str, features: list[GeoFeature]) -> None:
        with self._lock:
            if not self._active:
                logger.warning(f"Ignoring write of {key!r} to an inactive GeometryCache")
                return
            if key in self._entries:
                # Re-inserting moves the key to the end of the scan order.
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._evict_oldest()
            self._entries[key] = _Entry(features=features, inserted_at=self.clock())

    def _evict_oldest(self) -> None:
        # Caller holds _lock.
        if not self._entries:
            return
        # min() keeps the first of equal timestamps, i.e. the earliest inserted.
        oldest = min(self._entries, key=lambda k: self._entries[k].inserted_at)
        del self._entries[oldest]
        logger.debug(f"Cache full ({self.max_size}); evicted {oldest}")

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            requests = self._hits + self._misses
            return {
                "size": len(self._entries),
                "maxSize": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hitRate": (self._hits / requests) if requests else 0.0,
            }
