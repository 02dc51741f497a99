from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from loguru import logger

from geo.coords import BoundsPair
from layers.types import GeoFeature
from lod.bounds import filter_by_bounds
from lod.cache import GeometryCache, cache_key
from lod.config import max_feature_density
from lod.sampling import RandomSource, adaptive_sample
from lod.simplify import ZoomThreshold, simplify_features
from telemetry.monitor import PerformanceMonitor, measure_performance


# Layers whose data is withheld entirely below a zoom level, whatever the viewport.
DEFAULT_DATA_MIN_ZOOM: dict[str, float] = {
    "settlements": float(ZoomThreshold.VILLAGE_LEVEL),
}


@dataclass
class LayerOrchestrator:
    """
    Per-layer, per-zoom feature shaping in front of the map renderer.

    Lookup order for `get_optimized_layer_data`:
      zoom gate -> cache -> bounds filter -> simplify -> cache.set

    The gate compares the raw zoom while cache keys floor it, so gated requests never
    touch the cache: a fractional `data_min_zoom` can split a zoom bucket. Ungated results
    for a given (layer, zoom bucket, bounds) are memoised, so repeated calls inside the
    TTL return the same list object.
    """

    cache: GeometryCache = field(default_factory=GeometryCache)
    monitor: PerformanceMonitor = field(default_factory=PerformanceMonitor)
    data_min_zoom: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_DATA_MIN_ZOOM))

    def init(self) -> "LayerOrchestrator":
        self.cache.init()
        return self

    def dispose(self) -> None:
        self.cache.dispose()
        self.monitor.reset()

    def is_zoom_gated(self, layer_id: str, zoom: float) -> bool:
        min_z = self.data_min_zoom.get(layer_id)
        return min_z is not None and float(zoom) < float(min_z)

    def get_optimized_layer_data(
        self,
        layer_id: str,
        zoom: float,
        source_features: Sequence[GeoFeature],
        bounds: BoundsPair | None = None,
    ) -> list[GeoFeature]:
        features, _hit = self.fetch_layer_data(layer_id, zoom, source_features, bounds)
        return features

    def fetch_layer_data(
        self,
        layer_id: str,
        zoom: float,
        source_features: Sequence[GeoFeature],
        bounds: BoundsPair | None = None,
    ) -> tuple[list[GeoFeature], bool]:
        """
        Same as `get_optimized_layer_data`, also reporting whether the cache answered.
        """
        if self.is_zoom_gated(layer_id, zoom):
            return [], False

        cached = self.cache.get(layer_id, zoom, bounds)
        if cached is not None:
            self.monitor.record_cache_hit()
            return cached, True
        self.monitor.record_cache_miss()

        features, _ms = measure_performance(
            lambda: self._process(source_features, zoom, bounds),
            f"getOptimizedLayerData:{layer_id}",
            monitor=self.monitor,
        )
        self.cache.set(layer_id, zoom, features, bounds)
        return features, False

    def _process(
        self,
        source_features: Sequence[GeoFeature],
        zoom: float,
        bounds: BoundsPair | None,
    ) -> list[GeoFeature]:
        features = list(source_features)
        if bounds is not None:
            features = filter_by_bounds(features, bounds)
        return simplify_features(features, zoom)

    def get_adaptive_features(
        self,
        layer_id: str,
        zoom: float,
        source_features: Sequence[GeoFeature],
        bounds: BoundsPair,
        max_density: float | None = None,
        *,
        random: RandomSource | None = None,
    ) -> list[GeoFeature]:
        """
        Density-sampled variant. The sample is memoised under its own key so the map
        does not flicker between different random subsets on re-render.
        """
        features, _hit = self.fetch_adaptive_features(
            layer_id, zoom, source_features, bounds, max_density, random=random
        )
        return features

    def fetch_adaptive_features(
        self,
        layer_id: str,
        zoom: float,
        source_features: Sequence[GeoFeature],
        bounds: BoundsPair,
        max_density: float | None = None,
        *,
        random: RandomSource | None = None,
    ) -> tuple[list[GeoFeature], bool]:
        if self.is_zoom_gated(layer_id, zoom):
            return [], False

        density = max_feature_density() if max_density is None else float(max_density)
        key = cache_key(f"{layer_id}:adaptive:{density:g}", zoom, bounds)
        cached = self.cache.get_key(key)
        if cached is not None:
            self.monitor.record_cache_hit()
            return cached, True
        self.monitor.record_cache_miss()

        features, _ms = measure_performance(
            lambda: adaptive_sample(
                source_features,
                zoom,
                bounds,
                density,
                random=random,
            ),
            f"getAdaptiveFeatures:{layer_id}",
            monitor=self.monitor,
        )
        self.cache.set_key(key, features)
        return features, False

    async def preload_layer_data(
        self,
        layer_id: str,
        zoom_levels: Iterable[float],
        source_features: Sequence[GeoFeature],
    ) -> None:
        """
        Warm the cache for several zoom levels.

        Each level is its own task yielding once to the event loop before doing the
        (synchronous) work, so a long preload interleaves with other coroutines. There is
        no cancellation: scheduled levels run to completion.
        """
        source = list(source_features)

        async def _warm(zoom: float) -> None:
            await asyncio.sleep(0)
            self.get_optimized_layer_data(layer_id, zoom, source)

        levels = list(zoom_levels)
        await asyncio.gather(*(_warm(z) for z in levels))
        logger.info(f"Preloaded layer {layer_id!r} for zoom levels {levels}")

    def clear_all_caches(self) -> None:
        self.cache.clear()
        self.monitor.reset()

    def stats(self) -> dict:
        return {**self.cache.get_stats(), "performance": self.monitor.get_metrics()}
